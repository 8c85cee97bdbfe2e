"""Input validation for Akamai MCP.

This module validates identifiers, enum values, hostnames, free text and
DNS record sets before they are sent to the Akamai APIs. Free text is
checked against injection patterns on both its raw and decoded forms.
"""

import ipaddress
import re
import unicodedata
from typing import Any, Dict, List, Optional

from .exceptions import HostnameValidationError, InvalidNetworkError, ValidationError
from .models import DNSRecordSet, Network


class InputValidator:
    """Input validation for Akamai operations."""

    MAX_LENGTHS = {
        "note": 2000,
        "comment": 2000,
        "property_name": 85,
        "hostname": 253,
        "email": 254,
        "zone": 253,
    }

    PATTERNS = {
        "property_id": re.compile(r"^(prp_)?\d+$"),
        "contract_id": re.compile(r"^(ctr_)?[A-Za-z0-9\-]+$"),
        "group_id": re.compile(r"^(grp_)?\d+$"),
        "product_id": re.compile(r"^(prd_)?[A-Za-z0-9_\-]+$"),
        "property_name": re.compile(r"^[A-Za-z0-9_\-.]+$"),
        "hostname": re.compile(
            r"^(?!-)(?:[a-zA-Z0-9-]{1,63}(?<!-)\.)+[a-zA-Z]{2,}$"
        ),
        "email": re.compile(r"^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$"),
        "mx": re.compile(r"^\d+ \S+$"),
    }

    # ReDoS-safe patterns with input length limits
    MAX_VALIDATION_LENGTH = 10000  # Pre-filter before regex validation

    DANGEROUS_PATTERNS = [
        re.compile(r"<script\b", re.IGNORECASE),
        re.compile(r"</script\s*>", re.IGNORECASE),
        re.compile(r"javascript\s*:", re.IGNORECASE),
        re.compile(r"vbscript\s*:", re.IGNORECASE),
        re.compile(r"\bon\w+\s*=", re.IGNORECASE),
        re.compile(
            r"<(?:iframe|frame|object|embed|applet|form|meta|link)\b", re.IGNORECASE
        ),
        re.compile(r"\beval\s*\(", re.IGNORECASE),
        # Control characters
        re.compile(r"[\x00-\x08\x0B\x0C\x0E-\x1F\x7F]"),
    ]

    @classmethod
    def _decode_and_normalize(cls, value: str) -> str:
        """Decode potentially obfuscated content for pattern matching"""
        import html
        import urllib.parse

        test_value = html.unescape(value)
        test_value = urllib.parse.unquote(test_value)
        return test_value

    @classmethod
    def validate_text_field(
        cls, value: Optional[str], field_name: str, required: bool = False
    ) -> str:
        """Validate and sanitize text fields."""
        if not value and required:
            raise ValidationError(f"{field_name} is required")

        if not value:
            return ""

        value = str(value).strip()

        if len(value) > cls.MAX_VALIDATION_LENGTH:
            raise ValidationError(
                f"{field_name} exceeds maximum validation length of {cls.MAX_VALIDATION_LENGTH} characters"
            )

        max_length = cls.MAX_LENGTHS.get(field_name, 1000)
        if len(value) > max_length:
            raise ValidationError(
                f"{field_name} exceeds maximum length of {max_length} characters"
            )

        value = unicodedata.normalize("NFKC", value)

        for test_val in (value, cls._decode_and_normalize(value)):
            for pattern in cls.DANGEROUS_PATTERNS:
                if pattern.search(test_val):
                    raise ValidationError(
                        f"{field_name} contains potentially dangerous content"
                    )

        return value

    @classmethod
    def _validate_id(cls, value: Any, kind: str, prefix: str) -> str:
        if value is None or str(value).strip() == "":
            raise ValidationError(f"{kind} cannot be empty")

        value = str(value).strip()
        if not cls.PATTERNS[kind].match(value):
            raise ValidationError(f"Invalid {kind}: '{value}'")

        if not value.startswith(prefix):
            value = f"{prefix}{value}"
        return value

    @classmethod
    def validate_property_id(cls, property_id: Any) -> str:
        """Validate a property ID, normalizing bare numbers to prp_<n>."""
        return cls._validate_id(property_id, "property_id", "prp_")

    @classmethod
    def validate_contract_id(cls, contract_id: Any) -> str:
        return cls._validate_id(contract_id, "contract_id", "ctr_")

    @classmethod
    def validate_group_id(cls, group_id: Any) -> str:
        return cls._validate_id(group_id, "group_id", "grp_")

    @classmethod
    def validate_product_id(cls, product_id: Any) -> str:
        return cls._validate_id(product_id, "product_id", "prd_")

    @classmethod
    def validate_property_ids(cls, property_ids: Any) -> List[str]:
        """Validate a non-empty list of property IDs."""
        if not isinstance(property_ids, list) or not property_ids:
            raise ValidationError("property_ids must be a non-empty list")
        return [cls.validate_property_id(pid) for pid in property_ids]

    @classmethod
    def validate_property_name(cls, name: Any) -> str:
        if not name or not str(name).strip():
            raise ValidationError("Property name cannot be empty")

        name = str(name).strip()
        if len(name) > cls.MAX_LENGTHS["property_name"]:
            raise ValidationError(
                f"Property name exceeds maximum length of {cls.MAX_LENGTHS['property_name']}"
            )
        if not cls.PATTERNS["property_name"].match(name):
            raise ValidationError(
                f"Invalid property name '{name}'. "
                "Only letters, digits, underscore, dash and dot are allowed"
            )
        return name

    @classmethod
    def validate_network(cls, network: Any) -> Network:
        """Validate an activation network (case-insensitive)."""
        if isinstance(network, Network):
            return network
        try:
            return Network(str(network).upper())
        except ValueError:
            raise InvalidNetworkError(network)

    @classmethod
    def validate_concurrency(cls, max_concurrency: Any) -> Optional[int]:
        """Validate an optional worker limit. None keeps the configured default."""
        if max_concurrency is None:
            return None
        if isinstance(max_concurrency, bool) or not isinstance(max_concurrency, int):
            raise ValidationError("max_concurrency must be an integer")
        if max_concurrency < 1:
            raise ValidationError("max_concurrency must be at least 1")
        return max_concurrency

    @classmethod
    def is_valid_hostname(cls, hostname: str) -> bool:
        return (
            isinstance(hostname, str)
            and len(hostname) <= cls.MAX_LENGTHS["hostname"]
            and bool(cls.PATTERNS["hostname"].match(hostname))
        )

    @classmethod
    def validate_hostname(cls, hostname: str) -> str:
        hostname = (hostname or "").strip().lower()
        if not cls.is_valid_hostname(hostname):
            raise HostnameValidationError(hostname)
        return hostname

    @classmethod
    def validate_email(cls, email: str) -> str:
        """Validate email address."""
        email = email.strip().lower()

        if len(email) > cls.MAX_LENGTHS["email"]:
            raise ValidationError("Email address too long")

        if not cls.PATTERNS["email"].match(email):
            raise ValidationError(f"Invalid email address format: {email}")

        return email

    @classmethod
    def validate_emails(cls, emails: Optional[List[str]]) -> List[str]:
        if not emails:
            return []
        if not isinstance(emails, list):
            raise ValidationError("notify_emails must be a list")
        return [cls.validate_email(e) for e in emails]

    @classmethod
    def validate_rule_patches(cls, patches: Any) -> List[Dict[str, Any]]:
        """Check the shape of a patch list before any remote call."""
        if not isinstance(patches, list) or not patches:
            raise ValidationError("rule_patches must be a non-empty list")

        valid_ops = {"add", "remove", "replace", "copy", "move", "test"}
        for idx, patch in enumerate(patches):
            if not isinstance(patch, dict):
                raise ValidationError(f"Patch {idx} must be an object")
            if patch.get("op") not in valid_ops:
                raise ValidationError(
                    f"Patch {idx} has invalid op '{patch.get('op')}'. "
                    f"Must be one of: {', '.join(sorted(valid_ops))}"
                )
            if not isinstance(patch.get("path"), str):
                raise ValidationError(f"Patch {idx} is missing 'path'")
            if patch["op"] in ("copy", "move") and not patch.get("from"):
                raise ValidationError(f"Patch {idx} ({patch['op']}) requires 'from'")
            if patch["op"] in ("add", "replace", "test") and "value" not in patch:
                raise ValidationError(f"Patch {idx} ({patch['op']}) requires 'value'")
        return patches

    @classmethod
    def validate_dns_record(cls, record: DNSRecordSet) -> DNSRecordSet:
        """Validate record data for the common record types."""
        if not record.rdata:
            raise ValidationError(f"{record.name} {record.type}: rdata is empty")
        if record.ttl < 0:
            raise ValidationError(f"{record.name} {record.type}: TTL must be positive")

        if record.type == "A":
            for ip in record.rdata:
                try:
                    ipaddress.IPv4Address(ip)
                except ValueError:
                    raise ValidationError(f"Invalid IPv4 address: {ip}")
        elif record.type == "AAAA":
            for ip in record.rdata:
                try:
                    ipaddress.IPv6Address(ip)
                except ValueError:
                    raise ValidationError(f"Invalid IPv6 address: {ip}")
        elif record.type == "CNAME":
            if len(record.rdata) != 1:
                raise ValidationError("CNAME must have exactly one target")
        elif record.type == "MX":
            for mx in record.rdata:
                if not cls.PATTERNS["mx"].match(mx):
                    raise ValidationError(
                        f"Invalid MX format (priority hostname): {mx}"
                    )

        return record
