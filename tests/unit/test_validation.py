"""
Unit tests for input validation
"""

import pytest

from akamai_mcp.exceptions import (
    HostnameValidationError,
    InvalidNetworkError,
    ValidationError,
)
from akamai_mcp.models import DNSRecordSet, Network
from akamai_mcp.validation import InputValidator


class TestTextFieldValidation:
    def test_validate_text_field_success(self):
        """Test successful text field validation"""
        result = InputValidator.validate_text_field("Enable HTTP/2 & gzip", "note")
        assert result == "Enable HTTP/2 & gzip"

    def test_validate_text_field_required(self):
        """Test required field validation"""
        with pytest.raises(ValidationError) as exc_info:
            InputValidator.validate_text_field("", "note", required=True)
        assert "note is required" in str(exc_info.value)

        assert InputValidator.validate_text_field(None, "comment") == ""

    def test_validate_text_field_length(self):
        with pytest.raises(ValidationError) as exc_info:
            InputValidator.validate_text_field("A" * 2001, "note")
        assert "exceeds maximum length" in str(exc_info.value)

    def test_dangerous_patterns_detection(self):
        """Test detection of dangerous patterns"""
        dangerous_inputs = [
            "<script>alert('xss')</script>",
            "<a href='javascript:void(0)'>",
            "<div onclick='bad()'>",
            "<iframe src='evil.com'>",
            "%3Cscript%3Ealert(1)",
            "&lt;script&gt;alert(1)",
            "note\x00with null",
        ]

        for dangerous_input in dangerous_inputs:
            with pytest.raises(ValidationError) as exc_info:
                InputValidator.validate_text_field(dangerous_input, "note")
            assert "potentially dangerous content" in str(exc_info.value)


class TestIdentifierValidation:
    def test_property_id_normalized(self):
        """Test bare numbers get the prp_ prefix"""
        assert InputValidator.validate_property_id("12345") == "prp_12345"
        assert InputValidator.validate_property_id(" prp_42 ") == "prp_42"
        assert InputValidator.validate_property_id(7) == "prp_7"

    def test_property_id_invalid(self):
        for bad in ["", None, "prp_", "abc", "prp_12;drop"]:
            with pytest.raises(ValidationError):
                InputValidator.validate_property_id(bad)

    def test_property_ids_list(self):
        assert InputValidator.validate_property_ids(["1", "prp_2"]) == ["prp_1", "prp_2"]

        with pytest.raises(ValidationError) as exc_info:
            InputValidator.validate_property_ids([])
        assert "non-empty list" in str(exc_info.value)

    def test_contract_group_product(self):
        assert InputValidator.validate_contract_id("1-ABC") == "ctr_1-ABC"
        assert InputValidator.validate_group_id("grp_99") == "grp_99"
        assert InputValidator.validate_product_id("Fresca") == "prd_Fresca"

        with pytest.raises(ValidationError):
            InputValidator.validate_group_id("grp_abc")

    def test_property_name(self):
        assert InputValidator.validate_property_name(" www.example.com ") == "www.example.com"

        with pytest.raises(ValidationError):
            InputValidator.validate_property_name("has space")
        with pytest.raises(ValidationError):
            InputValidator.validate_property_name("a" * 86)


class TestNetworkValidation:
    def test_case_insensitive(self):
        assert InputValidator.validate_network("staging") == Network.STAGING
        assert InputValidator.validate_network("PRODUCTION") == Network.PRODUCTION

    def test_enum_passes_through(self):
        assert InputValidator.validate_network(Network.STAGING) is Network.STAGING
        assert InputValidator.validate_network(Network.PRODUCTION) is Network.PRODUCTION

    def test_invalid_network(self):
        with pytest.raises(InvalidNetworkError) as exc_info:
            InputValidator.validate_network("QA")
        assert exc_info.value.error_code == "INVALID_NETWORK"


class TestConcurrencyValidation:
    def test_none_keeps_default(self):
        assert InputValidator.validate_concurrency(None) is None

    def test_positive(self):
        assert InputValidator.validate_concurrency(1) == 1
        assert InputValidator.validate_concurrency(25) == 25

    @pytest.mark.parametrize("value", [0, -1, True, 2.5, "4"])
    def test_rejected(self, value):
        with pytest.raises(ValidationError):
            InputValidator.validate_concurrency(value)


class TestHostnameValidation:
    def test_valid_hostnames(self):
        assert InputValidator.validate_hostname("WWW.Example.com") == "www.example.com"
        assert InputValidator.is_valid_hostname("a-b.c-d.example.co")

    def test_invalid_hostnames(self):
        for bad in ["-bad.example.com", "bad-.example.com", "exa_mple.com", "localhost", ""]:
            assert not InputValidator.is_valid_hostname(bad)

        with pytest.raises(HostnameValidationError) as exc_info:
            InputValidator.validate_hostname("not a host")
        assert "Invalid hostname format" in str(exc_info.value)


class TestEmailValidation:
    def test_emails(self):
        assert InputValidator.validate_emails(None) == []
        assert InputValidator.validate_emails(["Ops@Example.com"]) == ["ops@example.com"]

        with pytest.raises(ValidationError):
            InputValidator.validate_emails(["not-an-email"])
        with pytest.raises(ValidationError):
            InputValidator.validate_emails("ops@example.com")


class TestRulePatchValidation:
    def test_valid_patches(self):
        patches = [
            {"op": "replace", "path": "/name", "value": "x"},
            {"op": "remove", "path": "/behaviors/0"},
            {"op": "move", "from": "/a", "path": "/b"},
        ]
        assert InputValidator.validate_rule_patches(patches) == patches

    @pytest.mark.parametrize(
        "patch,message",
        [
            ({"op": "merge", "path": "/a"}, "invalid op 'merge'"),
            ({"op": "remove"}, "missing 'path'"),
            ({"op": "copy", "path": "/a"}, "requires 'from'"),
            ({"op": "add", "path": "/a"}, "requires 'value'"),
        ],
    )
    def test_invalid_patches(self, patch, message):
        with pytest.raises(ValidationError) as exc_info:
            InputValidator.validate_rule_patches([patch])
        assert message in str(exc_info.value)

    def test_empty_patch_list(self):
        with pytest.raises(ValidationError):
            InputValidator.validate_rule_patches([])


class TestDNSRecordValidation:
    def test_valid_records(self):
        for record in [
            DNSRecordSet(name="www.example.com", type="A", rdata=["192.0.2.1"]),
            DNSRecordSet(name="www.example.com", type="AAAA", rdata=["2001:db8::1"]),
            DNSRecordSet(name="mail.example.com", type="MX", rdata=["10 mx.example.com"]),
            DNSRecordSet(name="txt.example.com", type="TXT", rdata=["v=spf1 -all"]),
        ]:
            assert InputValidator.validate_dns_record(record) is record

    def test_invalid_records(self):
        cases = [
            (DNSRecordSet(name="a", type="A", rdata=["999.0.0.1"]), "Invalid IPv4 address"),
            (DNSRecordSet(name="a", type="AAAA", rdata=["192.0.2.1"]), "Invalid IPv6 address"),
            (DNSRecordSet(name="a", type="CNAME", rdata=["x", "y"]), "exactly one target"),
            (DNSRecordSet(name="a", type="MX", rdata=["mx.example.com"]), "Invalid MX format"),
            (DNSRecordSet(name="a", type="TXT", rdata=[]), "rdata is empty"),
            (DNSRecordSet(name="a", type="A", ttl=-1, rdata=["192.0.2.1"]), "TTL"),
        ]
        for record, message in cases:
            with pytest.raises(ValidationError) as exc_info:
                InputValidator.validate_dns_record(record)
            assert message in str(exc_info.value)
