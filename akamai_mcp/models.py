"""
Data models for Akamai MCP
"""

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


class Network(str, Enum):
    """Activation networks"""

    STAGING = "STAGING"
    PRODUCTION = "PRODUCTION"


class PatchOp(str, Enum):
    """JSON patch operations supported on rule trees"""

    ADD = "add"
    REMOVE = "remove"
    REPLACE = "replace"
    COPY = "copy"
    MOVE = "move"
    TEST = "test"


class HostnameAction(str, Enum):
    """Hostname mutation actions"""

    ADD = "add"
    REMOVE = "remove"


class Customer(BaseModel):
    """Akamai customer (credential scope) configuration"""

    name: str = Field(..., description="Customer name used by tools")
    section: str | None = Field(
        None, description="Section in the .edgerc file (defaults to the name)"
    )
    account_switch_key: str | None = Field(
        None, description="Account switch key for partner/reseller access"
    )
    description: str | None = Field(None, description="Free-form description")

    @property
    def edgerc_section(self) -> str:
        return self.section or self.name


class RulePatch(BaseModel):
    """A single JSON patch operation against a property rule tree"""

    model_config = ConfigDict(populate_by_name=True)

    op: PatchOp = Field(..., description="Patch operation")
    path: str = Field(..., description="JSON pointer to the target location")
    value: Any = Field(None, description="Value for add/replace/test")
    from_: str | None = Field(
        None, alias="from", description="Source pointer for copy/move"
    )

    @field_validator("path")
    @classmethod
    def validate_path(cls, v: str) -> str:
        if v != "" and not v.startswith("/"):
            raise ValueError("path must be a JSON pointer starting with '/'")
        return v


class HostnameChange(BaseModel):
    """A hostname to add to or remove from a property version"""

    hostname: str = Field(..., description="Hostname (cnameFrom)")
    edge_hostname: str | None = Field(
        None, description="Edge hostname (cnameTo), defaults to <hostname>.edgekey.net"
    )


class HostnameOperation(BaseModel):
    """Hostname changes for one property"""

    property_id: str = Field(..., description="Property ID")
    action: HostnameAction = Field(..., description="add or remove")
    hostnames: list[HostnameChange] = Field(
        default_factory=list, description="Hostnames to add or remove"
    )


class VersionRequest(BaseModel):
    """A version to create on one property"""

    property_id: str = Field(..., description="Property ID")
    base_version: int | None = Field(
        None, description="Version to copy from (defaults to the latest version)"
    )
    note: str | None = Field(None, description="Version note")


class DNSRecordSet(BaseModel):
    """Edge DNS record set"""

    name: str = Field(..., description="Fully qualified record name")
    type: str = Field(..., description="Record type (A, AAAA, CNAME, MX, TXT, ...)")
    ttl: int = Field(300, description="Time to live in seconds")
    rdata: list[str] = Field(default_factory=list, description="Record data")

    @field_validator("type")
    @classmethod
    def normalize_type(cls, v: str) -> str:
        return v.upper()
