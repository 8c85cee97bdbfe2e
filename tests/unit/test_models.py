"""
Unit tests for Akamai MCP models
"""

import pytest

from akamai_mcp.models import (
    Customer,
    DNSRecordSet,
    HostnameAction,
    HostnameOperation,
    PatchOp,
    RulePatch,
    VersionRequest,
)


class TestCustomer:
    def test_section_defaults_to_name(self):
        customer = Customer(name="acme")
        assert customer.edgerc_section == "acme"
        assert customer.account_switch_key is None

    def test_explicit_section(self):
        customer = Customer(name="acme", section="acme-prod", account_switch_key="1-ABC:1-2")
        assert customer.edgerc_section == "acme-prod"


class TestRulePatch:
    def test_from_alias(self):
        """Test 'from' is accepted as the source pointer"""
        patch = RulePatch.model_validate({"op": "move", "from": "/a", "path": "/b"})
        assert patch.op == PatchOp.MOVE
        assert patch.from_ == "/a"

    def test_populate_by_name(self):
        patch = RulePatch(op="copy", from_="/a", path="/b")
        assert patch.from_ == "/a"

    def test_path_must_be_pointer(self):
        with pytest.raises(ValueError):
            RulePatch(op="remove", path="behaviors/0")

    def test_invalid_op(self):
        with pytest.raises(ValueError):
            RulePatch(op="merge", path="/a")


class TestHostnameOperation:
    def test_parse(self):
        operation = HostnameOperation.model_validate(
            {
                "property_id": "prp_1",
                "action": "add",
                "hostnames": [{"hostname": "www.example.com"}],
            }
        )
        assert operation.action == HostnameAction.ADD
        assert operation.hostnames[0].edge_hostname is None

    def test_invalid_action(self):
        with pytest.raises(ValueError):
            HostnameOperation(property_id="prp_1", action="rename")


class TestVersionRequest:
    def test_defaults(self):
        request = VersionRequest(property_id="prp_1")
        assert request.base_version is None
        assert request.note is None


class TestDNSRecordSet:
    def test_type_uppercased(self):
        record = DNSRecordSet(name="www.example.com", type="cname", rdata=["a.example.com"])
        assert record.type == "CNAME"
        assert record.ttl == 300
