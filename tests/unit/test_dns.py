"""
Unit tests for bulk Edge DNS record import
"""

import pytest

from akamai_mcp.bulk import ItemStatus, OperationStatus
from akamai_mcp.exceptions import AkamaiAPIError, OperationSetupError, ValidationError

ZONE = "example.com"
CHANGELIST = r"/config-dns/v2/changelists/example\.com"

RECORDS = [
    {"name": "www.example.com", "type": "A", "ttl": 300, "rdata": ["192.0.2.10"]},
    {"name": "api.example.com", "type": "cname", "ttl": 600, "rdata": ["www.example.com"]},
    {"name": "mail.example.com", "type": "MX", "ttl": 300, "rdata": ["10 mx.example.com"]},
]


@pytest.fixture
def dns_routes(fake_client):
    fake_client.route("GET", CHANGELIST, AkamaiAPIError(404, title="Not Found"))
    fake_client.route("POST", r"/config-dns/v2/changelists", {})
    fake_client.route("PUT", CHANGELIST + r"/recordsets/.+/.+", {})
    fake_client.route("POST", CHANGELIST + r"/submit", {"requestId": "req-1"})


class TestImportRecords:
    @pytest.mark.asyncio
    async def test_import_and_submit(self, dns_manager, fake_client, dns_routes):
        """Test every record is written and the changelist submitted"""
        operation = await dns_manager.import_records(fake_client, ZONE, RECORDS)

        assert operation.status == OperationStatus.COMPLETED
        assert operation.successful_items == 3
        assert [item.name for item in operation.items] == [
            "www.example.com A",
            "api.example.com CNAME",
            "mail.example.com MX",
        ]

        create = fake_client.calls_to("POST", r"/config-dns/v2/changelists")[0]
        assert create.query_params == {"zone": ZONE}

        put = fake_client.calls_to("PUT", CHANGELIST + r"/recordsets/.+/.+")[1]
        assert put.path.endswith("/recordsets/api.example.com/CNAME")
        assert put.body["ttl"] == 600

        submit = fake_client.calls_to("POST", CHANGELIST + r"/submit")[0]
        assert submit.body == {"comment": "Bulk import of 3 records"}
        assert operation.metadata.context["submit_response"] == {"requestId": "req-1"}

    @pytest.mark.asyncio
    async def test_invalid_record_fails_item(self, dns_manager, fake_client, dns_routes):
        """Test a record with bad data fails alone"""
        records = RECORDS + [
            {"name": "bad.example.com", "type": "A", "rdata": ["999.0.0.1"]}
        ]

        operation = await dns_manager.import_records(
            fake_client, ZONE, records, comment="migration"
        )

        assert operation.successful_items == 3
        assert operation.failed_items == 1
        failed = operation.items_with_status(ItemStatus.FAILED)[0]
        assert failed.error == "Invalid IPv4 address: 999.0.0.1"
        assert len(fake_client.calls_to("PUT", CHANGELIST + r"/recordsets/.+/.+")) == 3
        submit = fake_client.calls_to("POST", CHANGELIST + r"/submit")[0]
        assert submit.body == {"comment": "migration"}

    @pytest.mark.asyncio
    async def test_skip_validation(self, dns_manager, fake_client, dns_routes):
        operation = await dns_manager.import_records(
            fake_client,
            ZONE,
            [{"name": "bad.example.com", "type": "A", "rdata": ["999.0.0.1"]}],
            skip_validation=True,
        )
        assert operation.successful_items == 1

    @pytest.mark.asyncio
    async def test_existing_changelist_blocks_import(
        self, dns_manager, fake_client, dns_routes, tracker
    ):
        """Test a pending changelist is not discarded without force"""
        fake_client.route(
            "GET",
            CHANGELIST,
            {"lastModifiedBy": "jdoe", "recordSets": [{"name": "x"}]},
        )

        with pytest.raises(OperationSetupError) as exc_info:
            await dns_manager.import_records(fake_client, ZONE, RECORDS)

        assert "A changelist already exists for zone example.com" in str(exc_info.value)
        operation = tracker.get_operation(exc_info.value.operation_id)
        assert operation.status == OperationStatus.FAILED
        assert fake_client.calls_to("DELETE", CHANGELIST) == []

    @pytest.mark.asyncio
    async def test_force_discards_changelist(self, dns_manager, fake_client, dns_routes):
        """Test force deletes the pending changelist first"""
        fake_client.route("GET", CHANGELIST, {"lastModifiedBy": "jdoe"})
        fake_client.route("DELETE", CHANGELIST, None)

        operation = await dns_manager.import_records(fake_client, ZONE, RECORDS, force=True)

        assert operation.successful_items == 3
        assert len(fake_client.calls_to("DELETE", CHANGELIST)) == 1

    @pytest.mark.asyncio
    async def test_submit_failure_fails_operation(self, dns_manager, fake_client, dns_routes):
        """Test a failed submit is kept on the operation"""
        fake_client.route(
            "POST", CHANGELIST + r"/submit", AkamaiAPIError(409, title="Conflict")
        )

        operation = await dns_manager.import_records(fake_client, ZONE, RECORDS)

        assert operation.status == OperationStatus.FAILED
        assert operation.successful_items == 3
        assert "Akamai API Error (409)" in operation.metadata.context["submit_error"]

    @pytest.mark.asyncio
    async def test_nothing_to_submit(self, dns_manager, fake_client, dns_routes):
        """Test the changelist is not submitted when every record failed"""
        operation = await dns_manager.import_records(
            fake_client,
            ZONE,
            [{"name": "x.example.com", "type": "CNAME", "rdata": ["a.com", "b.com"]}],
        )

        assert operation.failed_items == 1
        assert operation.status == OperationStatus.COMPLETED
        assert fake_client.calls_to("POST", CHANGELIST + r"/submit") == []

    @pytest.mark.asyncio
    async def test_empty_records_rejected(self, dns_manager, fake_client):
        with pytest.raises(ValidationError):
            await dns_manager.import_records(fake_client, ZONE, [])
        assert fake_client.calls == []
