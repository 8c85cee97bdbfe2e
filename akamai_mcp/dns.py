"""
Bulk Edge DNS record import for Akamai MCP
"""

from typing import Any, Dict, List, Optional, Union

from .bulk import (
    BulkHandler,
    BulkOperation,
    ItemOutcome,
    OperationKind,
    OperationMetadata,
    describe_error,
)
from .exceptions import AkamaiAPIError, BulkOperationError, ValidationError
from .logging_config import setup_logging
from .models import DNSRecordSet
from .validation import InputValidator

logger = setup_logging()


class DNSBulkManager(BulkHandler):
    """Import record sets into an Edge DNS zone through one changelist"""

    async def get_changelist(self, client, zone: str) -> Optional[Dict[str, Any]]:
        """Return the pending changelist of a zone, or None when there is none"""
        try:
            return await client.request(path=f"/config-dns/v2/changelists/{zone}")
        except AkamaiAPIError as e:
            if e.status_code == 404:
                return None
            raise

    async def ensure_clean_changelist(self, client, zone: str, force: bool = False):
        """Start a fresh changelist for zone.

        An existing changelist is discarded only when force is set; otherwise
        it is reported so nobody's pending changes are lost.
        """
        existing = await self.get_changelist(client, zone)
        if existing is not None:
            if not force:
                pending = len((existing or {}).get("recordSets") or [])
                raise BulkOperationError(
                    f"A changelist already exists for zone {zone} "
                    f"(last modified by {existing.get('lastModifiedBy', 'unknown')}, "
                    f"{pending} pending change(s)). Submit or discard it first, "
                    "or use force to discard it",
                    error_code="CHANGELIST_EXISTS",
                    details={"zone": zone, "pending_changes": pending},
                )

            logger.warning(f"Discarding existing changelist for {zone}")
            await client.request(
                path=f"/config-dns/v2/changelists/{zone}", method="DELETE"
            )

        await client.request(
            path="/config-dns/v2/changelists",
            method="POST",
            query_params={"zone": zone},
        )
        logger.info(f"Created changelist for {zone}")

    async def import_records(
        self,
        client,
        zone: str,
        records: List[Union[DNSRecordSet, Dict[str, Any]]],
        skip_validation: bool = False,
        comment: Optional[str] = None,
        force: bool = False,
        customer: Optional[str] = None,
    ) -> BulkOperation:
        """Add record sets to a zone changelist and submit it.

        Records are written one at a time; the changelist is submitted when
        at least one record was accepted. A failed submit marks the whole
        operation failed and keeps the error in ``context["submit_error"]``.
        """
        zone = InputValidator.validate_hostname(zone)
        if not isinstance(records, list) or not records:
            raise ValidationError(
                "No records to import. Provide at least one record set"
            )
        record_sets = [
            r if isinstance(r, DNSRecordSet) else DNSRecordSet.model_validate(r)
            for r in records
        ]
        comment = InputValidator.validate_text_field(comment, "comment")

        metadata = OperationMetadata(
            rollback_enabled=False,
            parallel_execution=False,
            max_concurrency=1,
            customer=customer,
            notes=comment or None,
            context={"zone": zone},
        )
        operation_id = self.tracker.create_operation(
            OperationKind.IMPORT_RECORDS, len(record_sets), metadata
        )
        self.tracker.start_operation(operation_id)

        try:
            await self.ensure_clean_changelist(client, zone, force=force)
        except Exception as e:
            raise self._setup_failed(operation_id, "DNS record import", e) from e

        def make_task(record: DNSRecordSet):
            label = f"{record.name} {record.type}"

            async def task():
                item_id = self.tracker.add_item(operation_id, label, label)

                async def work() -> ItemOutcome:
                    if not skip_validation:
                        try:
                            InputValidator.validate_dns_record(record)
                        except ValidationError as e:
                            return ItemOutcome.failed(e.message)

                    await client.request(
                        path=(
                            f"/config-dns/v2/changelists/{zone}/recordsets/"
                            f"{record.name}/{record.type}"
                        ),
                        method="PUT",
                        body=record.model_dump(),
                    )
                    return ItemOutcome.completed(
                        {"ttl": record.ttl, "rdata": record.rdata}
                    )

                await self._settle(operation_id, item_id, work)

            return task

        operation = await self._execute(
            operation_id, [make_task(r) for r in record_sets]
        )

        if operation.successful_items > 0:
            try:
                response = await client.request(
                    path=f"/config-dns/v2/changelists/{zone}/submit",
                    method="POST",
                    body={
                        "comment": comment
                        or f"Bulk import of {operation.successful_items} records"
                    },
                )
                operation.metadata.context["submit_response"] = response
                logger.info(f"Submitted changelist for {zone}")
            except Exception as e:
                error = describe_error(e)
                operation.metadata.context["submit_error"] = error
                self.tracker.fail_operation(
                    operation_id, f"Changelist submit failed: {error}"
                )

        return operation
