"""
Bulk property operations for Akamai MCP
"""

import asyncio
import copy
import time
from typing import Any, Dict, List, Optional, Union

from .bulk import (
    BulkHandler,
    BulkOperation,
    CompensationRecord,
    ItemOutcome,
    OperationKind,
    OperationMetadata,
    describe_error,
)
from .client import PAPI_RULES_MEDIA_TYPE
from .config import BulkSettings
from .exceptions import AkamaiMCPError, ResourceNotFoundError, ValidationError
from .logging_config import setup_logging
from .models import (
    HostnameAction,
    HostnameOperation,
    Network,
    RulePatch,
    VersionRequest,
)
from .rules import apply_patches, validate_rule_tree
from .validation import InputValidator

logger = setup_logging()

# Activation statuses that mean the rollout has not settled yet
ACTIVATION_IN_PROGRESS = frozenset({"NEW", "PENDING", "ZONE_1", "ZONE_2", "ZONE_3"})


def first_item(response: Any, key: str) -> Optional[Dict[str, Any]]:
    """Return the first entry of ``response[key]["items"]``, if any"""
    if not isinstance(response, dict):
        return None
    items = (response.get(key) or {}).get("items") or []
    return items[0] if items else None


def link_id(link: Optional[str], segment: str) -> Optional[str]:
    """Extract the identifier that follows ``/<segment>/`` in a PAPI link.

    ``/papi/v1/properties/prp_1/versions/3?contractId=ctr_1`` gives
    ``prp_1`` for ``properties`` and ``3`` for ``versions``.
    """
    if not link:
        return None
    parts = link.split("?", 1)[0].rstrip("/").split("/")
    if segment in parts:
        index = parts.index(segment)
        if index + 1 < len(parts):
            return parts[index + 1]
    return None


class BulkPropertyManager(BulkHandler):
    """Bulk operations on Property Manager (PAPI) properties"""

    def __init__(
        self, tracker=None, executor=None, settings: Optional[BulkSettings] = None
    ):
        super().__init__(tracker, executor)
        self.settings = settings if settings is not None else BulkSettings()

    # Remote helpers

    async def _get_property(
        self,
        client,
        property_id: str,
        contract_id: Optional[str] = None,
        group_id: Optional[str] = None,
    ) -> Dict[str, Any]:
        response = await client.request(
            path=f"/papi/v1/properties/{property_id}",
            query_params={"contractId": contract_id, "groupId": group_id},
        )
        prop = first_item(response, "properties")
        if not prop:
            raise ResourceNotFoundError("Property", property_id)
        return prop

    @staticmethod
    def _scope(prop: Dict[str, Any]) -> Dict[str, Any]:
        return {"contractId": prop.get("contractId"), "groupId": prop.get("groupId")}

    async def _create_version(
        self, client, property_id: str, prop: Dict[str, Any], from_version: int
    ) -> int:
        response = await client.request(
            path=f"/papi/v1/properties/{property_id}/versions",
            method="POST",
            query_params=self._scope(prop),
            body={
                "createFromVersion": from_version,
                "createFromVersionEtag": prop.get("etag"),
            },
        )
        version = link_id((response or {}).get("versionLink"), "versions")
        if not version:
            raise AkamaiMCPError(
                f"Version creation for {property_id} returned no versionLink"
            )
        return int(version)

    async def _get_rules(
        self, client, property_id: str, version: int, prop: Dict[str, Any]
    ) -> Dict[str, Any]:
        response = await client.request(
            path=f"/papi/v1/properties/{property_id}/versions/{version}/rules",
            headers={"Accept": PAPI_RULES_MEDIA_TYPE},
            query_params=self._scope(prop),
        )
        if not isinstance(response, dict) or "rules" not in response:
            raise AkamaiMCPError(
                f"Rule tree of {property_id} v{version} could not be read"
            )
        return response

    async def _put_rules(
        self,
        client,
        property_id: str,
        version: int,
        prop: Dict[str, Any],
        rules: Dict[str, Any],
    ):
        await client.request(
            path=f"/papi/v1/properties/{property_id}/versions/{version}/rules",
            method="PUT",
            headers={"Content-Type": PAPI_RULES_MEDIA_TYPE},
            query_params=self._scope(prop),
            body={"rules": rules},
        )

    async def _put_hostnames(
        self,
        client,
        property_id: str,
        version: int,
        prop: Dict[str, Any],
        hostnames: List[Dict[str, Any]],
    ):
        await client.request(
            path=f"/papi/v1/properties/{property_id}/versions/{version}/hostnames",
            method="PUT",
            query_params=self._scope(prop),
            body=hostnames,
        )

    async def _set_version_note(
        self, client, property_id: str, version: int, prop: Dict[str, Any], note: str
    ):
        await client.request(
            path=f"/papi/v1/properties/{property_id}/versions/{version}/version-notes",
            method="PUT",
            query_params=self._scope(prop),
            body={"note": note},
        )

    async def _activate(
        self,
        client,
        property_id: str,
        version: int,
        network: Network,
        prop: Dict[str, Any],
        note: Optional[str] = None,
        notify_emails: Optional[List[str]] = None,
        acknowledge_all_warnings: bool = False,
    ) -> Optional[str]:
        body: Dict[str, Any] = {
            "propertyVersion": version,
            "network": network.value,
            "notifyEmails": notify_emails or [],
            "acknowledgeAllWarnings": acknowledge_all_warnings,
        }
        if note:
            body["note"] = note

        response = await client.request(
            path=f"/papi/v1/properties/{property_id}/activations",
            method="POST",
            query_params=self._scope(prop),
            body=body,
        )
        return link_id((response or {}).get("activationLink"), "activations")

    async def _wait_for_activation(
        self,
        client,
        property_id: str,
        activation_id: str,
        prop: Dict[str, Any],
        max_wait_ms: int,
    ) -> str:
        """Poll an activation until it leaves the in-progress states.

        Returns the last observed status, which is still an in-progress
        status when max_wait_ms ran out first.
        """
        deadline = time.monotonic() + max_wait_ms / 1000

        while True:
            response = await client.request(
                path=f"/papi/v1/properties/{property_id}/activations/{activation_id}",
                query_params=self._scope(prop),
            )
            activation = first_item(response, "activations") or {}
            status = activation.get("status") or "UNKNOWN"
            logger.debug(f"Activation {activation_id} of {property_id}: {status}")

            remaining = deadline - time.monotonic()
            if status not in ACTIVATION_IN_PROGRESS or remaining <= 0:
                return status
            await asyncio.sleep(min(self.settings.activation_poll_interval, remaining))

    # Bulk operations

    async def clone_properties(
        self,
        client,
        source_property_id: str,
        target_names: List[str],
        contract_id: str,
        group_id: str,
        product_id: Optional[str] = None,
        rule_format: Optional[str] = None,
        activate_immediately: bool = False,
        network: Union[Network, str] = Network.STAGING,
        max_concurrency: Optional[int] = None,
        customer: Optional[str] = None,
    ) -> BulkOperation:
        """Clone one property into many new properties.

        Raises:
            ValidationError: If the arguments are invalid (no operation is created)
            OperationSetupError: If the source property or its rules cannot be read
        """
        source_property_id = InputValidator.validate_property_id(source_property_id)
        if not isinstance(target_names, list) or not target_names:
            raise ValidationError("target_names must be a non-empty list")
        target_names = [InputValidator.validate_property_name(n) for n in target_names]
        contract_id = InputValidator.validate_contract_id(contract_id)
        group_id = InputValidator.validate_group_id(group_id)
        if product_id:
            product_id = InputValidator.validate_product_id(product_id)
        network = InputValidator.validate_network(network)
        max_concurrency = InputValidator.validate_concurrency(max_concurrency)

        metadata = OperationMetadata(
            rollback_enabled=False,
            parallel_execution=True,
            max_concurrency=max_concurrency or self.settings.clone_concurrency,
            customer=customer,
            context={
                "source_property_id": source_property_id,
                "network": network.value,
                "activate_immediately": activate_immediately,
            },
        )
        operation_id = self.tracker.create_operation(
            OperationKind.CLONE, len(target_names), metadata
        )
        self.tracker.start_operation(operation_id)

        try:
            source = await self._get_property(
                client, source_property_id, contract_id, group_id
            )
            source_rules = await self._get_rules(
                client,
                source_property_id,
                source["latestVersion"],
                {"contractId": contract_id, "groupId": group_id},
            )
        except Exception as e:
            raise self._setup_failed(operation_id, "bulk clone", e) from e

        metadata.context["source_property_name"] = source.get("propertyName")
        scope = {"contractId": contract_id, "groupId": group_id}
        create_body = {
            "productId": product_id or source.get("productId"),
            "ruleFormat": rule_format or source_rules.get("ruleFormat") or "latest",
        }

        def make_task(name: str):
            async def task():
                item_id = self.tracker.add_item(operation_id, name)

                async def work() -> ItemOutcome:
                    response = await client.request(
                        path="/papi/v1/properties",
                        method="POST",
                        query_params=scope,
                        body={**create_body, "propertyName": name},
                    )
                    new_id = link_id((response or {}).get("propertyLink"), "properties")
                    if not new_id:
                        raise AkamaiMCPError(
                            f"Creating {name} returned no propertyLink"
                        )
                    self.tracker.set_item_resource(operation_id, item_id, new_id)

                    await self._put_rules(
                        client, new_id, 1, scope, copy.deepcopy(source_rules["rules"])
                    )
                    result = {"property_id": new_id, "version": 1}

                    if activate_immediately:
                        result["activation_id"] = await self._activate(
                            client,
                            new_id,
                            1,
                            network,
                            scope,
                            note=f"Cloned from {source_property_id}",
                        )
                    logger.info(f"Cloned {source_property_id} into {name} ({new_id})")
                    return ItemOutcome.completed(result)

                await self._settle(operation_id, item_id, work)

            return task

        return await self._execute(operation_id, [make_task(n) for n in target_names])

    async def activate_properties(
        self,
        client,
        property_ids: List[str],
        network: Union[Network, str],
        note: Optional[str] = None,
        notify_emails: Optional[List[str]] = None,
        acknowledge_all_warnings: bool = False,
        wait_for_completion: bool = False,
        max_wait_time: Optional[int] = None,
        max_concurrency: Optional[int] = None,
        customer: Optional[str] = None,
    ) -> BulkOperation:
        """Activate the latest version of many properties on one network.

        Properties whose latest version is already active on the network are
        skipped. With wait_for_completion, each activation is polled until it
        settles or max_wait_time (ms) runs out; an unsettled activation fails
        its item but keeps running on Akamai.
        """
        property_ids = InputValidator.validate_property_ids(property_ids)
        network = InputValidator.validate_network(network)
        note = InputValidator.validate_text_field(note, "note")
        notify_emails = InputValidator.validate_emails(notify_emails)
        if max_wait_time is None:
            max_wait_time = self.settings.activation_max_wait_ms
        if max_wait_time < 0:
            raise ValidationError("max_wait_time must not be negative")
        max_concurrency = InputValidator.validate_concurrency(max_concurrency)

        metadata = OperationMetadata(
            rollback_enabled=False,
            parallel_execution=True,
            max_concurrency=max_concurrency or self.settings.activation_concurrency,
            customer=customer,
            notes=note or None,
            context={
                "network": network.value,
                "wait_for_completion": wait_for_completion,
            },
        )
        operation_id = self.tracker.create_operation(
            OperationKind.ACTIVATE, len(property_ids), metadata
        )
        self.tracker.start_operation(operation_id)

        version_field = (
            "productionVersion" if network == Network.PRODUCTION else "stagingVersion"
        )

        def make_task(property_id: str):
            async def task():
                item_id = self.tracker.add_item(operation_id, property_id, property_id)

                async def work() -> ItemOutcome:
                    prop = await self._get_property(client, property_id)
                    self.tracker.set_item_resource(
                        operation_id,
                        item_id,
                        property_id,
                        name=prop.get("propertyName"),
                    )
                    latest = prop.get("latestVersion")
                    if latest is None:
                        return ItemOutcome.failed(
                            f"Property {property_id} has no latest version to activate"
                        )
                    if prop.get(version_field) == latest:
                        return ItemOutcome.skipped(
                            {
                                "message": f"Already activated on {network.value}",
                                "version": latest,
                            }
                        )

                    activation_id = await self._activate(
                        client,
                        property_id,
                        latest,
                        network,
                        prop,
                        note=note or None,
                        notify_emails=notify_emails,
                        acknowledge_all_warnings=acknowledge_all_warnings,
                    )
                    result = {"activation_id": activation_id, "version": latest}
                    if not wait_for_completion:
                        return ItemOutcome.completed(result)
                    if not activation_id:
                        raise AkamaiMCPError(
                            f"Activation of {property_id} returned no activationLink"
                        )

                    status = await self._wait_for_activation(
                        client, property_id, activation_id, prop, max_wait_time
                    )
                    result["status"] = status
                    if status == "ACTIVE":
                        return ItemOutcome.completed(result)

                    error = f"Activation status: {status}"
                    if status in ACTIVATION_IN_PROGRESS:
                        error += (
                            f" (not finished after {max_wait_time}ms, "
                            "activation continues on Akamai)"
                        )
                    return ItemOutcome.failed(error, result)

                await self._settle(operation_id, item_id, work)

            return task

        return await self._execute(operation_id, [make_task(p) for p in property_ids])

    async def _restore_rules(
        self,
        client,
        operation_id: str,
        item_id: str,
        property_id: str,
        prop: Dict[str, Any],
        snapshot: Dict[str, Any],
    ) -> str:
        """Write the captured rule tree back; returns the suffix for the item error"""
        compensation = CompensationRecord(
            description=f"Restore rules of {property_id} v{snapshot['version']}",
            snapshot=snapshot,
        )
        self.tracker.record_compensation(operation_id, item_id, compensation)
        compensation.attempted = True
        try:
            await self._put_rules(
                client,
                property_id,
                snapshot["version"],
                prop,
                copy.deepcopy(snapshot["original_rules"]),
            )
        except Exception as e:
            compensation.succeeded = False
            compensation.error = describe_error(e)
            logger.error(f"Rollback of {property_id} failed: {compensation.error}")
            return f" (Rollback failed: {compensation.error})"

        compensation.succeeded = True
        logger.info(f"Rolled back rules of {property_id} v{snapshot['version']}")
        return " (Rolled back successfully)"

    async def update_property_rules(
        self,
        client,
        property_ids: List[str],
        rule_patches: List[Union[RulePatch, Dict[str, Any]]],
        create_new_version: bool = False,
        validate_changes: bool = False,
        note: Optional[str] = None,
        customer: Optional[str] = None,
    ) -> BulkOperation:
        """Apply the same rule patches to many properties, one at a time.

        The rule tree of each property is captured before patching; when any
        later step fails the capture is written back once and the item error
        says whether that rollback worked.
        """
        property_ids = InputValidator.validate_property_ids(property_ids)
        raw_patches = [
            (
                p.model_dump(by_alias=True, exclude_none=True)
                if isinstance(p, RulePatch)
                else p
            )
            for p in (rule_patches or [])
        ]
        InputValidator.validate_rule_patches(raw_patches)
        patches = [RulePatch.model_validate(p) for p in raw_patches]
        note = InputValidator.validate_text_field(note, "note")

        metadata = OperationMetadata(
            rollback_enabled=True,
            parallel_execution=False,
            max_concurrency=1,
            customer=customer,
            notes=note or None,
            context={"patch_count": len(patches)},
        )
        operation_id = self.tracker.create_operation(
            OperationKind.UPDATE_RULES, len(property_ids), metadata
        )
        self.tracker.start_operation(operation_id)

        def make_task(property_id: str):
            async def task():
                item_id = self.tracker.add_item(operation_id, property_id, property_id)

                async def work() -> ItemOutcome:
                    prop = await self._get_property(client, property_id)
                    self.tracker.set_item_resource(
                        operation_id,
                        item_id,
                        property_id,
                        name=prop.get("propertyName"),
                    )
                    version = prop["latestVersion"]
                    if create_new_version:
                        version = await self._create_version(
                            client, property_id, prop, version
                        )

                    current = await self._get_rules(client, property_id, version, prop)
                    snapshot = {
                        "original_rules": copy.deepcopy(current["rules"]),
                        "version": version,
                    }
                    self.tracker.set_rollback_data(operation_id, item_id, snapshot)

                    try:
                        patched = apply_patches(current["rules"], patches)
                        if validate_changes:
                            validate_rule_tree(patched)
                        await self._put_rules(
                            client, property_id, version, prop, patched
                        )
                        if note:
                            await self._set_version_note(
                                client, property_id, version, prop, note
                            )
                    except Exception as e:
                        error = describe_error(e)
                        error += await self._restore_rules(
                            client, operation_id, item_id, property_id, prop, snapshot
                        )
                        return ItemOutcome.failed(error, {"version": version})

                    return ItemOutcome.completed(
                        {"version": version, "patches_applied": len(patches)}
                    )

                await self._settle(operation_id, item_id, work)

            return task

        return await self._execute(operation_id, [make_task(p) for p in property_ids])

    async def manage_hostnames(
        self,
        client,
        operations: List[Union[HostnameOperation, Dict[str, Any]]],
        create_new_version: bool = False,
        validate_dns: bool = True,
        note: Optional[str] = None,
        customer: Optional[str] = None,
    ) -> BulkOperation:
        """Add or remove hostnames on many properties.

        Each hostname is one item. The hostnames of a property are written
        in a single PUT; if the version note cannot be written afterwards,
        the previous hostname list is restored.
        """
        if not isinstance(operations, list) or not operations:
            raise ValidationError("operations must be a non-empty list")
        operations = [
            (
                op
                if isinstance(op, HostnameOperation)
                else HostnameOperation.model_validate(op)
            )
            for op in operations
        ]
        for op in operations:
            op.property_id = InputValidator.validate_property_id(op.property_id)
            if not op.hostnames:
                raise ValidationError(f"No hostnames given for {op.property_id}")
        note = InputValidator.validate_text_field(note, "note")

        total = sum(len(op.hostnames) for op in operations)
        metadata = OperationMetadata(
            rollback_enabled=True,
            parallel_execution=False,
            max_concurrency=1,
            customer=customer,
            notes=note or None,
            context={"properties": [op.property_id for op in operations]},
        )
        operation_id = self.tracker.create_operation(
            OperationKind.ADD_HOSTNAMES, total, metadata
        )
        self.tracker.start_operation(operation_id)

        def make_task(op: HostnameOperation):
            async def task():
                base_result = {"property_id": op.property_id, "action": op.action.value}
                pending = {}
                for change in op.hostnames:
                    hostname = change.hostname.strip().lower()
                    item_id = self.tracker.add_item(operation_id, hostname, hostname)
                    pending[item_id] = change

                def settle(item_id: str, outcome: ItemOutcome):
                    self.tracker.update_item_status(
                        operation_id,
                        item_id,
                        outcome.status,
                        outcome.result,
                        outcome.error,
                    )
                    pending.pop(item_id, None)

                try:
                    await self._apply_hostnames(
                        client,
                        operation_id,
                        op,
                        pending,
                        settle,
                        base_result,
                        create_new_version,
                        validate_dns,
                        note,
                    )
                except Exception as e:
                    error = describe_error(e)
                    logger.warning(
                        f"Hostname changes for {op.property_id} failed: {error}"
                    )
                    for item_id in list(pending):
                        settle(item_id, ItemOutcome.failed(error, base_result))

            return task

        return await self._execute(operation_id, [make_task(op) for op in operations])

    async def _apply_hostnames(
        self,
        client,
        operation_id: str,
        op: HostnameOperation,
        pending: Dict[str, Any],
        settle,
        base_result: Dict[str, Any],
        create_new_version: bool,
        validate_dns: bool,
        note: Optional[str],
    ):
        prop = await self._get_property(client, op.property_id)
        version = prop["latestVersion"]
        if create_new_version:
            version = await self._create_version(client, op.property_id, prop, version)

        response = await client.request(
            path=f"/papi/v1/properties/{op.property_id}/versions/{version}/hostnames",
            query_params=self._scope(prop),
        )
        current = ((response or {}).get("hostnames") or {}).get("items") or []
        snapshot = copy.deepcopy(current)
        hostnames = copy.deepcopy(current)
        result = {**base_result, "version": version}

        accepted = []
        for item_id, change in list(pending.items()):
            self.tracker.set_rollback_data(
                operation_id, item_id, {"hostnames": snapshot, "version": version}
            )
            hostname = change.hostname.strip().lower()
            existing = {h.get("cnameFrom", "").lower() for h in hostnames}

            if op.action == HostnameAction.ADD:
                if hostname in existing:
                    settle(
                        item_id, ItemOutcome.failed("Hostname already exists", result)
                    )
                    continue
                if validate_dns and not InputValidator.is_valid_hostname(hostname):
                    settle(
                        item_id, ItemOutcome.failed("Invalid hostname format", result)
                    )
                    continue
                hostnames.append(
                    {
                        "cnameType": "EDGE_HOSTNAME",
                        "cnameFrom": hostname,
                        "cnameTo": change.edge_hostname or f"{hostname}.edgekey.net",
                    }
                )
            else:
                if hostname not in existing:
                    settle(
                        item_id,
                        ItemOutcome.skipped(
                            {**result, "message": "Hostname not present"}
                        ),
                    )
                    continue
                hostnames = [
                    h for h in hostnames if h.get("cnameFrom", "").lower() != hostname
                ]
            accepted.append(item_id)

        if not accepted:
            return

        await self._put_hostnames(client, op.property_id, version, prop, hostnames)

        if note:
            try:
                await self._set_version_note(
                    client, op.property_id, version, prop, note
                )
            except Exception as e:
                error = describe_error(e)
                compensation = CompensationRecord(
                    description=f"Restore hostnames of {op.property_id} v{version}",
                    snapshot=snapshot,
                    attempted=True,
                )
                try:
                    await self._put_hostnames(
                        client, op.property_id, version, prop, copy.deepcopy(snapshot)
                    )
                    compensation.succeeded = True
                    error += " (Rolled back successfully)"
                except Exception as rollback_error:
                    compensation.succeeded = False
                    compensation.error = describe_error(rollback_error)
                    error += f" (Rollback failed: {compensation.error})"
                    logger.error(
                        f"Hostname rollback of {op.property_id} failed: "
                        f"{compensation.error}"
                    )

                for item_id in accepted:
                    self.tracker.record_compensation(
                        operation_id, item_id, compensation
                    )
                    settle(item_id, ItemOutcome.failed(error, result))
                return

        for item_id in accepted:
            settle(item_id, ItemOutcome.completed(result))
        logger.info(
            f"{op.action.value} {len(accepted)} hostname(s) "
            f"on {op.property_id} v{version}"
        )

    async def create_versions(
        self,
        client,
        properties: List[Union[VersionRequest, Dict[str, Any]]],
        default_note: Optional[str] = None,
        customer: Optional[str] = None,
    ) -> BulkOperation:
        """Create a new version on each property, optionally with a note"""
        if not isinstance(properties, list) or not properties:
            raise ValidationError("properties must be a non-empty list")
        version_requests = [
            p if isinstance(p, VersionRequest) else VersionRequest.model_validate(p)
            for p in properties
        ]
        for req in version_requests:
            req.property_id = InputValidator.validate_property_id(req.property_id)
            req.note = InputValidator.validate_text_field(req.note, "note") or None
        default_note = InputValidator.validate_text_field(default_note, "note")

        metadata = OperationMetadata(
            rollback_enabled=False,
            parallel_execution=False,
            max_concurrency=1,
            customer=customer,
            notes=default_note or None,
        )
        operation_id = self.tracker.create_operation(
            OperationKind.CREATE_VERSIONS, len(version_requests), metadata
        )
        self.tracker.start_operation(operation_id)

        def make_task(req: VersionRequest):
            async def task():
                item_id = self.tracker.add_item(
                    operation_id, req.property_id, req.property_id
                )

                async def work() -> ItemOutcome:
                    prop = await self._get_property(client, req.property_id)
                    self.tracker.set_item_resource(
                        operation_id,
                        item_id,
                        req.property_id,
                        name=prop.get("propertyName"),
                    )
                    base = req.base_version or prop["latestVersion"]
                    version = await self._create_version(
                        client, req.property_id, prop, base
                    )
                    result = {"version": version, "base_version": base}

                    note = req.note or default_note
                    if note:
                        try:
                            await self._set_version_note(
                                client, req.property_id, version, prop, note
                            )
                        except Exception as e:
                            return ItemOutcome.failed(
                                f"Version {version} created but the note could not "
                                f"be set: {describe_error(e)}",
                                result,
                            )
                    return ItemOutcome.completed(result)

                await self._settle(operation_id, item_id, work)

            return task

        return await self._execute(
            operation_id, [make_task(r) for r in version_requests]
        )
