"""
Markdown reports for bulk operations
"""

import json
from typing import Any, Dict, List, Optional

from .bulk import BulkOperation, ItemRecord, ItemStatus, OperationStatus


def operation_not_found(operation_id: str) -> str:
    return (
        f"Operation {operation_id} not found. Operations are kept in memory "
        "and may be lost after server restart."
    )


def _result(item: ItemRecord, key: str, default: Any = None) -> Any:
    if isinstance(item.result, dict):
        return item.result.get(key, default)
    return default


def _label(item: ItemRecord) -> str:
    if item.resource_id and item.resource_id != item.name:
        return f"**{item.name}** ({item.resource_id})"
    return f"**{item.name}**"


def _header(
    title: str, operation: BulkOperation, extra: Optional[List[str]] = None
) -> List[str]:
    lines = [f"# {title}", "", f"**Operation ID:** {operation.operation_id}"]
    lines.extend(extra or [])
    lines.append(f"**Total Items:** {operation.total_items}")
    lines.append(f"**Successful:** {operation.successful_items}")
    lines.append(f"**Failed:** {operation.failed_items}")
    if operation.skipped_items:
        lines.append(f"**Skipped:** {operation.skipped_items}")
    if operation.status == OperationStatus.FAILED:
        error = operation.metadata.context.get("error")
        lines.append(f"**Status:** failed{f' ({error})' if error else ''}")
    lines.append("")
    return lines


def _failed_section(operation: BulkOperation, title: str) -> List[str]:
    failed = operation.items_with_status(ItemStatus.FAILED)
    if not failed:
        return []
    lines = [f"## [ERROR] {title} ({len(failed)})"]
    for item in failed:
        lines.append(f"- {_label(item)}")
        lines.append(f"  Error: {item.error}")
    lines.append("")
    return lines


def _skipped_section(operation: BulkOperation) -> List[str]:
    skipped = operation.items_with_status(ItemStatus.SKIPPED)
    if not skipped:
        return []
    lines = [f"## [SKIPPED] Skipped ({len(skipped)})"]
    for item in skipped:
        lines.append(f"- {_label(item)}")
        message = _result(item, "message")
        if message:
            lines.append(f"  {message}")
    lines.append("")
    return lines


def _summary_section(operation: BulkOperation, unit: str) -> List[str]:
    duration = operation.duration_seconds
    lines = ["## Operation Summary", f"- **Duration:** {round(duration)} seconds"]
    if operation.processed_items:
        average = duration * 1000 / operation.processed_items
        lines.append(f"- **Average time per {unit}:** {round(average)} ms")
    lines.append("")
    return lines


def _next_steps(steps: List[str]) -> List[str]:
    lines = ["## Next Steps"]
    lines.extend(f"{i}. {step}" for i, step in enumerate(steps, 1))
    return lines


def format_clone_report(operation: BulkOperation) -> str:
    source_id = operation.metadata.context.get("source_property_id", "")
    source_name = operation.metadata.context.get("source_property_name")
    source = f"{source_name} ({source_id})" if source_name else source_id
    lines = _header(
        "Bulk Clone Operation Results", operation, [f"**Source Property:** {source}"]
    )

    completed = operation.items_with_status(ItemStatus.COMPLETED)
    if completed:
        lines.append(f"## [DONE] Successfully Cloned ({len(completed)})")
        for item in completed:
            lines.append(f"- **{item.name}** ({_result(item, 'property_id')})")
            if _result(item, "activation_id"):
                lines.append(f"  Activation started: {_result(item, 'activation_id')}")
        lines.append("")

    lines += _failed_section(operation, "Failed Clones")
    lines += _summary_section(operation, "clone")

    if operation.successful_items:
        lines += _next_steps(
            [
                "Configure hostnames for cloned properties",
                "Update origin settings as needed",
                "Test and activate properties",
            ]
        )
    else:
        lines += _next_steps(
            [
                "Review failed clones for errors",
                "Fix permission or validation issues",
                "Retry failed operations individually",
            ]
        )
    return "\n".join(lines)


def format_activation_report(operation: BulkOperation) -> str:
    network = operation.metadata.context.get("network", "")
    lines = _header("Bulk Activation Results", operation, [f"**Network:** {network}"])

    completed = operation.items_with_status(ItemStatus.COMPLETED)
    if completed:
        lines.append(f"## [DONE] Successfully Activated ({len(completed)})")
        for item in completed:
            lines.append(f"- {_label(item)}")
            lines.append(
                f"  Version: {_result(item, 'version')}, "
                f"Activation: {_result(item, 'activation_id')}"
            )
            if _result(item, "status"):
                lines.append(f"  Status: {_result(item, 'status')}")
        lines.append("")

    lines += _skipped_section(operation)
    lines += _failed_section(operation, "Failed Activations")
    lines += _summary_section(operation, "property")

    if operation.failed_items == 0:
        lines += _next_steps(
            [
                "Monitor activation progress in Control Center",
                "Test activated properties",
                "Check get_bulk_operation_status for the final state",
            ]
        )
    else:
        lines += _next_steps(
            [
                "Review the errors of failed properties",
                "Fix any issues and retry activation",
                "Consider activating to staging first",
            ]
        )
    return "\n".join(lines)


def format_rule_update_report(
    operation: BulkOperation, patches: List[Dict[str, Any]]
) -> str:
    lines = _header(
        "Bulk Rule Update Results",
        operation,
        [f"**Patches Applied:** {len(patches)}"],
    )

    lines.append("## Patches Applied")
    for idx, patch in enumerate(patches, 1):
        lines.append(f"{idx}. **{patch.get('op')}** {patch.get('path')}")
        if "value" in patch:
            value = json.dumps(patch["value"], indent=2).replace("\n", "\n   ")
            lines.append(f"   Value: {value}")
    lines.append("")

    completed = operation.items_with_status(ItemStatus.COMPLETED)
    if completed:
        lines.append(f"## [DONE] Successfully Updated ({len(completed)})")
        for item in completed:
            lines.append(f"- {_label(item)}")
            lines.append(f"  Version: {_result(item, 'version')}")
        lines.append("")

    lines += _failed_section(operation, "Failed Updates")

    steps = [
        "Review the updated rules in each property",
        "Test changes in staging environment",
        "Activate properties when ready",
    ]
    if operation.failed_items:
        steps.append("Investigate failed updates and retry if needed")
    lines += _next_steps(steps)
    return "\n".join(lines)


def format_hostname_report(operation: BulkOperation) -> str:
    lines = _header("Bulk Hostname Management Results", operation)

    by_property: Dict[str, List[ItemRecord]] = {}
    for item in operation.items:
        by_property.setdefault(_result(item, "property_id", "unknown"), []).append(item)

    lines.append("## Results by Property")
    for property_id, items in by_property.items():
        ok = [i for i in items if i.status == ItemStatus.COMPLETED]
        failed = [i for i in items if i.status == ItemStatus.FAILED]
        skipped = [i for i in items if i.status == ItemStatus.SKIPPED]
        lines.append("")
        lines.append(f"### {property_id}")
        lines.append(
            f"Success: {len(ok)}, Failed: {len(failed)}, Skipped: {len(skipped)}"
        )
        if ok:
            lines.append("")
            lines.append("**[DONE] Successful:**")
            for item in ok:
                verb = "Added" if _result(item, "action") == "add" else "Removed"
                lines.append(f"- {verb}: {item.name}")
        if skipped:
            lines.append("")
            lines.append("**[SKIPPED] Skipped:**")
            for item in skipped:
                lines.append(f"- {item.name}: {_result(item, 'message', '')}")
        if failed:
            lines.append("")
            lines.append("**[ERROR] Failed:**")
            for item in failed:
                lines.append(f"- {item.name}: {item.error}")
    lines.append("")

    lines += _next_steps(
        [
            "Update DNS records for added hostnames",
            "Configure SSL certificates as needed",
            "Test hostname resolution",
            "Activate properties when ready",
        ]
    )
    return "\n".join(lines)


def format_version_report(operation: BulkOperation) -> str:
    lines = _header("Batch Version Creation Results", operation)

    completed = operation.items_with_status(ItemStatus.COMPLETED)
    if completed:
        lines.append(f"## [DONE] Versions Created ({len(completed)})")
        for item in completed:
            lines.append(
                f"- {_label(item)}: v{_result(item, 'version')} "
                f"(from v{_result(item, 'base_version')})"
            )
        lines.append("")

    lines += _failed_section(operation, "Failed Properties")
    lines += _summary_section(operation, "property")
    lines += _next_steps(
        [
            "Apply rule changes to the new versions",
            "Activate the new versions when ready",
        ]
    )
    return "\n".join(lines)


def format_dns_import_report(operation: BulkOperation) -> str:
    context = operation.metadata.context
    lines = _header(
        f"Bulk Import Results - {context.get('zone', '')}", operation
    )

    if operation.successful_items:
        if context.get("submit_error"):
            lines.append(f"**Changelist submit failed:** {context['submit_error']}")
        else:
            lines.append("**Changelist submitted.**")
        lines.append("")
    else:
        lines.append("No records were accepted; the changelist was not submitted.")
        lines.append("")

    lines += _failed_section(operation, "Failed Records")
    lines += _summary_section(operation, "record")
    lines += _next_steps(
        [
            "Verify the records with a DNS lookup once the zone is activated",
            "Fix failed records and import them again",
        ]
    )
    return "\n".join(lines)


def format_operation_status(operation: BulkOperation, detailed: bool = False) -> str:
    """Progress report of any operation, with an ETA while it runs"""
    lines = [
        "# Bulk Operation Status",
        "",
        f"**Operation ID:** {operation.operation_id}",
        f"**Type:** {operation.kind.value}",
        f"**Status:** {operation.status.value}",
        f"**Start Time:** {operation.start_time.isoformat()}",
    ]
    if operation.end_time:
        lines.append(f"**End Time:** {operation.end_time.isoformat()}")
        lines.append(f"**Duration:** {round(operation.duration_seconds)} seconds")
    if operation.metadata.context.get("error"):
        lines.append(f"**Error:** {operation.metadata.context['error']}")

    lines += [
        "",
        "**Progress:**",
        f"- Total Items: {operation.total_items}",
        f"- Processed: {operation.processed_items}",
        f"- Successful: {operation.successful_items}",
        f"- Failed: {operation.failed_items}",
        f"- Skipped: {operation.skipped_items}",
    ]
    if operation.processed_items:
        lines.append(f"- Success Rate: {operation.success_rate:.1f}%")

    if detailed and operation.items:
        lines.append("")
        lines.append("## Detailed Item Status")
        for status in ItemStatus:
            items = operation.items_with_status(status)
            if not items:
                continue
            lines.append("")
            lines.append(f"### {status.value.upper()} ({len(items)})")
            for item in items:
                lines.append(f"- {_label(item)}")
                if item.error:
                    lines.append(f"  Error: {item.error}")
                if item.result is not None:
                    lines.append(f"  Result: {json.dumps(item.result, default=str)}")

    estimate = operation.estimate_completion()
    if estimate is not None:
        remaining, avg_ms, eta = estimate
        lines += [
            "",
            "## Estimated Completion",
            f"- Remaining Items: {remaining}",
            f"- Average Time per Item: {round(avg_ms)} ms",
            f"- Estimated Completion: {eta.isoformat()}",
        ]

    return "\n".join(lines)
