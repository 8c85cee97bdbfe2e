"""Bulk operation tracking and execution for Akamai MCP.

A bulk operation is one request spanning many target resources. The
:class:`OperationTracker` owns every operation record and is the only writer
of its counters, the :class:`OperationStore` bounds how many records are
kept, and the :class:`BulkExecutor` runs per-item coroutines either through a
semaphore-bounded worker pool or strictly one after another.
"""

import asyncio
import time
import uuid
from collections import OrderedDict
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple

from .exceptions import (
    AkamaiMCPError,
    BulkOperationError,
    ErrorSanitizer,
    OperationSetupError,
)
from .logging_config import setup_logging

logger = setup_logging()

ItemTask = Callable[[], Awaitable[Any]]


class OperationKind(str, Enum):
    """Kinds of bulk operations."""

    CLONE = "clone"
    ACTIVATE = "activate"
    UPDATE_RULES = "update-rules"
    ADD_HOSTNAMES = "add-hostnames"
    UPDATE_CERTIFICATES = "update-certificates"
    CREATE_VERSIONS = "create-versions"
    IMPORT_RECORDS = "import-records"


class OperationStatus(str, Enum):
    """Lifecycle of a bulk operation."""

    PENDING = "pending"
    IN_PROGRESS = "in-progress"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in (
            OperationStatus.COMPLETED,
            OperationStatus.FAILED,
            OperationStatus.CANCELLED,
        )


class ItemStatus(str, Enum):
    """Lifecycle of a single item within an operation."""

    PENDING = "pending"
    IN_PROGRESS = "in-progress"
    COMPLETED = "completed"
    FAILED = "failed"
    SKIPPED = "skipped"

    @property
    def is_terminal(self) -> bool:
        return self in (ItemStatus.COMPLETED, ItemStatus.FAILED, ItemStatus.SKIPPED)


class ExecutionMode(Enum):
    """How item tasks are scheduled."""

    PARALLEL = "parallel"
    SEQUENTIAL = "sequential"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class OperationMetadata:
    """Execution settings and free-form context of an operation."""

    rollback_enabled: bool = False
    parallel_execution: bool = True
    max_concurrency: int = 5
    customer: Optional[str] = None
    notes: Optional[str] = None
    context: Dict[str, Any] = field(default_factory=dict)

    @property
    def execution_mode(self) -> ExecutionMode:
        if self.parallel_execution:
            return ExecutionMode.PARALLEL
        return ExecutionMode.SEQUENTIAL


@dataclass
class CompensationRecord:
    """A compensating write attached to the mutation it would undo."""

    description: str
    snapshot: Any
    attempted: bool = False
    succeeded: Optional[bool] = None
    error: Optional[str] = None

    @property
    def resolved(self) -> bool:
        return self.attempted and bool(self.succeeded)


@dataclass
class ItemRecord:
    """Status of one target resource within an operation."""

    item_id: str
    name: str
    resource_id: str = ""
    status: ItemStatus = ItemStatus.PENDING
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    result: Any = None
    error: Optional[str] = None
    rollback_data: Any = None
    compensation: Optional[CompensationRecord] = None

    @property
    def duration_ms(self) -> Optional[float]:
        if self.start_time is None or self.end_time is None:
            return None
        return (self.end_time - self.start_time).total_seconds() * 1000


@dataclass
class BulkOperation:
    """Aggregate state of a bulk operation."""

    operation_id: str
    kind: OperationKind
    total_items: int
    metadata: OperationMetadata = field(default_factory=OperationMetadata)
    status: OperationStatus = OperationStatus.PENDING
    start_time: datetime = field(default_factory=utcnow)
    end_time: Optional[datetime] = None
    processed_items: int = 0
    successful_items: int = 0
    failed_items: int = 0
    skipped_items: int = 0
    items: List[ItemRecord] = field(default_factory=list)

    @property
    def is_finished(self) -> bool:
        return self.status.is_terminal

    @property
    def duration_seconds(self) -> float:
        end = self.end_time or utcnow()
        return (end - self.start_time).total_seconds()

    @property
    def success_rate(self) -> float:
        if self.processed_items == 0:
            return 0.0
        return self.successful_items / self.processed_items * 100

    def items_with_status(self, status: ItemStatus) -> List[ItemRecord]:
        return [item for item in self.items if item.status == status]

    def estimate_completion(
        self, now: Optional[datetime] = None
    ) -> Optional[Tuple[int, float, datetime]]:
        """Remaining items, average ms per item and estimated finish time.

        Only meaningful while the operation is in progress.
        """
        if self.status != OperationStatus.IN_PROGRESS:
            return None
        now = now or utcnow()
        elapsed_ms = (now - self.start_time).total_seconds() * 1000
        avg_ms = elapsed_ms / max(self.processed_items, 1)
        remaining = max(self.total_items - self.processed_items, 0)
        eta = datetime.fromtimestamp(
            now.timestamp() + avg_ms * remaining / 1000, tz=timezone.utc
        )
        return remaining, avg_ms, eta


class OperationStore:
    """In-memory table of operations bounded by count and age.

    Only finished operations are evicted: expired ones first, then the
    oldest finished ones while the table is over capacity. In-flight
    operations are always kept.
    """

    def __init__(self, max_operations: int = 1000, max_age_seconds: float = 86400):
        if max_operations < 1:
            raise ValueError("max_operations must be at least 1")
        self.max_operations = max_operations
        self.max_age_seconds = max_age_seconds
        self._operations: "OrderedDict[str, BulkOperation]" = OrderedDict()

    def put(self, operation: BulkOperation):
        self._operations[operation.operation_id] = operation
        self._evict()

    def get(self, operation_id: str) -> Optional[BulkOperation]:
        return self._operations.get(operation_id)

    def list(self) -> List[BulkOperation]:
        return list(self._operations.values())

    def clear(self):
        self._operations.clear()

    def __len__(self) -> int:
        return len(self._operations)

    def __contains__(self, operation_id: object) -> bool:
        return operation_id in self._operations

    def _evict(self):
        now = utcnow()
        expired = [
            op_id
            for op_id, op in self._operations.items()
            if op.is_finished
            and (now - (op.end_time or op.start_time)).total_seconds()
            > self.max_age_seconds
        ]
        for op_id in expired:
            del self._operations[op_id]
            logger.debug(f"Evicted expired operation {op_id}")

        while len(self._operations) > self.max_operations:
            oldest_finished = next(
                (op_id for op_id, op in self._operations.items() if op.is_finished),
                None,
            )
            if oldest_finished is None:
                logger.warning(
                    f"Operation store over capacity ({len(self._operations)}/"
                    f"{self.max_operations}) with no finished operations to evict"
                )
                break
            del self._operations[oldest_finished]
            logger.debug(f"Evicted operation {oldest_finished} (capacity)")


class OperationTracker:
    """Single point of mutation for operations and their item records."""

    _COUNTER_FIELDS = frozenset(
        {"processed_items", "successful_items", "failed_items", "skipped_items"}
    )

    def __init__(self, store: Optional[OperationStore] = None):
        self.store = store if store is not None else OperationStore()

    def create_operation(
        self,
        kind: OperationKind,
        total_items: int,
        metadata: Optional[OperationMetadata] = None,
    ) -> str:
        """Allocate a pending operation with zeroed counters."""
        kind = OperationKind(kind)
        operation_id = (
            f"bulk-{kind.value}-{int(time.time() * 1000)}-{uuid.uuid4().hex[:6]}"
        )
        operation = BulkOperation(
            operation_id=operation_id,
            kind=kind,
            total_items=total_items,
            metadata=metadata or OperationMetadata(),
        )
        self.store.put(operation)
        logger.info(
            f"Created operation {operation_id} ({kind.value}, {total_items} items)"
        )
        return operation_id

    def get_operation(self, operation_id: str) -> Optional[BulkOperation]:
        return self.store.get(operation_id)

    def list_operations(self) -> List[BulkOperation]:
        return self.store.list()

    def update_operation(self, operation_id: str, **fields):
        """Merge fields into an operation. Unknown IDs are ignored."""
        operation = self.store.get(operation_id)
        if operation is None:
            logger.warning(f"update_operation: unknown operation {operation_id}")
            return

        for name, value in fields.items():
            if name in self._COUNTER_FIELDS:
                raise ValueError(f"Counter '{name}' is maintained by the tracker")
            if not hasattr(operation, name):
                raise AttributeError(f"BulkOperation has no field '{name}'")
            setattr(operation, name, value)

    def start_operation(self, operation_id: str):
        self.update_operation(operation_id, status=OperationStatus.IN_PROGRESS)

    def complete_operation(self, operation_id: str):
        """Mark every item as attempted, whatever the individual outcomes."""
        self.update_operation(
            operation_id, status=OperationStatus.COMPLETED, end_time=utcnow()
        )

    def fail_operation(self, operation_id: str, error: Optional[str] = None):
        operation = self.store.get(operation_id)
        if operation is None:
            logger.warning(f"fail_operation: unknown operation {operation_id}")
            return
        if error:
            operation.metadata.context["error"] = error
        self.update_operation(
            operation_id, status=OperationStatus.FAILED, end_time=utcnow()
        )

    def add_item(
        self,
        operation_id: str,
        name: str,
        resource_id: str = "",
        status: ItemStatus = ItemStatus.IN_PROGRESS,
    ) -> str:
        """Append an item record and return its correlation token."""
        item = ItemRecord(
            item_id=uuid.uuid4().hex,
            name=name,
            resource_id=resource_id,
            status=status,
            start_time=utcnow(),
        )
        operation = self.store.get(operation_id)
        if operation is None:
            logger.warning(f"add_item: unknown operation {operation_id}")
            return item.item_id

        operation.items.append(item)
        return item.item_id

    def get_item(self, operation_id: str, item_id: str) -> Optional[ItemRecord]:
        operation = self.store.get(operation_id)
        if operation is None:
            return None
        return next((i for i in operation.items if i.item_id == item_id), None)

    def set_item_resource(
        self,
        operation_id: str,
        item_id: str,
        resource_id: str,
        name: Optional[str] = None,
    ):
        """Attach the remote identifier (and optionally a better name)."""
        item = self.get_item(operation_id, item_id)
        if item is None:
            return
        item.resource_id = resource_id
        if name:
            item.name = name

    def set_rollback_data(self, operation_id: str, item_id: str, rollback_data: Any):
        item = self.get_item(operation_id, item_id)
        if item is not None:
            item.rollback_data = rollback_data

    def record_compensation(
        self, operation_id: str, item_id: str, compensation: CompensationRecord
    ):
        item = self.get_item(operation_id, item_id)
        if item is not None:
            item.compensation = compensation

    def update_item_status(
        self,
        operation_id: str,
        item_id: str,
        status: ItemStatus,
        result: Any = None,
        error: Optional[str] = None,
    ) -> bool:
        """Settle an item and update the operation counters.

        Returns False when the operation or item is unknown or the item has
        already settled; statuses only move forward.
        """
        status = ItemStatus(status)
        operation = self.store.get(operation_id)
        if operation is None:
            logger.warning(f"update_item_status: unknown operation {operation_id}")
            return False

        item = next((i for i in operation.items if i.item_id == item_id), None)
        if item is None:
            logger.warning(
                f"update_item_status: unknown item {item_id} in {operation_id}"
            )
            return False

        if item.status.is_terminal:
            logger.warning(
                f"Item {item.name} in {operation_id} already {item.status.value}, "
                f"ignoring transition to {status.value}"
            )
            return False

        if not status.is_terminal:
            if status == ItemStatus.PENDING:
                logger.warning(f"Item {item.name} cannot return to pending")
                return False
            item.status = status
            return True

        item.status = status
        item.end_time = utcnow()
        if result is not None:
            item.result = result
        if error is not None:
            item.error = error

        operation.processed_items += 1
        if status == ItemStatus.COMPLETED:
            operation.successful_items += 1
        elif status == ItemStatus.FAILED:
            operation.failed_items += 1
        else:
            operation.skipped_items += 1

        if operation.processed_items > operation.total_items:
            logger.warning(
                f"Operation {operation_id} processed {operation.processed_items} "
                f"items but expected {operation.total_items}"
            )
        return True

    def unresolved_compensations(self) -> List[Tuple[str, ItemRecord]]:
        """Items whose compensating write was attempted and did not succeed."""
        unresolved = []
        for operation in self.store.list():
            for item in operation.items:
                comp = item.compensation
                if comp is not None and comp.attempted and not comp.succeeded:
                    unresolved.append((operation.operation_id, item))
        return unresolved


@dataclass
class ExecutionSummary:
    """What the executor observed while running a task list."""

    attempted: int = 0
    peak_concurrency: int = 0
    errors: List[Tuple[int, str]] = field(default_factory=list)
    duration_ms: float = 0.0


class BulkExecutor:
    """Run item tasks to completion under a concurrency bound.

    Tasks are zero-argument callables returning awaitables, so nothing starts
    before the executor schedules it. Tasks are expected to record their own
    outcome; anything that still escapes is logged and never propagated.
    """

    async def run(
        self,
        tasks: List[ItemTask],
        mode: ExecutionMode = ExecutionMode.PARALLEL,
        max_concurrency: int = 5,
    ) -> ExecutionSummary:
        if mode == ExecutionMode.SEQUENTIAL:
            return await self.run_sequential(tasks)
        return await self.run_parallel(tasks, max_concurrency)

    async def run_parallel(
        self, tasks: List[ItemTask], max_concurrency: int
    ) -> ExecutionSummary:
        """Worker pool: at most max_concurrency tasks in flight, settle-all."""
        if max_concurrency < 1:
            raise ValueError("max_concurrency must be at least 1")

        summary = ExecutionSummary()
        semaphore = asyncio.Semaphore(max_concurrency)
        in_flight = 0
        start = time.monotonic()

        async def worker(index: int, task: ItemTask):
            nonlocal in_flight
            async with semaphore:
                in_flight += 1
                summary.peak_concurrency = max(summary.peak_concurrency, in_flight)
                try:
                    await task()
                except Exception as e:
                    logger.error(f"Bulk task {index} raised {type(e).__name__}: {e}")
                    summary.errors.append((index, str(e)))
                finally:
                    in_flight -= 1
                    summary.attempted += 1

        await asyncio.gather(*(worker(i, t) for i, t in enumerate(tasks)))

        summary.duration_ms = (time.monotonic() - start) * 1000
        return summary

    async def run_sequential(self, tasks: List[ItemTask]) -> ExecutionSummary:
        """Run tasks in list order, each settling before the next starts."""
        summary = ExecutionSummary()
        start = time.monotonic()

        for index, task in enumerate(tasks):
            summary.peak_concurrency = 1
            try:
                await task()
            except Exception as e:
                logger.error(f"Bulk task {index} raised {type(e).__name__}: {e}")
                summary.errors.append((index, str(e)))
            finally:
                summary.attempted += 1

        summary.duration_ms = (time.monotonic() - start) * 1000
        return summary


@dataclass
class ItemOutcome:
    """Terminal result of one item task."""

    status: ItemStatus
    result: Any = None
    error: Optional[str] = None

    @classmethod
    def completed(cls, result: Any = None) -> "ItemOutcome":
        return cls(ItemStatus.COMPLETED, result=result)

    @classmethod
    def skipped(cls, result: Any = None) -> "ItemOutcome":
        return cls(ItemStatus.SKIPPED, result=result)

    @classmethod
    def failed(cls, error: str, result: Any = None) -> "ItemOutcome":
        return cls(ItemStatus.FAILED, result=result, error=error)


def describe_error(error: BaseException) -> str:
    """User-facing text of an exception with secrets redacted."""
    if isinstance(error, AkamaiMCPError):
        message = error.message
    else:
        message = str(error)
    return ErrorSanitizer.sanitize_message(message or type(error).__name__)


class BulkHandler:
    """Shared plumbing for the bulk action handlers.

    Subclasses create an operation, build one task per item and hand the
    tasks to :meth:`_execute`. Every task settles its own item through
    :meth:`_settle`, so an item is recorded exactly once whatever happens.
    """

    def __init__(
        self,
        tracker: Optional[OperationTracker] = None,
        executor: Optional[BulkExecutor] = None,
    ):
        self.tracker = tracker if tracker is not None else OperationTracker()
        self.executor = executor if executor is not None else BulkExecutor()

    def get_operation(self, operation_id: str) -> Optional[BulkOperation]:
        return self.tracker.get_operation(operation_id)

    async def _settle(
        self,
        operation_id: str,
        item_id: str,
        work: Callable[[], Awaitable[ItemOutcome]],
    ) -> ItemOutcome:
        try:
            outcome = await work()
        except Exception as e:
            logger.warning(f"Item {item_id} of {operation_id} failed: {e}")
            outcome = ItemOutcome.failed(describe_error(e))

        self.tracker.update_item_status(
            operation_id, item_id, outcome.status, outcome.result, outcome.error
        )
        return outcome

    def _setup_failed(
        self, operation_id: str, operation: str, error: Exception
    ) -> OperationSetupError:
        reason = describe_error(error)
        self.tracker.fail_operation(operation_id, reason)
        logger.error(f"{operation} ({operation_id}) failed during setup: {reason}")
        return OperationSetupError(operation, reason, operation_id=operation_id)

    async def _execute(
        self, operation_id: str, tasks: List[ItemTask]
    ) -> BulkOperation:
        operation = self.tracker.get_operation(operation_id)
        if operation is None:
            raise BulkOperationError(f"Operation {operation_id} disappeared")

        try:
            summary = await self.executor.run(
                tasks,
                mode=operation.metadata.execution_mode,
                max_concurrency=operation.metadata.max_concurrency,
            )
        except Exception as e:
            reason = describe_error(e)
            self.tracker.fail_operation(operation_id, reason)
            logger.error(f"Operation {operation_id} aborted: {reason}")
            raise
        if operation.status == OperationStatus.IN_PROGRESS:
            self.tracker.complete_operation(operation_id)

        logger.info(
            f"Operation {operation_id} finished: {operation.successful_items} ok, "
            f"{operation.failed_items} failed, {operation.skipped_items} skipped "
            f"in {summary.duration_ms:.0f}ms (peak concurrency "
            f"{summary.peak_concurrency})"
        )
        return operation
