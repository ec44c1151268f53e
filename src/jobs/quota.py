"""Resume an import after the user authorizes more branch capacity."""
import logging
from enum import Enum
from typing import Any, Awaitable, Callable, Optional

from pydantic import BaseModel, Field

from src.errors import NoPendingRetryError, QuotaExceededError, QuotaExceededPayload
from src.fetch.client import SupplierClient
from src.store.catalog import CatalogStore

logger = logging.getLogger(__name__)

Operation = Callable[..., Awaitable[Any]]
IncreaseCapacity = Callable[[int], Awaitable[Any]]


class OperationId(str, Enum):
    IMPORT_BRANCHES = "IMPORT_BRANCHES"
    IMPORT_LOCATIONS = "IMPORT_LOCATIONS"
    IMPORT_LOCATION_LIST = "IMPORT_LOCATION_LIST"


class PendingRetry(BaseModel):
    """The operation that hit the quota, and how to call it again."""

    operation: OperationId
    params: dict[str, Any] = Field(default_factory=dict)
    error: QuotaExceededPayload


def capacity_increaser(client: SupplierClient, catalog: CatalogStore) -> IncreaseCapacity:
    """Raise capacity on the dashboard API, then mirror it locally."""

    async def increase(quantity: int) -> None:
        await client.update_subscription_quantity(quantity)
        await catalog.set_subscribed_count(quantity)

    return increase


class QuotaRetryFlow:
    """Holds at most one pending retry; a newer quota failure replaces it."""

    def __init__(self, operations: dict[OperationId, Operation], increase_capacity: IncreaseCapacity):
        self.operations = operations
        self.increase_capacity = increase_capacity
        self.pending: Optional[PendingRetry] = None

    async def run(self, operation: OperationId, **params: Any) -> Any:
        """Dispatch ``operation``; on a quota failure remember it and re-raise."""
        try:
            return await self.operations[operation](**params)
        except QuotaExceededError as e:
            if self.pending:
                logger.info(f"[QUOTA] Replacing pending {self.pending.operation.value} retry")
            self.pending = PendingRetry(operation=operation, params=params, error=e.payload)
            logger.warning(f"[QUOTA] {operation.value} needs {e.payload.need_to_add} more branches")
            raise

    async def confirm(self) -> Any:
        """Increase capacity once, then retry the pending operation once."""
        pending = self.pending
        if pending is None:
            raise NoPendingRetryError("No pending quota retry to confirm")
        self.pending = None

        quantity = pending.error.subscribed_count + pending.error.need_to_add
        logger.info(f"[QUOTA] Increasing capacity to {quantity} and retrying {pending.operation.value}")
        try:
            await self.increase_capacity(quantity)
        except Exception:
            # Nothing changed; the prompt can be confirmed again
            if self.pending is None:
                self.pending = pending
            raise
        return await self.run(pending.operation, **pending.params)

    def decline(self) -> Optional[PendingRetry]:
        """Drop the pending retry without side effects."""
        pending, self.pending = self.pending, None
        if pending:
            logger.info(f"[QUOTA] Declined retry of {pending.operation.value}")
        return pending
