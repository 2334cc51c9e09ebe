"""Optimistic reordering for user-sortable, server-persisted lists.

A drop is applied to the displayed order at once and confirmed with a
write of the full id sequence. The state is two orders:

    confirmed: last order the server accepted
    pending:   optimistic order waiting for confirmation, or None

Success promotes the written order to confirmed. Failure of the newest
write drops pending, so the display snaps back to the confirmed order.
Writes for one list go out one at a time; a queued write that was
overtaken by a newer drop is skipped rather than sent.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence

from src.authoring.services.transport import OrderTransport, TransportError

logger = logging.getLogger(__name__)

MAX_TRACKED_LISTS = 1000


class ReorderConfirmationError(Exception):
    """Raised after a failed confirmation has been rolled back.

    restored_order is what the list shows now (the last confirmed order).
    """

    def __init__(self, message: str, restored_order: List[str]):
        super().__init__(message)
        self.restored_order = restored_order


@dataclass
class OrderState:
    confirmed: List[str]
    pending: Optional[List[str]] = None

    @property
    def displayed(self) -> List[str]:
        return list(self.pending if self.pending is not None else self.confirmed)


@dataclass(frozen=True)
class DragToken:
    """Handed out at drag start; a drop with an outdated token is ignored."""

    epoch: int


def array_move(items: Sequence[str], from_index: int, to_index: int) -> List[str]:
    """Move one element, shifting the ones in between."""
    if not 0 <= from_index < len(items) or not 0 <= to_index < len(items):
        raise IndexError(f"Cannot move {from_index} to {to_index} in a list of {len(items)}")
    result = list(items)
    result.insert(to_index, result.pop(from_index))
    return result


class OptimisticReorder:
    """Display order of one owner's list, with optimistic writes."""

    def __init__(self, owner_id: str, transport: OrderTransport, confirmed_order: Sequence[str]):
        self.owner_id = owner_id
        self.transport = transport
        self.state = OrderState(confirmed=list(confirmed_order))
        self._epoch = 0
        self._latest_seq = 0
        self._lock = asyncio.Lock()

    @property
    def displayed_order(self) -> List[str]:
        return self.state.displayed

    @property
    def confirmed_order(self) -> List[str]:
        return list(self.state.confirmed)

    @property
    def has_pending(self) -> bool:
        return self.state.pending is not None

    def begin_drag(self) -> DragToken:
        return DragToken(epoch=self._epoch)

    def observe_server_order(self, order: Sequence[str]) -> List[str]:
        """Adopt an order that changed on the server.

        Any optimistic state and in-flight confirmation is discarded.
        """
        if self.state.pending is not None:
            logger.info(
                "Server order changed for %s, discarding optimistic order", self.owner_id
            )
        self._epoch += 1
        self.state = OrderState(confirmed=list(order))
        return self.displayed_order

    async def move(
        self, from_index: int, to_index: int, token: Optional[DragToken] = None
    ) -> List[str]:
        if from_index == to_index:
            return self.displayed_order
        return await self.reorder(
            array_move(self.displayed_order, from_index, to_index), token=token
        )

    async def reorder(
        self, new_order: Sequence[str], token: Optional[DragToken] = None
    ) -> List[str]:
        """Show new_order now, then confirm it with the server.

        Returns the displayed order once this write has been settled.

        Raises:
            ValueError: new_order is not a permutation of the displayed order.
            ReorderConfirmationError: the confirmation failed; the display has
                been rolled back to the last confirmed order.
        """
        if token is not None and token.epoch != self._epoch:
            logger.info("Ignoring drop on %s started before a server change", self.owner_id)
            return self.displayed_order

        current = self.displayed_order
        new_order = list(new_order)
        if len(new_order) != len(current) or sorted(new_order) != sorted(current):
            raise ValueError("New order must be a permutation of the displayed order")
        if new_order == current:
            return current

        self._latest_seq += 1
        seq = self._latest_seq
        epoch = self._epoch
        self.state.pending = new_order

        try:
            await self._confirm(seq, epoch, new_order)
        except BaseException:
            # cancelled or unexpected failure: the write was not confirmed
            if epoch == self._epoch and seq == self._latest_seq and self.state.pending is not None:
                self.state.pending = None
                logger.warning(
                    "Order write for %s did not complete, reverted to confirmed order",
                    self.owner_id,
                )
            raise
        return self.displayed_order

    async def _confirm(self, seq: int, epoch: int, order: List[str]) -> None:
        async with self._lock:
            if epoch != self._epoch:
                return
            if seq != self._latest_seq:
                logger.debug("Skipping superseded order write %d for %s", seq, self.owner_id)
                return

            try:
                await self.transport.confirm_order(self.owner_id, order)
            except TransportError as e:
                if epoch != self._epoch:
                    logger.info("Ignoring failed write for replaced order of %s", self.owner_id)
                    return
                if seq != self._latest_seq:
                    logger.warning(
                        "Order write %d for %s failed but a newer order is pending: %s",
                        seq, self.owner_id, e,
                    )
                    return
                self.state.pending = None
                logger.error(
                    "Order write for %s failed, reverted to confirmed order: %s",
                    self.owner_id, e,
                )
                raise ReorderConfirmationError(
                    f"Could not save the new order: {e}", self.displayed_order
                ) from e

            if epoch != self._epoch:
                logger.info("Ignoring confirmation for replaced order of %s", self.owner_id)
                return
            self.state.confirmed = list(order)
            if seq == self._latest_seq:
                self.state.pending = None


@dataclass
class ReorderRegistry:
    """One OptimisticReorder per owner."""

    transport: OrderTransport
    lists: Dict[str, OptimisticReorder] = field(default_factory=dict)
    max_lists: int = MAX_TRACKED_LISTS

    def get(self, owner_id: str) -> Optional[OptimisticReorder]:
        return self.lists.get(owner_id)

    def load(self, owner_id: str, confirmed_order: Sequence[str]) -> OptimisticReorder:
        """Track a list, or adopt a fresh server order for one already tracked."""
        existing = self.lists.get(owner_id)
        if existing is not None:
            existing.observe_server_order(confirmed_order)
            return existing
        while self.lists and len(self.lists) >= self.max_lists:
            oldest = next(iter(self.lists))
            logger.info("Tracking limit %d reached, dropping list of %s", self.max_lists, oldest)
            del self.lists[oldest]
        reorder = OptimisticReorder(owner_id, self.transport, confirmed_order)
        self.lists[owner_id] = reorder
        return reorder
