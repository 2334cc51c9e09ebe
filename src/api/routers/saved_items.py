"""Saved Items Ordering Endpoints.

Drag-and-drop ordering of an owner's saved items. A reorder shows up in
the displayed order at once and is confirmed with the content backend;
when confirmation fails the order snaps back and the endpoint answers
502 with the restored order.
"""

import logging
from typing import Any, Dict

from fastapi import APIRouter, Depends, HTTPException

from src.api.deps import get_reorder_registry
from src.api.schemas.sessions import OrderResponse, ReorderRequest, ServerOrderRequest
from src.authoring.services.reorder import (
    DragToken,
    OptimisticReorder,
    ReorderConfirmationError,
    ReorderRegistry,
)
from src.authoring.services.transport import TransportError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/saved-items", tags=["saved-items"])


def _describe(reorder: OptimisticReorder) -> Dict[str, Any]:
    return {
        "owner_id": reorder.owner_id,
        "displayed_order": reorder.displayed_order,
        "confirmed_order": reorder.confirmed_order,
        "pending": reorder.has_pending,
        "drag_epoch": reorder.begin_drag().epoch,
    }


async def _tracked(registry: ReorderRegistry, owner_id: str) -> OptimisticReorder:
    reorder = registry.get(owner_id)
    if reorder is not None:
        return reorder
    try:
        order = await registry.transport.load_order(owner_id)
    except TransportError as e:
        raise HTTPException(status_code=502, detail=f"Could not load saved items: {e}")
    return registry.load(owner_id, order)


@router.get("/{owner_id}", response_model=OrderResponse)
async def get_order(owner_id: str, registry: ReorderRegistry = Depends(get_reorder_registry)):
    return _describe(await _tracked(registry, owner_id))


@router.put("/{owner_id}/order", response_model=OrderResponse)
async def reorder_items(
    owner_id: str,
    body: ReorderRequest,
    registry: ReorderRegistry = Depends(get_reorder_registry),
):
    """Apply a drop. A drop onto the same position makes no backend call."""
    reorder = await _tracked(registry, owner_id)
    token = DragToken(epoch=body.drag_epoch) if body.drag_epoch is not None else None

    try:
        if body.ordered_ids is not None:
            await reorder.reorder(body.ordered_ids, token=token)
        else:
            await reorder.move(body.from_index, body.to_index, token=token)
    except (ValueError, IndexError) as e:
        raise HTTPException(status_code=422, detail=str(e))
    except ReorderConfirmationError as e:
        raise HTTPException(
            status_code=502,
            detail={"message": str(e), "order": e.restored_order},
        )
    return _describe(reorder)


@router.post("/{owner_id}/server-order", response_model=OrderResponse)
def observe_server_order(
    owner_id: str,
    body: ServerOrderRequest,
    registry: ReorderRegistry = Depends(get_reorder_registry),
):
    """Record an order change that happened on the backend."""
    return _describe(registry.load(owner_id, body.ordered_ids))
