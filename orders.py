"""
Order store: owner reads and cancellation, admin status changes.

Orders are written once by checkout (see ``cart.checkout``); afterwards only
``status`` and ``updated_at`` change.
"""
from typing import List, Optional

import structlog
from fastapi import APIRouter, Depends
from pydantic import BaseModel

from database import get_db, get_documents, now, serialize_doc, to_object_id
from errors import InvalidStateError, NotFoundError, ValidationError
from schemas import ORDER_STATUSES, OrderStatus
from security import require_capability

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/orders", tags=["orders"])


class UpdateStatusBody(BaseModel):
    status: OrderStatus


def list_orders(user_id: str) -> List[dict]:
    return [serialize_doc(o) for o in get_documents("order", {"user_id": user_id}, newest_first=True)]


def list_all_orders(status: Optional[str] = None) -> List[dict]:
    filt = {}
    if status:
        if status not in ORDER_STATUSES:
            raise ValidationError("Invalid status")
        filt["status"] = status
    return [serialize_doc(o) for o in get_documents("order", filt, newest_first=True)]


def get_order(user_id: str, order_id: str) -> dict:
    order = get_db()["order"].find_one({"_id": to_object_id(order_id), "user_id": user_id})
    if not order:
        raise NotFoundError("Order not found")
    return serialize_doc(order)


def update_status(order_id: str, status: str) -> dict:
    if status not in ORDER_STATUSES:
        raise ValidationError("Invalid status")
    _id = to_object_id(order_id)
    res = get_db()["order"].update_one({"_id": _id}, {"$set": {"status": status, "updated_at": now()}})
    if res.matched_count == 0:
        raise NotFoundError("Order not found")
    logger.info("order_status_updated", order_id=order_id, status=status)
    return serialize_doc(get_db()["order"].find_one({"_id": _id}))


def cancel_order(user_id: str, order_id: str):
    _id = to_object_id(order_id)
    orders = get_db()["order"]
    order = orders.find_one({"_id": _id, "user_id": user_id})
    if not order:
        raise NotFoundError("Order not found")
    # status stays in the filter so a concurrent change wins over the cancel
    res = orders.update_one(
        {"_id": _id, "user_id": user_id, "status": "pending"},
        {"$set": {"status": "cancelled", "updated_at": now()}},
    )
    if res.matched_count == 0:
        raise InvalidStateError("Only pending orders can be cancelled")
    logger.info("order_cancelled", user_id=user_id, order_id=order_id)


# ----------------------- Routes -----------------------
@router.get("")
def my_orders(user=Depends(require_capability("orders:own"))):
    return {"success": True, "orders": list_orders(user["id"])}


@router.get("/{order_id}")
def my_order(order_id: str, user=Depends(require_capability("orders:own"))):
    return {"success": True, "order": get_order(user["id"], order_id)}


@router.delete("/{order_id}")
def cancel(order_id: str, user=Depends(require_capability("orders:own"))):
    cancel_order(user["id"], order_id)
    return {"success": True, "message": "Order cancelled successfully"}


@router.put("/{order_id}/status")
def set_status(order_id: str, body: UpdateStatusBody, admin=Depends(require_capability("orders:manage"))):
    order = update_status(order_id, body.status)
    return {"success": True, "message": "Order status updated successfully", "order": order}
