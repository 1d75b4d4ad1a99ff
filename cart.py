"""
Cart store and checkout.

One document per user in the ``cart`` collection::

    {"user_id": str, "items": [entry, ...], "version": int, ...}

Every mutation reads the document, applies a pure function to its items and
writes back only if ``version`` is unchanged. A lost race re-reads and
re-applies, so concurrent adds for the same user never drop an increment.
"""
from typing import Callable, List, Optional

import structlog
from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict, Field
from pymongo.errors import DuplicateKeyError

import config
from database import create_document, get_db, now, to_object_id
from errors import ConflictError, EmptyCartError, NotFoundError, ValidationError
from schemas import CartEntry, Order, PaymentMethod, ProductSnapshot, ShippingAddress
from security import require_capability

logger = structlog.get_logger(__name__)

router = APIRouter(tags=["cart"])

MAX_CART_ATTEMPTS = 5


class CartItemBody(BaseModel):
    tablet_id: str = Field(..., min_length=1, alias="tabletId")
    size: str = Field(..., min_length=1)
    quantity: int = Field(1, ge=1)

    model_config = ConfigDict(populate_by_name=True)


class CartUpdateBody(BaseModel):
    tablet_id: str = Field(..., min_length=1, alias="tabletId")
    size: str = Field(..., min_length=1)
    quantity: int = Field(..., ge=0)

    model_config = ConfigDict(populate_by_name=True)


class GuestCartBody(BaseModel):
    items: List[CartItemBody] = []


class CheckoutBody(BaseModel):
    shipping_address: ShippingAddress = Field(..., alias="shippingAddress")
    payment_method: PaymentMethod = Field(..., alias="paymentMethod")

    model_config = ConfigDict(populate_by_name=True)


def item_count(items: List[dict]) -> int:
    return sum(item["quantity"] for item in items)


def _find_entry(items: List[dict], product_id: str, size: str) -> Optional[dict]:
    for item in items:
        if item["product_id"] == product_id and item["size"] == size:
            return item
    return None


def _load(user_id: str):
    doc = get_db()["cart"].find_one({"user_id": user_id})
    if not doc:
        return [], 0
    return list(doc.get("items", [])), doc.get("version", 0)


def _mutate_cart(user_id: str, mutate: Callable[[List[dict]], List[dict]]) -> List[dict]:
    """Apply `mutate` to the stored items under a version check and return the new items."""
    carts = get_db()["cart"]
    for _ in range(MAX_CART_ATTEMPTS):
        items, version = _load(user_id)
        new_items = mutate([dict(i) for i in items])
        stamp = now()
        try:
            res = carts.update_one(
                {"user_id": user_id, "version": version},
                {
                    "$set": {"items": new_items, "updated_at": stamp},
                    "$inc": {"version": 1},
                    "$setOnInsert": {"created_at": stamp},
                },
                upsert=(version == 0),
            )
        except DuplicateKeyError:
            continue
        if res.matched_count == 1 or res.upserted_id is not None:
            return new_items
    logger.warning("cart_write_conflict", user_id=user_id)
    raise ConflictError("Cart was modified concurrently, please retry")


def _snapshot(product: dict) -> dict:
    images = product.get("images") or []
    return ProductSnapshot(
        id=str(product["_id"]),
        name=product["name"],
        price=product["price"],
        image=images[0] if images else None,
        description=product.get("description", ""),
    ).model_dump()


def _lookup_product(product_id: str) -> dict:
    product = get_db()["product"].find_one({"_id": to_object_id(product_id)})
    if not product:
        raise NotFoundError("Tablet not found")
    return product


def _increment(items: List[dict], product: dict, size: str, quantity: int) -> List[dict]:
    product_id = str(product["_id"])
    existing = _find_entry(items, product_id, size)
    if existing:
        existing["quantity"] += quantity
    else:
        entry = CartEntry(product_id=product_id, size=size, quantity=quantity, product=_snapshot(product))
        items.append(entry.model_dump())
    return items


# ----------------------- Operations -----------------------
def get_cart(user_id: str) -> List[dict]:
    items, _ = _load(user_id)
    return items


def add_item(user_id: str, product_id: str, size: str, quantity: int = 1) -> List[dict]:
    if not product_id or not size:
        raise ValidationError("Tablet ID and size are required")
    if quantity < 1:
        raise ValidationError("Quantity must be at least 1")
    product = _lookup_product(product_id)
    items = _mutate_cart(user_id, lambda current: _increment(current, product, size, quantity))
    logger.info("cart_item_added", user_id=user_id, product_id=product_id, size=size, quantity=quantity)
    return items


def update_item(user_id: str, product_id: str, size: str, quantity: int) -> List[dict]:
    """Set the quantity of an entry; zero removes it. Absent entries are left alone."""
    if not product_id or not size:
        raise ValidationError("Tablet ID, size, and quantity are required")
    if quantity < 0:
        raise ValidationError("Quantity cannot be negative")

    def apply(items):
        if quantity == 0:
            return [i for i in items if not (i["product_id"] == product_id and i["size"] == size)]
        existing = _find_entry(items, product_id, size)
        if existing:
            existing["quantity"] = quantity
        return items

    items = _mutate_cart(user_id, apply)
    logger.info("cart_item_updated", user_id=user_id, product_id=product_id, size=size, quantity=quantity)
    return items


def clear_cart(user_id: str):
    _mutate_cart(user_id, lambda items: [])
    logger.info("cart_cleared", user_id=user_id)


def merge_guest_cart(user_id: str, entries: List[CartItemBody]):
    """Fold a client-side guest cart into the stored cart. Returns (items, skipped ids)."""
    products, skipped = [], []
    for entry in entries:
        try:
            products.append((_lookup_product(entry.tablet_id), entry))
        except (NotFoundError, ValidationError):
            skipped.append(entry.tablet_id)

    def apply(items):
        for product, entry in products:
            items = _increment(items, product, entry.size, entry.quantity)
        return items

    items = _mutate_cart(user_id, apply)
    logger.info("guest_cart_merged", user_id=user_id, merged=len(products), skipped=len(skipped))
    return items, skipped


def checkout(user_id: str, shipping_address: ShippingAddress, payment_method: str) -> dict:
    """Turn the cart into a pending order.

    The cart is emptied first under the version check, which hands this call
    exclusive ownership of its entries; if building or inserting the order
    then fails the entries are merged back before the error propagates.
    """
    fee = config.delivery_fee()
    claimed: List[dict] = []

    def claim(items):
        if not items:
            raise EmptyCartError()
        claimed[:] = items
        return []

    _mutate_cart(user_id, claim)

    try:
        subtotal = round(sum(i["product"]["price"] * i["quantity"] for i in claimed), 2)
        order = Order(
            user_id=user_id,
            items=claimed,
            subtotal=subtotal,
            delivery_fee=fee,
            total=round(subtotal + fee, 2),
            shipping_address=shipping_address,
            payment_method=payment_method,
        )
        order_id = create_document("order", order)
    except Exception:
        logger.exception("checkout_failed", user_id=user_id)
        _restore(user_id, claimed)
        raise
    logger.info("order_placed", user_id=user_id, order_id=order_id, total=order.total)
    return {"order_id": order_id, "total": order.total}


def _restore(user_id: str, entries: List[dict]):
    def apply(items):
        for entry in entries:
            existing = _find_entry(items, entry["product_id"], entry["size"])
            if existing:
                existing["quantity"] += entry["quantity"]
            else:
                items.append(entry)
        return items

    _mutate_cart(user_id, apply)


# ----------------------- Routes -----------------------
@router.post("/cart/add")
def add_route(body: CartItemBody, user=Depends(require_capability("cart"))):
    cart = add_item(user["id"], body.tablet_id, body.size, body.quantity)
    return {"success": True, "message": "Item added to cart", "cartItemCount": item_count(cart), "cart": cart}


@router.get("/cart")
def get_route(user=Depends(require_capability("cart"))):
    cart = get_cart(user["id"])
    return {"success": True, "cart": cart, "cartItemCount": item_count(cart)}


@router.put("/cart/update")
def update_route(body: CartUpdateBody, user=Depends(require_capability("cart"))):
    cart = update_item(user["id"], body.tablet_id, body.size, body.quantity)
    message = "Item removed from cart" if body.quantity == 0 else "Cart updated"
    return {"success": True, "message": message, "cart": cart}


@router.delete("/cart/clear")
def clear_route(user=Depends(require_capability("cart"))):
    clear_cart(user["id"])
    return {"success": True, "message": "Cart cleared successfully"}


@router.post("/cart/merge")
def merge_route(body: GuestCartBody, user=Depends(require_capability("cart"))):
    cart, skipped = merge_guest_cart(user["id"], body.items)
    return {"success": True, "cart": cart, "cartItemCount": item_count(cart), "skipped": skipped}


@router.post("/checkout")
def checkout_route(body: CheckoutBody, user=Depends(require_capability("cart"))):
    placed = checkout(user["id"], body.shipping_address, body.payment_method)
    return {"success": True, "message": "Order placed successfully", "orderId": placed["order_id"],
            "total": placed["total"]}
