"""
Product catalog: public reads plus the admin write operations.
"""
import re
from typing import List, Optional

import structlog
from fastapi import APIRouter, Query
from pydantic import BaseModel, ConfigDict, Field

from database import create_document, get_db, get_documents, now, serialize_doc, to_object_id
from errors import InvalidStateError, NotFoundError, ValidationError
from schemas import Category, Product

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/tablets", tags=["catalog"])


class ProductUpdateBody(BaseModel):
    name: Optional[str] = Field(None, min_length=1)
    description: Optional[str] = None
    price: Optional[float] = Field(None, gt=0)
    category: Optional[Category] = None
    sub_category: Optional[str] = Field(None, alias="subCategory")
    images: Optional[List[str]] = None
    sizes: Optional[List[str]] = None
    specs: Optional[dict] = None
    bestseller: Optional[bool] = None
    stock: Optional[int] = Field(None, ge=0)

    model_config = ConfigDict(populate_by_name=True)


# ----------------------- Reads -----------------------
def list_products(filt: Optional[dict] = None) -> List[dict]:
    return [serialize_doc(p) for p in get_documents("product", filt or {})]


def get_product(product_id: str) -> dict:
    item = get_db()["product"].find_one({"_id": to_object_id(product_id)})
    if not item:
        raise NotFoundError("Tablet not found")
    return serialize_doc(item)


def list_bestsellers() -> List[dict]:
    return list_products({"bestseller": True})


def list_by_category(category: str) -> List[dict]:
    return list_products({"category": category})


def search_products(query: Optional[str] = None, category: Optional[str] = None,
                    min_price: Optional[float] = None, max_price: Optional[float] = None) -> List[dict]:
    """Match free text against name/description; every given predicate must hold."""
    if min_price is not None and max_price is not None and min_price > max_price:
        raise ValidationError("minPrice cannot exceed maxPrice")
    filt = {}
    if query:
        pattern = re.escape(query.strip())
        filt["$or"] = [
            {"name": {"$regex": pattern, "$options": "i"}},
            {"description": {"$regex": pattern, "$options": "i"}},
        ]
    if category:
        filt["category"] = category
    if min_price is not None or max_price is not None:
        filt["price"] = {}
        if min_price is not None:
            filt["price"]["$gte"] = min_price
        if max_price is not None:
            filt["price"]["$lte"] = max_price
    return list_products(filt)


# ----------------------- Admin writes -----------------------
def create_product(product: Product) -> dict:
    pid = create_document("product", product)
    logger.info("product_created", product_id=pid, name=product.name)
    return get_product(pid)


def update_product(product_id: str, body: ProductUpdateBody) -> dict:
    update = body.model_dump(exclude_none=True)
    if not update:
        raise ValidationError("No fields to update")
    update["updated_at"] = now()
    res = get_db()["product"].update_one({"_id": to_object_id(product_id)}, {"$set": update})
    if res.matched_count == 0:
        raise NotFoundError("Product not found")
    logger.info("product_updated", product_id=product_id, fields=sorted(update))
    return get_product(product_id)


def delete_product(product_id: str):
    _id = to_object_id(product_id)
    handle = get_db()
    if not handle["product"].find_one({"_id": _id}):
        raise NotFoundError("Product not found")
    if handle["order"].count_documents({"items.product_id": product_id}) > 0:
        raise InvalidStateError("Cannot delete product with existing orders")
    handle["product"].delete_one({"_id": _id})
    logger.info("product_deleted", product_id=product_id)


# ----------------------- Routes -----------------------
@router.get("")
def all_tablets():
    return {"success": True, "tablets": list_products()}


@router.get("/bestsellers")
def bestsellers():
    return {"success": True, "bestsellers": list_bestsellers()}


@router.get("/search")
def search(
    query: Optional[str] = None,
    category: Optional[Category] = None,
    min_price: Optional[float] = Query(None, alias="minPrice", ge=0),
    max_price: Optional[float] = Query(None, alias="maxPrice", ge=0),
):
    tablets = search_products(query, category, min_price, max_price)
    return {"success": True, "tablets": tablets, "count": len(tablets)}


@router.get("/category/{category}")
def by_category(category: str):
    tablets = list_by_category(category)
    return {"success": True, "tablets": tablets, "count": len(tablets)}


@router.get("/{product_id}")
def tablet(product_id: str):
    return {"success": True, "tablet": get_product(product_id)}
