"""Admin panel routes: users, orders and products."""
from typing import Optional

from fastapi import APIRouter, Depends

import catalog
import orders
import users
from schemas import OrderStatus, Product
from security import require_capability

router = APIRouter(prefix="/admin", tags=["admin"])

manage_users = require_capability("users:manage")
manage_orders = require_capability("orders:manage")
manage_catalog = require_capability("catalog:manage")


# ----------------------- Users -----------------------
@router.get("/users")
def all_users(admin=Depends(manage_users)):
    return {"success": True, "users": users.list_users()}


@router.post("/users", status_code=201)
def create_user(body: users.AdminUserCreateBody, admin=Depends(manage_users)):
    user = users.register(body.name, body.email, body.password, role=body.role, phone=body.phone)
    return {"success": True, "user": user}


@router.put("/users/{user_id}")
def update_user(user_id: str, body: users.AdminUserUpdateBody, admin=Depends(manage_users)):
    return {"success": True, "user": users.update_user(user_id, body)}


@router.delete("/users/{user_id}")
def delete_user(user_id: str, admin=Depends(manage_users)):
    users.delete_user(user_id)
    return {"success": True, "message": "User deleted successfully"}


# ----------------------- Orders -----------------------
@router.get("/orders")
def all_orders(status: Optional[OrderStatus] = None, admin=Depends(manage_orders)):
    return {"success": True, "orders": orders.list_all_orders(status)}


@router.put("/orders/{order_id}/status")
def order_status(order_id: str, body: orders.UpdateStatusBody, admin=Depends(manage_orders)):
    order = orders.update_status(order_id, body.status)
    return {"success": True, "message": "Order status updated successfully", "order": order}


# ----------------------- Products -----------------------
@router.post("/products", status_code=201)
def create_product(body: Product, admin=Depends(manage_catalog)):
    return {"success": True, "product": catalog.create_product(body)}


@router.put("/products/{product_id}")
def update_product(product_id: str, body: catalog.ProductUpdateBody, admin=Depends(manage_catalog)):
    return {"success": True, "product": catalog.update_product(product_id, body)}


@router.delete("/products/{product_id}")
def delete_product(product_id: str, admin=Depends(manage_catalog)):
    catalog.delete_product(product_id)
    return {"success": True, "message": "Product deleted successfully"}
