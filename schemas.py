"""
Database Schemas for the Tablet Store

Each Pydantic model corresponds to one MongoDB collection.
Collection name is the lowercase of the class name.
"""
from datetime import datetime
from typing import List, Optional, Literal
from pydantic import BaseModel, ConfigDict, Field, EmailStr, field_validator

Category = Literal["Premium", "Standard", "Budget"]
Role = Literal["user", "admin"]
PaymentMethod = Literal["stripe", "razorpay", "cod"]
OrderStatus = Literal["pending", "processing", "shipped", "delivered", "cancelled"]

ORDER_STATUSES = ("pending", "processing", "shipped", "delivered", "cancelled")


class User(BaseModel):
    name: str = Field(..., description="Full name")
    email: EmailStr
    password_hash: str = Field(..., description="Salted password hash")
    role: Role = "user"
    phone: str = ""
    address: str = ""
    reset_token_hash: Optional[str] = None
    reset_token_expires_at: Optional[datetime] = None

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v: str) -> str:
        return v.strip().lower()


class Product(BaseModel):
    name: str = Field(..., min_length=1)
    description: str = ""
    price: float = Field(..., gt=0)
    category: Category
    sub_category: str = Field("", alias="subCategory")
    images: List[str] = []
    sizes: List[str] = []
    specs: dict = {}
    bestseller: bool = False
    stock: int = Field(0, ge=0)

    model_config = ConfigDict(populate_by_name=True)


class ProductSnapshot(BaseModel):
    id: str
    name: str
    price: float
    image: Optional[str] = None
    description: str = ""


class CartEntry(BaseModel):
    product_id: str
    size: str
    quantity: int = Field(..., ge=1)
    product: ProductSnapshot


class Cart(BaseModel):
    user_id: str
    items: List[CartEntry] = []
    version: int = 0


class ShippingAddress(BaseModel):
    full_name: str = Field(..., min_length=1, alias="fullName")
    address: str = Field(..., min_length=1)
    city: str = Field(..., min_length=1)
    state: str = Field(..., min_length=1)
    zip_code: str = Field(..., min_length=1, alias="zipCode")
    phone: str = Field(..., min_length=1)

    model_config = ConfigDict(populate_by_name=True, str_strip_whitespace=True)


class Order(BaseModel):
    user_id: str
    items: List[CartEntry]
    subtotal: float
    delivery_fee: float
    total: float
    shipping_address: ShippingAddress
    payment_method: PaymentMethod
    status: OrderStatus = "pending"


class Contact(BaseModel):
    name: str = Field(..., min_length=1)
    email: EmailStr
    subject: str = Field(..., min_length=1)
    message: str = Field(..., min_length=1)


class Subscriber(BaseModel):
    email: EmailStr
