"""
Database Schemas for Nonna's Pizzeria

Collections:
- products: the menu
- cart_items: one row per (user, product) with a quantity
- orders / order_items: placed orders and their priced lines
- testimonials: customer reviews shown on the landing page
- profiles: one per authenticated user, carries the role
- contact_messages: messages from the contact form

Stored documents use `_id`; the models below expose it as `id`.
"""
from datetime import datetime
from decimal import Decimal
from typing import List, Literal, Optional

from pydantic import BaseModel, EmailStr, Field

from database import to_money

ORDER_STATUSES = ("pending", "preparing", "ready", "delivered")
ROLES = ("user", "admin")

OrderStatus = Literal["pending", "preparing", "ready", "delivered"]
Role = Literal["user", "admin"]


class Identity(BaseModel):
    """The authenticated caller, as resolved by the access gate."""
    user_id: str
    email: Optional[str] = None
    role: Role = "user"


class Profile(BaseModel):
    id: str
    email: str
    full_name: Optional[str] = None
    role: Role = "user"

    @classmethod
    def from_doc(cls, doc: dict) -> "Profile":
        return cls(
            id=str(doc["_id"]),
            email=doc.get("email", ""),
            full_name=doc.get("full_name"),
            role=doc.get("role", "user"),
        )


class Product(BaseModel):
    id: str
    name: str
    description: Optional[str] = None
    price: Decimal
    image_url: Optional[str] = None
    category: str
    is_featured: bool = False
    created_at: Optional[datetime] = None

    @classmethod
    def from_doc(cls, doc: dict) -> "Product":
        return cls(
            id=str(doc["_id"]),
            name=doc.get("name", ""),
            description=doc.get("description"),
            price=to_money(doc.get("price")),
            image_url=doc.get("image_url"),
            category=doc.get("category", ""),
            is_featured=bool(doc.get("is_featured", False)),
            created_at=doc.get("created_at"),
        )


class ProductBody(BaseModel):
    name: str = ""
    description: Optional[str] = None
    price: Decimal = Decimal("0")
    image_url: Optional[str] = None
    category: str = ""
    is_featured: bool = False


class ProductUpdate(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    price: Optional[Decimal] = None
    image_url: Optional[str] = None
    category: Optional[str] = None
    is_featured: Optional[bool] = None


class Testimonial(BaseModel):
    id: str
    customer_name: str
    content: str
    rating: int = Field(..., ge=1, le=5)
    created_at: Optional[datetime] = None

    @classmethod
    def from_doc(cls, doc: dict) -> "Testimonial":
        return cls(
            id=str(doc["_id"]),
            customer_name=doc["customer_name"],
            content=doc["content"],
            rating=doc["rating"],
            created_at=doc.get("created_at"),
        )


class CartLine(BaseModel):
    id: str
    product_id: str
    name: str
    price: Decimal
    quantity: int = Field(..., ge=1)
    image_url: str = ""
    available: bool = True


class Cart(BaseModel):
    user_id: str
    items: List[CartLine] = []
    total: Decimal = Decimal("0.00")


class CartItemBody(BaseModel):
    product_id: str


class QuantityBody(BaseModel):
    quantity: int


class OrderLine(BaseModel):
    id: str
    order_id: str
    product_id: str
    quantity: int
    price: Decimal
    product_name: Optional[str] = None
    image_url: Optional[str] = None


class CustomerSummary(BaseModel):
    full_name: Optional[str] = None
    email: str


class Order(BaseModel):
    id: str
    user_id: str
    total_amount: Decimal
    status: OrderStatus = "pending"
    created_at: Optional[datetime] = None
    items: List[OrderLine] = []
    customer: Optional[CustomerSummary] = None


class StatusBody(BaseModel):
    status: str


class ContactBody(BaseModel):
    name: str = Field(..., min_length=1)
    email: EmailStr
    message: str = Field(..., min_length=1)


class AdminStats(BaseModel):
    total_orders: int
    total_products: int
    total_users: int
    total_revenue: Decimal
