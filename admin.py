"""
Admin catalog management and dashboard figures.

Every operation checks the admin role before touching the store, then
validates its input, so a rejected call never writes anything.
"""
import logging
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Optional

from pymongo import ReturnDocument

from access import require_admin
from database import create_document, now_utc, oid, store_operation, to_decimal128, to_money
from errors import NotFound, ValidationError
from schemas import AdminStats, Identity, Product, ProductBody, ProductUpdate

logger = logging.getLogger(__name__)


def validate_product_fields(fields: Dict[str, Any], partial: bool = False):
    if not partial or "name" in fields:
        if not (fields.get("name") or "").strip():
            raise ValidationError("name", "Product name is required")
    if not partial or "price" in fields:
        price = fields.get("price")
        try:
            # checked after rounding, the value that is actually stored
            if price is None or to_money(price) <= 0:
                raise ValidationError("price", "Price must be greater than 0")
        except InvalidOperation:
            raise ValidationError("price", "Price is not a valid amount")
    if not partial or "category" in fields:
        if not (fields.get("category") or "").strip():
            raise ValidationError("category", "Category is required")


def _to_document(fields: Dict[str, Any]) -> Dict[str, Any]:
    doc = dict(fields)
    for key in ("name", "category"):
        if key in doc:
            doc[key] = doc[key].strip()
    if "price" in doc:
        doc["price"] = to_decimal128(doc["price"])
    return doc


@store_operation("create product")
def create_product(db, identity: Optional[Identity], body: ProductBody) -> Product:
    identity = require_admin(identity)
    fields = body.model_dump()
    validate_product_fields(fields)
    product_id = create_document(db, "products", _to_document(fields))
    logger.info("Product %s created by %s", product_id, identity.user_id)
    return Product.from_doc(db["products"].find_one({"_id": oid(product_id)}))


@store_operation("update product")
def update_product(db, identity: Optional[Identity], product_id: str, body: ProductUpdate) -> Product:
    identity = require_admin(identity)
    fields = body.model_dump(exclude_unset=True)
    if fields.get("is_featured") is None:
        fields.pop("is_featured", None)
    validate_product_fields(fields, partial=True)
    doc = db["products"].find_one_and_update(
        {"_id": oid(product_id)},
        {"$set": {**_to_document(fields), "updated_at": now_utc()}},
        return_document=ReturnDocument.AFTER,
    )
    if doc is None:
        raise NotFound("Product not found")
    logger.info("Product %s updated by %s", product_id, identity.user_id)
    return Product.from_doc(doc)


@store_operation("delete product")
def delete_product(db, identity: Optional[Identity], product_id: str) -> bool:
    identity = require_admin(identity)
    result = db["products"].delete_one({"_id": oid(product_id)})
    logger.info("Product %s deleted by %s", product_id, identity.user_id)
    return result.deleted_count == 1


@store_operation("load dashboard data")
def dashboard_stats(db, identity: Optional[Identity]) -> AdminStats:
    require_admin(identity)
    revenue = sum(
        (to_money(o.get("total_amount")) for o in db["orders"].find({}, {"total_amount": 1})),
        Decimal("0.00"),
    )
    return AdminStats(
        total_orders=db["orders"].count_documents({}),
        total_products=db["products"].count_documents({}),
        total_users=db["profiles"].count_documents({"role": "user"}),
        total_revenue=revenue,
    )
