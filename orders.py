"""
Orders: placing them from a cart, reading them back, and moving them through
the kitchen statuses.

Checkout writes three things: the order, its lines, and the removal of the
checked-out cart rows. MongoDB gives no multi-document atomicity without a
replica set, so the three writes run as a saga: when a later write fails the
earlier ones are undone before the error is reported. A client-supplied
idempotency key makes a retried checkout return the order that already exists
instead of placing a second one.
"""
import logging
import uuid
from typing import Dict, List, Optional

from bson import ObjectId
from pymongo import DESCENDING, ReturnDocument
from pymongo.errors import DuplicateKeyError, PyMongoError

from access import is_admin, require_admin, require_user
from cart import cart_total
from database import now_utc, oid, store_errors, store_operation, to_decimal128, to_money
from errors import EmptyCart, NotFound, StoreError, ValidationError
from schemas import ORDER_STATUSES, Cart, CustomerSummary, Identity, Order, OrderLine

logger = logging.getLogger(__name__)


def _checkout_key(user_id: str, idempotency_key: Optional[str]) -> str:
    return f"{user_id}:{idempotency_key or uuid.uuid4().hex}"


def _clear_checked_out(db, identity: Identity, order_doc: dict):
    # only the rows that went into this order; anything added since stays in the cart
    db["cart_items"].delete_many({"_id": {"$in": order_doc["cart_item_ids"]}, "user_id": identity.user_id})


def _compensate(db, order_id: ObjectId, identity: Identity, cart: Cart):
    try:
        db["order_items"].delete_many({"order_id": order_id})
        db["orders"].delete_one({"_id": order_id})
        now = now_utc()
        for line in cart.items:
            db["cart_items"].update_one(
                {"user_id": identity.user_id, "product_id": line.product_id},
                {"$setOnInsert": {"quantity": line.quantity, "created_at": now, "updated_at": now}},
                upsert=True,
            )
    except PyMongoError as e:
        logger.error("Could not roll back order %s for %s: %s", order_id, identity.user_id, e)
    else:
        logger.info("Rolled back order %s for %s", order_id, identity.user_id)


def _replay(db, identity: Identity, order_doc: dict) -> Order:
    logger.info("Checkout key reused, returning existing order %s", order_doc["_id"])
    with store_errors("process checkout"):
        _clear_checked_out(db, identity, order_doc)
        return _hydrate(db, [order_doc])[0]


def checkout(db, identity: Optional[Identity], cart: Cart, idempotency_key: Optional[str] = None) -> Order:
    identity = require_user(identity)
    key = _checkout_key(identity.user_id, idempotency_key)
    if idempotency_key:
        # a retry after success finds its order even though the cart is now empty
        with store_errors("process checkout"):
            existing = db["orders"].find_one({"checkout_key": key})
        if existing:
            return _replay(db, identity, existing)

    if not cart.items:
        raise EmptyCart()
    if any(not line.available for line in cart.items):
        raise NotFound("Some items in your cart are no longer on the menu")

    now = now_utc()
    total = cart_total(cart.items)
    order_doc = {
        "user_id": identity.user_id,
        "total_amount": to_decimal128(total),
        "status": "pending",
        "checkout_key": key,
        "cart_item_ids": [ObjectId(line.id) for line in cart.items],
        "created_at": now,
        "updated_at": now,
    }
    try:
        order_id = db["orders"].insert_one(order_doc).inserted_id
    except DuplicateKeyError:
        with store_errors("process checkout"):
            existing = db["orders"].find_one({"checkout_key": key})
        if existing is None:
            raise StoreError("Failed to process checkout")
        return _replay(db, identity, existing)
    except PyMongoError as e:
        logger.error("Order creation failed for %s: %s", identity.user_id, e)
        raise StoreError("Failed to process checkout") from e

    line_docs = [
        {
            "order_id": order_id,
            "product_id": line.product_id,
            "quantity": line.quantity,
            "price": to_decimal128(line.price),
            "created_at": now,
        }
        for line in cart.items
    ]
    try:
        db["order_items"].insert_many(line_docs)
        _clear_checked_out(db, identity, order_doc)
    except PyMongoError as e:
        logger.error("Checkout failed after creating order %s: %s", order_id, e)
        _compensate(db, order_id, identity, cart)
        raise StoreError("Failed to process checkout") from e

    logger.info("Order %s placed by %s for %s", order_id, identity.user_id, total)
    names = {line.product_id: line for line in cart.items}
    return Order(
        id=str(order_id),
        user_id=identity.user_id,
        total_amount=total,
        status="pending",
        created_at=now,
        items=[
            OrderLine(
                id=str(d["_id"]),
                order_id=str(order_id),
                product_id=d["product_id"],
                quantity=d["quantity"],
                price=to_money(d["price"]),
                product_name=names[d["product_id"]].name,
                image_url=names[d["product_id"]].image_url or None,
            )
            for d in line_docs
        ],
    )


def _hydrate(db, order_docs: List[dict], with_customer: bool = False) -> List[Order]:
    """Attach lines, product names and optionally the customer to each order."""
    if not order_docs:
        return []
    order_ids = [o["_id"] for o in order_docs]
    lines_by_order: Dict[ObjectId, List[dict]] = {oid_: [] for oid_ in order_ids}
    item_docs = list(db["order_items"].find({"order_id": {"$in": order_ids}}))
    for item in item_docs:
        lines_by_order.setdefault(item["order_id"], []).append(item)

    product_oids = [ObjectId(i["product_id"]) for i in item_docs if ObjectId.is_valid(i["product_id"])]
    products = {str(p["_id"]): p for p in db["products"].find({"_id": {"$in": product_oids}})}

    profiles = {}
    if with_customer:
        user_ids = list({o["user_id"] for o in order_docs})
        profiles = {p["_id"]: p for p in db["profiles"].find({"_id": {"$in": user_ids}})}

    out = []
    for o in order_docs:
        items = []
        for item in lines_by_order.get(o["_id"], []):
            product = products.get(item["product_id"])
            items.append(OrderLine(
                id=str(item["_id"]),
                order_id=str(o["_id"]),
                product_id=item["product_id"],
                quantity=item["quantity"],
                price=to_money(item["price"]),
                product_name=product["name"] if product else None,
                image_url=product.get("image_url") if product else None,
            ))
        profile = profiles.get(o["user_id"])
        out.append(Order(
            id=str(o["_id"]),
            user_id=o["user_id"],
            total_amount=to_money(o["total_amount"]),
            status=o["status"],
            created_at=o.get("created_at"),
            items=items,
            customer=CustomerSummary(full_name=profile.get("full_name"), email=profile.get("email", ""))
            if profile else None,
        ))
    return out


@store_operation("load orders")
def list_orders(db, identity: Optional[Identity]) -> List[Order]:
    identity = require_user(identity)
    docs = list(db["orders"].find({"user_id": identity.user_id}).sort("created_at", DESCENDING))
    return _hydrate(db, docs)


@store_operation("load order")
def get_order(db, identity: Optional[Identity], order_id: str) -> Order:
    identity = require_user(identity)
    doc = db["orders"].find_one({"_id": oid(order_id)})
    if not doc or (doc["user_id"] != identity.user_id and not is_admin(identity)):
        raise NotFound("Order not found")
    return _hydrate(db, [doc], with_customer=is_admin(identity))[0]


def _check_status(status: str):
    if status not in ORDER_STATUSES:
        raise ValidationError("status", f"Status must be one of: {', '.join(ORDER_STATUSES)}")


@store_operation("load orders")
def list_all_orders(db, identity: Optional[Identity], status: Optional[str] = None) -> List[Order]:
    require_admin(identity)
    filt = {}
    if status:
        _check_status(status)
        filt["status"] = status
    docs = list(db["orders"].find(filt).sort("created_at", DESCENDING))
    return _hydrate(db, docs, with_customer=True)


@store_operation("update order status")
def set_status(db, identity: Optional[Identity], order_id: str, new_status: str) -> Order:
    identity = require_admin(identity)
    _check_status(new_status)
    doc = db["orders"].find_one_and_update(
        {"_id": oid(order_id)},
        {"$set": {"status": new_status, "updated_at": now_utc()}},
        return_document=ReturnDocument.AFTER,
    )
    if doc is None:
        raise NotFound("Order not found")
    logger.info("Order %s set to %s by %s", order_id, new_status, identity.user_id)
    return _hydrate(db, [doc], with_customer=True)[0]
