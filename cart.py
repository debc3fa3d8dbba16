"""
Cart store.

A cart is the set of `cart_items` rows owned by one user, at most one row per
product. Rows are joined with the menu in code after two independent reads;
a row pointing at a product that no longer exists is still returned, priced
at zero and flagged unavailable, so the customer can see and remove it.
"""
import logging
from decimal import Decimal
from typing import Iterable, List, Optional

from bson import ObjectId
from pymongo.errors import DuplicateKeyError

from access import require_user
from database import CENT, now_utc, oid, store_operation, to_money
from errors import NotFound
from schemas import Cart, CartLine, Identity

logger = logging.getLogger(__name__)

UNKNOWN_PRODUCT = "Unknown Product"


def cart_total(lines: Iterable[CartLine]) -> Decimal:
    total = sum((line.price * line.quantity for line in lines), Decimal("0.00"))
    return total.quantize(CENT)


def _normalise(product_id: str) -> str:
    # ids are matched as stored, so hex case must not create a second row
    return str(ObjectId(product_id)) if ObjectId.is_valid(product_id) else product_id


def _product_oids(product_ids: Iterable[str]) -> List[ObjectId]:
    return [ObjectId(pid) for pid in product_ids if ObjectId.is_valid(pid)]


@store_operation("load cart items")
def load_cart(db, identity: Optional[Identity]) -> Cart:
    identity = require_user(identity)
    rows = list(db["cart_items"].find({"user_id": identity.user_id}).sort("created_at", 1))
    products = {
        str(p["_id"]): p
        for p in db["products"].find({"_id": {"$in": _product_oids(r["product_id"] for r in rows)}})
    }

    lines = []
    for row in rows:
        product = products.get(row["product_id"])
        if product is None:
            logger.warning("Cart item %s refers to missing product %s", row["_id"], row["product_id"])
        lines.append(CartLine(
            id=str(row["_id"]),
            product_id=row["product_id"],
            name=product["name"] if product else UNKNOWN_PRODUCT,
            price=to_money(product["price"]) if product else Decimal("0.00"),
            quantity=row["quantity"],
            image_url=(product.get("image_url") or "") if product else "",
            available=product is not None,
        ))
    return Cart(user_id=identity.user_id, items=lines, total=cart_total(lines))


@store_operation("add item to cart")
def add_item(db, identity: Optional[Identity], product_id: str) -> Cart:
    identity = require_user(identity)
    product_oid = oid(product_id)
    product_id = str(product_oid)
    if db["products"].find_one({"_id": product_oid}, {"_id": 1}) is None:
        raise NotFound("Product not found")

    now = now_utc()
    filt = {"user_id": identity.user_id, "product_id": product_id}
    update = {
        "$inc": {"quantity": 1},
        "$set": {"updated_at": now},
        "$setOnInsert": {"created_at": now},
    }
    try:
        db["cart_items"].update_one(filt, update, upsert=True)
    except DuplicateKeyError:
        # a concurrent add inserted the row between our match and insert
        db["cart_items"].update_one(filt, update)
    logger.info("Added product %s to cart of %s", product_id, identity.user_id)
    return load_cart(db, identity)


@store_operation("update quantity")
def update_quantity(db, identity: Optional[Identity], product_id: str, quantity: int) -> Cart:
    identity = require_user(identity)
    product_id = _normalise(product_id)
    if quantity <= 0:
        return remove_item(db, identity, product_id)

    result = db["cart_items"].update_one(
        {"user_id": identity.user_id, "product_id": product_id},
        {"$set": {"quantity": quantity, "updated_at": now_utc()}},
    )
    if result.matched_count == 0:
        raise NotFound("Item is not in the cart")
    logger.info("Set quantity of %s to %d for %s", product_id, quantity, identity.user_id)
    return load_cart(db, identity)


@store_operation("remove item from cart")
def remove_item(db, identity: Optional[Identity], product_id: str) -> Cart:
    identity = require_user(identity)
    product_id = _normalise(product_id)
    result = db["cart_items"].delete_one({"user_id": identity.user_id, "product_id": product_id})
    if result.deleted_count:
        logger.info("Removed product %s from cart of %s", product_id, identity.user_id)
    return load_cart(db, identity)


@store_operation("clear cart")
def clear_cart(db, identity: Optional[Identity]) -> Cart:
    identity = require_user(identity)
    result = db["cart_items"].delete_many({"user_id": identity.user_id})
    logger.info("Cleared %d items from cart of %s", result.deleted_count, identity.user_id)
    return Cart(user_id=identity.user_id)
