import logging
import os
from typing import List, Optional

from database import get_documents, oid, store_operation
from errors import NotFound
from schemas import Product, Testimonial

logger = logging.getLogger(__name__)

FEATURED_LIMIT = int(os.getenv("FEATURED_LIMIT", 8))


@store_operation("load products")
def list_products(db, featured: Optional[bool] = None, category: Optional[str] = None,
                  limit: Optional[int] = None) -> List[Product]:
    filt = {}
    if featured is not None:
        filt["is_featured"] = featured
    if category:
        filt["category"] = category
    docs = get_documents(db, "products", filt, limit=limit, newest_first=True)
    return [Product.from_doc(d) for d in docs]


def list_featured(db) -> List[Product]:
    return list_products(db, featured=True, limit=FEATURED_LIMIT)


@store_operation("load product")
def get_product(db, product_id: str) -> Product:
    doc = db["products"].find_one({"_id": oid(product_id)})
    if not doc:
        raise NotFound("Product not found")
    return Product.from_doc(doc)


@store_operation("load categories")
def list_categories(db) -> List[str]:
    return sorted(c for c in db["products"].distinct("category") if c)


@store_operation("load testimonials")
def list_testimonials(db, limit: Optional[int] = 6) -> List[Testimonial]:
    docs = get_documents(db, "testimonials", limit=limit, newest_first=True)
    return [Testimonial.from_doc(d) for d in docs]
