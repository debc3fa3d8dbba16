import logging
import os
from contextlib import asynccontextmanager
from typing import List, Optional

from fastapi import Depends, FastAPI, Header, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

import admin
import cart
import catalog
import database
import orders
from access import get_identity, require_user
from database import create_document, ensure_indexes, get_db
from errors import StorefrontError, ValidationError
from schemas import (
    AdminStats, Cart, CartItemBody, ContactBody, Identity, Order, Product, ProductBody,
    ProductUpdate, Profile, QuantityBody, StatusBody, Testimonial,
)
from seed import seed_demo_data

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO"),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    if database.db is not None:
        ensure_indexes(database.db)
    yield


app = FastAPI(title="Nonna's Pizzeria API", version="1.0.0", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=os.getenv("CORS_ORIGINS", "*").split(","),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(StorefrontError)
async def storefront_error_handler(request: Request, exc: StorefrontError):
    body = {"detail": exc.message}
    if isinstance(exc, ValidationError):
        body["field"] = exc.field
    headers = {"WWW-Authenticate": "Bearer"} if exc.status_code == 401 else None
    return JSONResponse(status_code=exc.status_code, content=body, headers=headers)

# ---------------------- Root & Health ----------------------

@app.get("/")
def read_root():
    return {"message": "Nonna's Pizzeria API running"}

@app.get("/test")
def test_database():
    response = {
        "backend": "running",
        "database": "not available",
        "database_name": None,
        "collections": [],
    }
    if database.db is not None:
        response["database_name"] = database.db.name
        try:
            response["collections"] = database.db.list_collection_names()
            response["database"] = "connected"
        except Exception as e:
            response["database"] = f"connected but error: {str(e)[:80]}"
    return response

# ---------------------- Menu & Landing Page ----------------------

@app.get("/products", response_model=List[Product])
def list_products(featured: Optional[bool] = None, category: Optional[str] = None,
                  limit: Optional[int] = None, db=Depends(get_db)):
    return catalog.list_products(db, featured=featured, category=category, limit=limit)

@app.get("/products/{pid}", response_model=Product)
def get_product(pid: str, db=Depends(get_db)):
    return catalog.get_product(db, pid)

@app.get("/categories", response_model=List[str])
def list_categories(db=Depends(get_db)):
    return catalog.list_categories(db)

@app.get("/testimonials", response_model=List[Testimonial])
def list_testimonials(limit: int = 6, db=Depends(get_db)):
    return catalog.list_testimonials(db, limit=limit)

@app.get("/home")
def home(db=Depends(get_db)):
    return {
        "featured": catalog.list_featured(db),
        "testimonials": catalog.list_testimonials(db),
    }

@app.post("/contact", status_code=201)
def contact(body: ContactBody, db=Depends(get_db)):
    with database.store_errors("send message"):
        message_id = create_document(db, "contact_messages", body)
    logger.info("Contact message %s received", message_id)
    return {"_id": message_id}

# ---------------------- Profile ----------------------

@app.get("/me", response_model=Profile)
def me(identity: Optional[Identity] = Depends(get_identity), db=Depends(get_db)):
    identity = require_user(identity)
    with database.store_errors("load profile"):
        doc = db["profiles"].find_one({"_id": identity.user_id})
    return Profile.from_doc(doc)

# ---------------------- Cart ----------------------

@app.get("/cart", response_model=Cart)
def get_cart(identity: Optional[Identity] = Depends(get_identity), db=Depends(get_db)):
    return cart.load_cart(db, identity)

@app.post("/cart/items", response_model=Cart)
def add_to_cart(body: CartItemBody, identity: Optional[Identity] = Depends(get_identity), db=Depends(get_db)):
    return cart.add_item(db, identity, body.product_id)

@app.put("/cart/items/{product_id}", response_model=Cart)
def update_cart_item(product_id: str, body: QuantityBody,
                     identity: Optional[Identity] = Depends(get_identity), db=Depends(get_db)):
    return cart.update_quantity(db, identity, product_id, body.quantity)

@app.delete("/cart/items/{product_id}", response_model=Cart)
def remove_from_cart(product_id: str, identity: Optional[Identity] = Depends(get_identity), db=Depends(get_db)):
    return cart.remove_item(db, identity, product_id)

@app.delete("/cart", response_model=Cart)
def clear_cart(identity: Optional[Identity] = Depends(get_identity), db=Depends(get_db)):
    return cart.clear_cart(db, identity)

# ---------------------- Checkout & Orders ----------------------

@app.post("/checkout", response_model=Order, status_code=201)
def checkout(idempotency_key: Optional[str] = Header(None),
             identity: Optional[Identity] = Depends(get_identity), db=Depends(get_db)):
    snapshot = cart.load_cart(db, identity)
    return orders.checkout(db, identity, snapshot, idempotency_key=idempotency_key)

@app.get("/orders", response_model=List[Order])
def list_orders(identity: Optional[Identity] = Depends(get_identity), db=Depends(get_db)):
    return orders.list_orders(db, identity)

@app.get("/orders/{order_id}", response_model=Order)
def get_order(order_id: str, identity: Optional[Identity] = Depends(get_identity), db=Depends(get_db)):
    return orders.get_order(db, identity, order_id)

# ---------------------- Admin: Products, Orders, Stats ----------------------

@app.post("/admin/products", response_model=Product, status_code=201)
def admin_create_product(body: ProductBody, identity: Optional[Identity] = Depends(get_identity),
                         db=Depends(get_db)):
    return admin.create_product(db, identity, body)

@app.put("/admin/products/{pid}", response_model=Product)
def admin_update_product(pid: str, body: ProductUpdate, identity: Optional[Identity] = Depends(get_identity),
                         db=Depends(get_db)):
    return admin.update_product(db, identity, pid, body)

@app.delete("/admin/products/{pid}")
def admin_delete_product(pid: str, identity: Optional[Identity] = Depends(get_identity), db=Depends(get_db)):
    return {"ok": admin.delete_product(db, identity, pid)}

@app.get("/admin/orders", response_model=List[Order])
def admin_list_orders(status: Optional[str] = None, identity: Optional[Identity] = Depends(get_identity),
                      db=Depends(get_db)):
    return orders.list_all_orders(db, identity, status=status)

@app.put("/admin/orders/{order_id}/status", response_model=Order)
def admin_set_order_status(order_id: str, body: StatusBody,
                           identity: Optional[Identity] = Depends(get_identity), db=Depends(get_db)):
    return orders.set_status(db, identity, order_id, body.status)

@app.get("/admin/stats", response_model=AdminStats)
def admin_stats(identity: Optional[Identity] = Depends(get_identity), db=Depends(get_db)):
    return admin.dashboard_stats(db, identity)

@app.post("/admin/seed")
def seed(identity: Optional[Identity] = Depends(get_identity), db=Depends(get_db)):
    return {"ok": True, "inserted": seed_demo_data(db, identity)}

if __name__ == "__main__":
    import uvicorn
    port = int(os.getenv("PORT", 8000))
    uvicorn.run(app, host="0.0.0.0", port=port)
