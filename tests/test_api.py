from datetime import timedelta

from access import create_access_token
from conftest import auth


def test_root(client):
    assert client.get("/").json() == {"message": "Nonna's Pizzeria API running"}


def test_menu_and_home(client, margherita, garlic_bread):
    assert len(client.get("/products").json()) == 2
    featured = client.get("/products", params={"featured": True}).json()
    assert [p["name"] for p in featured] == ["Margherita Pizza"]

    home = client.get("/home").json()
    assert [p["id"] for p in home["featured"]] == [margherita]
    assert home["testimonials"] == []

    assert client.get(f"/products/{garlic_bread}").json()["category"] == "appetizer"
    assert client.get("/products/65a000000000000000000000").status_code == 404


def test_cart_requires_login(client, margherita):
    resp = client.post("/cart/items", json={"product_id": margherita})

    assert resp.status_code == 401
    assert resp.json()["detail"] == "Please login to continue"


def test_invalid_token(client):
    resp = client.get("/cart", headers={"Authorization": "Bearer not-a-token"})
    assert resp.status_code == 401

    expired = create_access_token("user-1", "maria@example.com", expires_delta=timedelta(minutes=-5))
    resp = client.get("/cart", headers={"Authorization": f"Bearer {expired}"})
    assert resp.status_code == 401


def test_first_request_provisions_user_profile(client, db):
    resp = client.get("/me", headers=auth("user-9", "luca@example.com", "Luca Bianchi"))

    assert resp.status_code == 200
    assert resp.json() == {"id": "user-9", "email": "luca@example.com", "full_name": "Luca Bianchi", "role": "user"}
    assert db["profiles"].count_documents({"_id": "user-9"}) == 1


def test_role_comes_from_profile_not_token(client, db, margherita):
    headers = auth("user-9")
    client.get("/me", headers=headers)

    resp = client.put(f"/admin/products/{margherita}", json={"price": "1.00"}, headers=headers)

    assert resp.status_code == 403
    assert resp.json()["detail"] == "Admins only"


def test_cart_to_order_flow(client, margherita, garlic_bread):
    headers = auth("user-1", "maria@example.com")
    client.post("/cart/items", json={"product_id": margherita}, headers=headers)
    client.post("/cart/items", json={"product_id": margherita}, headers=headers)
    body = client.post("/cart/items", json={"product_id": garlic_bread}, headers=headers).json()
    assert body["total"] == "42.97"

    body = client.put(f"/cart/items/{garlic_bread}", json={"quantity": 0}, headers=headers).json()
    assert [line["product_id"] for line in body["items"]] == [margherita]
    client.post("/cart/items", json={"product_id": garlic_bread}, headers=headers)

    resp = client.post("/checkout", headers={**headers, "Idempotency-Key": "order-1"})
    assert resp.status_code == 201
    order = resp.json()
    assert order["total_amount"] == "42.97"
    assert order["status"] == "pending"

    again = client.post("/checkout", headers={**headers, "Idempotency-Key": "order-1"})
    assert again.json()["id"] == order["id"]

    assert client.get("/cart", headers=headers).json()["items"] == []
    assert [o["id"] for o in client.get("/orders", headers=headers).json()] == [order["id"]]
    assert client.get(f"/orders/{order['id']}", headers=headers).status_code == 200


def test_checkout_empty_cart(client):
    resp = client.post("/checkout", headers=auth("user-1"))

    assert resp.status_code == 409
    assert resp.json()["detail"] == "Cart is empty"


def test_update_quantity_missing_line(client, margherita):
    resp = client.put(f"/cart/items/{margherita}", json={"quantity": 2}, headers=auth("user-1"))
    assert resp.status_code == 404


def test_admin_endpoints(client, db, admin_user, margherita):
    headers = auth(admin_user.user_id, admin_user.email)

    resp = client.post("/admin/products", json={"name": "Calzone", "price": "0", "category": "pizza"},
                       headers=headers)
    assert resp.status_code == 422
    assert resp.json()["field"] == "price"
    assert db["products"].count_documents({}) == 1

    resp = client.post("/admin/products", json={"name": "Calzone", "price": "14.50", "category": "pizza"},
                       headers=headers)
    assert resp.status_code == 201
    calzone = resp.json()["id"]

    customer_headers = auth("user-1")
    client.post("/cart/items", json={"product_id": calzone}, headers=customer_headers)
    order = client.post("/checkout", headers=customer_headers).json()

    resp = client.put(f"/admin/orders/{order['id']}/status", json={"status": "preparing"}, headers=headers)
    assert resp.json()["status"] == "preparing"
    resp = client.put(f"/admin/orders/{order['id']}/status", json={"status": "lost"}, headers=headers)
    assert resp.status_code == 422

    resp = client.put(f"/admin/orders/{order['id']}/status", json={"status": "ready"}, headers=customer_headers)
    assert resp.status_code == 403

    stats = client.get("/admin/stats", headers=headers).json()
    assert stats["total_orders"] == 1
    assert stats["total_revenue"] == "14.50"

    assert client.delete(f"/admin/products/{calzone}", headers=headers).json() == {"ok": True}
    assert client.get("/admin/orders", headers=headers).json()[0]["items"][0]["product_name"] is None


def test_contact_message(client, db):
    resp = client.post("/contact", json={"name": "Sarah", "email": "sarah@example.com",
                                         "message": "Do you cater weddings?"})

    assert resp.status_code == 201
    assert db["contact_messages"].count_documents({}) == 1
    assert client.post("/contact", json={"name": "Sarah", "email": "nope", "message": "hi"}).status_code == 422


def test_oversized_price_is_a_field_error(client, admin_user):
    resp = client.post("/admin/products", json={"name": "Calzone", "price": "1e30", "category": "pizza"},
                       headers=auth(admin_user.user_id, admin_user.email))

    assert resp.status_code == 422
    assert resp.json()["field"] == "price"
