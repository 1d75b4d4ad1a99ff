import pytest

from security import ROLE_CAPABILITIES, capabilities_for

NEW_TABLET = {
    "name": "Pixel Tablet",
    "price": 499,
    "category": "Standard",
    "subCategory": "Home",
    "description": "Doubles as a smart display",
    "images": ["https://img.example/pixel.jpg"],
    "sizes": ["128GB"],
    "stock": 7,
}


@pytest.mark.parametrize("method,path", [
    ("get", "/api/admin/users"),
    ("get", "/api/admin/orders"),
    ("post", "/api/admin/products"),
])
def test_admin_routes_forbidden_for_users(client, user_headers, method, path):
    res = client.request(method, path, headers=user_headers, json=NEW_TABLET)
    assert res.status_code == 403


def test_admin_routes_require_auth(client):
    assert client.get("/api/admin/users").status_code == 401


def test_capabilities_by_role():
    assert "users:manage" in capabilities_for("admin")
    assert "users:manage" not in capabilities_for("user")
    assert capabilities_for("user") <= ROLE_CAPABILITIES["admin"]
    assert capabilities_for("intruder") == frozenset()


def test_product_crud(client, admin_headers):
    res = client.post("/api/admin/products", json=NEW_TABLET, headers=admin_headers)
    assert res.status_code == 201
    product = res.json()["product"]
    assert product["sub_category"] == "Home"
    assert product["bestseller"] is False

    res = client.put(f"/api/admin/products/{product['id']}", json={"price": 449, "bestseller": True},
                     headers=admin_headers)
    assert res.status_code == 200
    assert res.json()["product"]["price"] == 449
    assert res.json()["product"]["name"] == "Pixel Tablet"

    assert [t["name"] for t in client.get("/api/tablets/bestsellers").json()["bestsellers"]] == ["Pixel Tablet"]

    res = client.delete(f"/api/admin/products/{product['id']}", headers=admin_headers)
    assert res.status_code == 200
    assert client.get(f"/api/tablets/{product['id']}").status_code == 404


def test_product_validation(client, admin_headers):
    bad = dict(NEW_TABLET, price=0)
    assert client.post("/api/admin/products", json=bad, headers=admin_headers).status_code == 400
    bad = dict(NEW_TABLET, category="Luxury")
    assert client.post("/api/admin/products", json=bad, headers=admin_headers).status_code == 400
    bad = dict(NEW_TABLET, stock=-1)
    assert client.post("/api/admin/products", json=bad, headers=admin_headers).status_code == 400


def test_update_missing_product(client, admin_headers, missing_id):
    res = client.put(f"/api/admin/products/{missing_id}", json={"price": 10}, headers=admin_headers)
    assert res.status_code == 404


def test_empty_product_update_rejected(client, admin_headers, make_product):
    pid = make_product()
    assert client.put(f"/api/admin/products/{pid}", json={}, headers=admin_headers).status_code == 400


def test_product_with_orders_cannot_be_deleted(client, admin_headers, user_headers, make_product, shipping):
    pid = make_product()
    client.post("/api/cart/add", json={"tabletId": pid, "size": "64GB"}, headers=user_headers)
    client.post("/api/checkout", json={"shippingAddress": shipping, "paymentMethod": "cod"}, headers=user_headers)

    res = client.delete(f"/api/admin/products/{pid}", headers=admin_headers)
    assert res.status_code == 400
    assert res.json()["message"] == "Cannot delete product with existing orders"


def test_user_management(client, admin_headers, login):
    res = client.post("/api/admin/users", json={
        "name": "Dana", "email": "dana@example.com", "password": "dana-pass", "phone": "555-1",
    }, headers=admin_headers)
    assert res.status_code == 201
    dana = res.json()["user"]
    assert dana["role"] == "user"

    emails = [u["email"] for u in client.get("/api/admin/users", headers=admin_headers).json()["users"]]
    assert "dana@example.com" in emails

    res = client.put(f"/api/admin/users/{dana['id']}", json={"role": "admin", "email": "Dana2@example.com"},
                     headers=admin_headers)
    assert res.status_code == 200
    assert res.json()["user"]["role"] == "admin"
    assert res.json()["user"]["email"] == "dana2@example.com"

    # role is read from the stored user, so the promotion takes effect immediately
    dana_headers = login("dana2@example.com", "dana-pass")
    assert client.get("/api/admin/users", headers=dana_headers).status_code == 200

    res = client.delete(f"/api/admin/users/{dana['id']}", headers=admin_headers)
    assert res.status_code == 200


def test_user_email_conflicts(client, admin_headers, make_user):
    alice = make_user()
    res = client.post("/api/admin/users", json={
        "name": "Other", "email": "ALICE@example.com", "password": "secret123",
    }, headers=admin_headers)
    assert res.status_code == 409

    res = client.put(f"/api/admin/users/{alice['id']}", json={"email": "admin@example.com"}, headers=admin_headers)
    assert res.status_code == 409


def test_user_with_orders_cannot_be_deleted(client, admin_headers, user_headers, user_id, make_product, shipping):
    pid = make_product()
    client.post("/api/cart/add", json={"tabletId": pid, "size": "64GB"}, headers=user_headers)
    client.post("/api/checkout", json={"shippingAddress": shipping, "paymentMethod": "cod"}, headers=user_headers)

    res = client.delete(f"/api/admin/users/{user_id}", headers=admin_headers)
    assert res.status_code == 400
    assert res.json()["message"] == "Cannot delete user with existing orders"


def test_delete_missing_user(client, admin_headers, missing_id):
    assert client.delete(f"/api/admin/users/{missing_id}", headers=admin_headers).status_code == 404


def test_all_orders_with_status_filter(client, admin_headers, user_headers, make_product, shipping):
    for size in ("64GB", "128GB"):
        pid = make_product()
        client.post("/api/cart/add", json={"tabletId": pid, "size": size}, headers=user_headers)
        client.post("/api/checkout", json={"shippingAddress": shipping, "paymentMethod": "cod"},
                    headers=user_headers)
    orders = client.get("/api/admin/orders", headers=admin_headers).json()["orders"]
    assert len(orders) == 2

    res = client.put(f"/api/admin/orders/{orders[0]['id']}/status", json={"status": "shipped"},
                     headers=admin_headers)
    assert res.status_code == 200

    shipped = client.get("/api/admin/orders", params={"status": "shipped"}, headers=admin_headers).json()["orders"]
    assert [o["id"] for o in shipped] == [orders[0]["id"]]


def test_racing_email_change_is_conflict(client, admin_headers, make_user, monkeypatch):
    import users

    carol = make_user(email="carol@example.com", name="Carol")
    make_user(email="bob@example.com", name="Bob")
    # the pre-check misses the competing write; the unique index still catches it
    monkeypatch.setattr(users, "_find_by_email", lambda email: None)

    res = client.put(f"/api/admin/users/{carol['id']}", json={"email": "bob@example.com"}, headers=admin_headers)
    assert res.status_code == 409
    assert res.json() == {"success": False, "message": "Email already in use"}
