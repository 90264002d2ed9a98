from marketplace.domain.models import Restaurant, User

from conftest import PASSWORD, auth_headers


def test_signup_and_login(client):
    resp = client.post(
        "/auth/signup", json={"name": "Maria", "email": "Maria@Example.com", "password": "hunter22"}
    )
    assert resp.status_code == 201
    assert resp.json()["email"] == "maria@example.com"
    assert resp.json()["role"] == "USER"

    token = client.post("/auth/token", json={"email": "maria@example.com", "password": "hunter22"}).json()
    assert token["token_type"] == "bearer"

    me = client.get("/api/me", headers={"Authorization": f"Bearer {token['access_token']}"})
    assert me.json()["name"] == "Maria"


def test_signup_rejects_duplicate_email(client, customer):
    resp = client.post("/auth/signup", json={"name": "Again", "email": customer.email, "password": "hunter22"})
    assert resp.status_code == 400


def test_login_with_wrong_password(client, customer):
    resp = client.post("/auth/token", json={"email": customer.email, "password": "nope-nope"})
    assert resp.status_code == 401
    assert resp.json()["detail"] == "Incorrect email or password"


def test_invalid_token_is_rejected(client):
    assert client.get("/api/me", headers={"Authorization": "Bearer not-a-jwt"}).status_code == 401
    assert client.get("/api/me").status_code == 401


def test_restaurant_signup_creates_pending_restaurant(client, db, category):
    resp = client.post(
        "/auth/signup",
        json={
            "name": "Chef",
            "email": "chef@example.com",
            "password": "hunter22",
            "role": "RESTAURANT",
            "restaurant_name": "Cantina São João",
        },
    )
    assert resp.status_code == 201
    restaurant = db.query(Restaurant).filter(Restaurant.owner_id == resp.json()["id"]).one()
    assert restaurant.slug == "cantina-sao-joao"
    assert restaurant.is_approved is False
    assert restaurant.is_active is False
    assert restaurant.subscription_status == "PENDING"
    assert client.get("/api/restaurants/cantina-sao-joao").status_code == 404


def test_update_profile_and_password(client, db, customer):
    headers = auth_headers(customer)
    resp = client.put(
        "/api/me",
        json={
            "name": "Carla C.",
            "email": "carla@example.com",
            "phone": "11999990000",
            "current_password": PASSWORD,
            "new_password": "brand-new",
        },
        headers=headers,
    )
    assert resp.status_code == 200
    assert resp.json()["email"] == "carla@example.com"
    login = client.post("/auth/token", json={"email": "carla@example.com", "password": "brand-new"})
    assert login.status_code == 200


def test_update_profile_checks_current_password_and_email(client, make_user, customer):
    make_user("taken@example.com")
    headers = auth_headers(customer)
    base = {"name": "Carla", "email": customer.email}

    wrong = client.put("/api/me", json={**base, "current_password": "wrong", "new_password": "brand-new"}, headers=headers)
    assert wrong.status_code == 400

    taken = client.put("/api/me", json={**base, "email": "taken@example.com"}, headers=headers)
    assert taken.status_code == 409


def test_upgrade_to_restaurant(client, db, customer, category):
    resp = client.post("/api/me/upgrade", json={"restaurant_name": "Carla's Kitchen"}, headers=auth_headers(customer))
    assert resp.status_code == 200
    assert resp.json()["role"] == "RESTAURANT"
    db.expire_all()
    assert db.query(Restaurant).filter(Restaurant.owner_id == customer.id).one().slug == "carla-s-kitchen"

    again = client.post("/api/me/upgrade", headers=auth_headers(db.get(User, customer.id)))
    assert again.status_code == 400


def test_role_is_read_from_the_database(client, db, customer, admin):
    # Token was issued while the user was a customer
    headers = auth_headers(customer)
    customer.role = "ADMIN"
    db.commit()
    assert client.get("/api/admin/users", headers=headers).status_code == 200
