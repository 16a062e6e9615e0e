from support import PASSWORD, client, unique
from ticketswapper.core.security import create_email_confirmation_token


def register(email: str, password: str = PASSWORD):
    return client.post("/auth/register", json={"email": email, "password": password, "full_name": "Meera Iyer"})


def test_register_confirm_and_login():
    email = f"{unique('Reg')}@Example.com"
    r = register(email)
    assert r.status_code == 201, r.text
    data = r.json()
    assert data["email"] == email.lower()
    assert data["role"] == "user"
    assert data["email_confirmed_at"] is None
    token = data["confirmation_token"]

    assert register(email).status_code == 409

    r = client.post("/auth/login-json", json={"email": email, "password": PASSWORD})
    assert r.status_code == 200
    headers = {"Authorization": f"Bearer {r.json()['access_token']}"}
    assert client.get("/auth/me", headers=headers).json()["email_confirmed_at"] is None

    r = client.post("/auth/confirm-email", json={"token": token})
    assert r.status_code == 200
    assert r.json()["email_confirmed_at"] is not None
    assert client.get("/auth/me", headers=headers).json()["email_confirmed_at"] is not None


def test_form_login_and_bad_credentials():
    email = f"{unique('form')}@example.com"
    register(email)
    r = client.post("/auth/login", data={"username": email, "password": PASSWORD})
    assert r.status_code == 200
    assert r.json()["token_type"] == "bearer"
    assert client.post("/auth/login-json", json={"email": email, "password": "wrong-pass"}).status_code == 401
    assert client.post("/auth/login-json", json={"email": "nobody@example.com", "password": PASSWORD}).status_code == 401


def test_register_validation():
    assert register(f"{unique('short')}@example.com", password="short").status_code == 422
    assert register("not-an-email").status_code == 422


def test_confirmation_token_is_not_a_bearer_token():
    email = f"{unique('tok')}@example.com"
    register(email)
    token = create_email_confirmation_token(email)
    r = client.get("/auth/me", headers={"Authorization": f"Bearer {token}"})
    assert r.status_code == 401
    assert client.post("/auth/confirm-email", json={"token": "garbage"}).status_code == 400
