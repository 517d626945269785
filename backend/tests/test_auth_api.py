from chainproof.models import users

AADHAAR = "1234 5678 9012"


def _register(client, name="Asha Verma", aadhaar=AADHAAR, organization="VerifierOrg", **extra):
    return client.post("/api/auth/register", json={
        "name": name, "aadhaar": aadhaar, "organization": organization, **extra,
    })


def test_register_returns_login_key(client):
    resp = _register(client)
    assert resp.status_code == 201
    data = resp.json()["data"]
    assert data["organization"] == "VerifierOrg"
    assert data["legalRole"] is None
    assert data["loginKey"] == data["publicKeyHash"][:8].upper()
    assert "aadhaarHash" not in data


def test_register_validation(client):
    assert _register(client, aadhaar="12345").status_code == 400
    assert _register(client, organization="WhistleblowersOrg").status_code == 400
    assert _register(client, name="").status_code == 400

    no_role = _register(client, organization="LegalOrg")
    assert no_role.status_code == 400
    assert "legalRole" in no_role.json()["error"]

    assert _register(client, organization="LegalOrg", legalRole="Wizard").status_code == 400


def test_duplicate_aadhaar_conflicts(client):
    assert _register(client).status_code == 201
    resp = _register(client, name="Someone Else")
    assert resp.status_code == 409
    assert resp.json()["success"] is False


def test_login(client):
    pkh = _register(client, organization="LegalOrg", legalRole="Judge").json()["data"]["publicKeyHash"]

    # Name is case-insensitive, Aadhaar whitespace is ignored
    resp = client.post("/api/auth/login", json={"name": "  asha verma ", "aadhaar": "123456789012"})
    assert resp.status_code == 200
    user = resp.json()["data"]["user"]
    assert user["publicKeyHash"] == pkh
    assert user["legalRole"] == "Judge"
    assert user["lastLoginAt"] is not None

    assert client.post("/api/auth/login", json={"name": "Asha Verma", "aadhaar": "000000000000"}).status_code == 401
    assert client.post("/api/auth/login", json={"name": "Asha Verma"}).status_code == 400


def test_suspended_user_cannot_log_in(client, db):
    pkh = _register(client).json()["data"]["publicKeyHash"]
    with users.db_session() as conn:
        conn.execute("UPDATE users SET status='suspended' WHERE public_key_hash=?", (pkh,))

    resp = client.post("/api/auth/login", json={"name": "Asha Verma", "aadhaar": AADHAAR})
    assert resp.status_code == 401
    assert resp.json()["error"] == "Account is suspended"
    assert client.get(f"/api/auth/verify/{pkh}").json()["valid"] is False


def test_me_users_and_verify(client):
    pkh = _register(client).json()["data"]["publicKeyHash"]
    _register(client, name="Ravi", aadhaar="999988887777", organization="LegalOrg", legalRole="Clerk")

    assert client.get(f"/api/auth/me/{pkh}").json()["data"]["name"] == "Asha Verma"
    assert client.get("/api/auth/me/unknown").status_code == 404

    verifiers = client.get("/api/auth/users/VerifierOrg").json()["data"]
    assert [u["name"] for u in verifiers] == ["Asha Verma"]
    assert client.get("/api/auth/users/Elsewhere").status_code == 400

    assert client.get(f"/api/auth/verify/{pkh}").json() == {
        "success": True, "valid": True, "organization": "VerifierOrg",
    }
