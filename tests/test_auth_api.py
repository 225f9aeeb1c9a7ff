from datetime import timedelta

from schoolconnect.auth.jwt_handler import create_access_token, verify_token
from schoolconnect.auth.password import hash_password, verify_password

SIGNUP = {
    "firstName": "Grace",
    "secondName": "Brewster",
    "surname": "Hopper",
    "email": "Grace@School.EDU",
    "password": "cobol-1959",
    "role": "teacher",
}


def test_signup_signin_me(client):
    created = client.post("/auth/signup", json=SIGNUP)
    assert created.status_code == 201
    user = created.json()["user"]
    assert user["email"] == "grace@school.edu"
    assert "passwordHash" not in user

    signed_in = client.post("/auth/signin", json={"email": "grace@school.edu", "password": "cobol-1959"})
    assert signed_in.status_code == 200
    body = signed_in.json()
    assert body["token"]["tokenType"] == "bearer"
    assert "auth-token" in signed_in.cookies

    me = client.get("/auth/me", headers={"Authorization": f"Bearer {body['token']['accessToken']}"})
    assert me.json()["user"]["_id"] == user["_id"]


def test_duplicate_email_conflicts(client):
    assert client.post("/auth/signup", json=SIGNUP).status_code == 201
    again = client.post("/auth/signup", json=SIGNUP | {"email": "grace@school.edu"})
    assert again.status_code == 409
    assert again.json()["error"] == "User with this email already exists"


def test_wrong_password(client):
    client.post("/auth/signup", json=SIGNUP)
    res = client.post("/auth/signin", json={"email": "grace@school.edu", "password": "nope"})
    assert res.status_code == 401
    assert res.json()["error"] == "Invalid email or password"


def test_signup_validation(client):
    res = client.post("/auth/signup", json=SIGNUP | {"password": "123", "role": "admin"})
    assert res.status_code == 400
    fields = {d["field"] for d in res.json()["details"]}
    assert {"password", "role"} <= fields


def test_expired_token_is_rejected():
    token = create_access_token("u1", "a@b.edu", "student", expires_delta=timedelta(seconds=-5))
    assert verify_token(token) is None


def test_token_round_trip_payload():
    payload = verify_token(create_access_token("u1", "a@b.edu", "parent"))
    assert (payload.user_id, payload.role) == ("u1", "parent")


def test_password_hashing():
    hashed = hash_password("s3cret")
    assert hashed != "s3cret"
    assert verify_password("s3cret", hashed)
    assert not verify_password("other", hashed)
