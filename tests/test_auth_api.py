import json
import logging

import pytest
from sqlmodel import Session, select

from storefront.db.models import Role, User
from storefront.services.auth import PasswordHasher
from storefront.services.users import UserService

from .conftest import ADMIN_EMAIL, ADMIN_PASSWORD

API = "/api/auth"


def login(client, email, password):
    return client.post(f"{API}/login", json={"email": email, "password": password})


def bearer(token):
    return {"Authorization": f"Bearer {token}"}


def count_users(engine):
    with Session(engine) as session:
        return len(session.exec(select(User)).all())


# Registration

def test_register_creates_account_and_sends_both_otps(client, engine, sms, mail, register_user):
    data = register_user(phonenumber="+91 98765 43210")

    assert data["username"] == "alice"
    assert data["email"] == "alice@example.com"
    assert data["phonenumber"] == "919876543210"
    assert data["role"] == "user"
    assert data["userId"] == data["id"]
    assert data["notifications"] == {"phoneDelivered": True, "emailDelivered": True}
    assert "password" not in data and "password_hash" not in data

    assert sms.sent[0][0] == "+919876543210"
    assert mail.sent[0][0] == "alice@example.com"

    with Session(engine) as session:
        user = session.get(User, data["id"])
        assert user.password_hash != "pa55word!"
        assert PasswordHasher().verify(user.password_hash, "pa55word!")


def test_register_requires_all_fields(client):
    response = client.post(f"{API}/register", json={"username": "alice", "email": "alice@example.com"})

    assert response.status_code == 400
    assert response.json() == {"success": False, "message": "All fields are required"}


def test_register_with_admin_email_is_forbidden(client, engine):
    response = client.post(f"{API}/register", json={
        "username": "mallory",
        "email": ADMIN_EMAIL.upper(),
        "password": "whatever",
        "phonenumber": "15550001111",
    })

    assert response.status_code == 403
    assert count_users(engine) == 0


@pytest.mark.parametrize("username, phonenumber, existing", [
    ("mallory", "not-a-number", 0),
    ("ab", "15550001111", 0),
    ("mallory", "919876543210", 1),
])
def test_admin_email_is_rejected_before_other_checks(client, engine, register_user,
                                                     username, phonenumber, existing):
    if existing:
        register_user(phonenumber="919876543210")

    response = client.post(f"{API}/register", json={
        "username": username,
        "email": ADMIN_EMAIL,
        "password": "whatever",
        "phonenumber": phonenumber,
    })

    assert response.status_code == 403
    assert response.json()["message"] == "Cannot register with admin credentials"
    with Session(engine) as session:
        assert session.exec(select(User).where(User.email == ADMIN_EMAIL)).first() is None
    assert count_users(engine) == existing


def test_register_duplicate_email_or_phone_conflicts(client, register_user):
    register_user()
    same_email = client.post(f"{API}/register", json={
        "username": "alice2", "email": "alice@example.com", "password": "x1", "phonenumber": "15550001111",
    })
    same_phone = client.post(f"{API}/register", json={
        "username": "bob", "email": "bob@example.com", "password": "x1", "phonenumber": "919876543210",
    })

    assert same_email.status_code == 409
    assert same_phone.status_code == 409


def test_register_succeeds_when_delivery_fails(client, sms, mail, app, register_user):
    sms.fail = True
    mail.fail = True

    data = register_user()

    assert data["notifications"] == {"phoneDelivered": False, "emailDelivered": False}
    # The codes were still stored and remain usable
    phone_code = app.state.phone_otp.ledger.peek(data["id"]).code
    response = client.post(f"{API}/verify-phone-otp", json={"userId": data["id"], "otp": phone_code})
    assert response.status_code == 200


def test_malformed_body_is_a_bad_request(client):
    response = client.post(f"{API}/register", content="{not json", headers={"Content-Type": "application/json"})

    assert response.status_code == 400
    assert response.json()["success"] is False


# OTP verification and resend

def test_verify_phone_otp_is_single_use(client, sms, register_user):
    data = register_user()
    code = sms.last_code()

    first = client.post(f"{API}/verify-phone-otp", json={"userId": data["id"], "otp": code})
    second = client.post(f"{API}/verify-phone-otp", json={"userId": data["id"], "otp": code})

    assert first.status_code == 200
    assert first.json()["message"] == "Phone verified successfully"
    assert second.status_code == 400
    assert second.json()["message"] == "Invalid or expired OTP"


def test_verify_email_otp_accepts_numeric_code(client, mail, register_user):
    register_user()
    code = mail.last_code()

    response = client.post(f"{API}/verify-email-otp", json={"email": "alice@example.com", "otp": int(code)})

    assert response.status_code == 200


def test_verify_otp_after_expiry_fails(client, sms, clock, register_user):
    data = register_user()
    code = sms.last_code()
    clock.advance(5 * 60 + 1)

    response = client.post(f"{API}/verify-phone-otp", json={"userId": data["id"], "otp": code})

    assert response.status_code == 400


def test_verify_otp_requires_fields(client):
    response = client.post(f"{API}/verify-email-otp", json={"email": "alice@example.com"})

    assert response.status_code == 400
    assert response.json()["message"] == "Email and OTP are required"


def test_resend_phone_otp(client, sms, register_user):
    data = register_user()

    response = client.post(f"{API}/resend-phone-otp", json={"userId": data["id"]})

    assert response.status_code == 200
    assert len(sms.sent) == 2
    assert client.post(f"{API}/resend-phone-otp", json={}).status_code == 400
    assert client.post(f"{API}/resend-phone-otp", json={"userId": "missing"}).status_code == 404


def test_resend_email_otp_unknown_account(client):
    response = client.post(f"{API}/resend-email-otp", json={"email": "ghost@example.com"})

    assert response.status_code == 404
    assert response.json() == {"success": False, "message": "User not found"}


def test_resend_surfaces_delivery_failure(client, mail, register_user):
    register_user()
    mail.fail = True

    response = client.post(f"{API}/resend-email-otp", json={"email": "alice@example.com"})

    assert response.status_code == 503
    assert response.json()["success"] is False


def test_unverified_account_can_still_log_in(client, register_user):
    register_user()

    assert login(client, "alice@example.com", "pa55word!").status_code == 200


# Login, refresh, logout

def test_login_returns_access_token_and_sets_refresh_cookie(client, app, register_user):
    data = register_user()

    response = login(client, "alice@example.com", "pa55word!")

    assert response.status_code == 200
    body = response.json()["data"]
    assert body["user"] == {"id": data["id"], "username": "alice", "email": "alice@example.com", "role": "user"}
    claims = app.state.token_service.verify_access(body["accessToken"])
    assert claims.identity.id == data["id"]
    assert claims.role is Role.USER

    cookie = response.headers["set-cookie"]
    assert cookie.startswith("refreshToken=")
    assert "HttpOnly" in cookie
    assert "SameSite=strict" in cookie
    assert "Max-Age=604800" in cookie
    assert "refreshToken" not in response.json()["data"]


def test_login_failures_are_indistinguishable(client, register_user):
    register_user()

    wrong_password = login(client, "alice@example.com", "nope")
    unknown_email = login(client, "ghost@example.com", "nope")

    assert wrong_password.status_code == unknown_email.status_code == 401
    assert wrong_password.json() == unknown_email.json() == {"success": False, "message": "Invalid credentials"}


def test_login_requires_fields(client):
    assert login(client, "alice@example.com", "").status_code == 400


def test_admin_login_bypasses_account_store(client, app, monkeypatch):
    def boom(*args, **kwargs):
        raise AssertionError("account store must not be consulted")

    monkeypatch.setattr(UserService, "find_by_email", boom)

    response = login(client, ADMIN_EMAIL, ADMIN_PASSWORD)

    assert response.status_code == 200
    body = response.json()
    assert body["message"] == "Admin login successful"
    assert body["data"]["user"]["role"] == "admin"
    assert body["data"]["user"]["id"].startswith("admin_")
    claims = app.state.token_service.verify_access(body["data"]["accessToken"])
    assert claims.role is Role.ADMIN
    assert claims.identity.is_builtin_admin


def test_admin_id_uses_service_clock(client, clock):
    body = login(client, ADMIN_EMAIL, ADMIN_PASSWORD).json()

    assert body["data"]["user"]["id"] == f"admin_{int(clock.now * 1000)}"


def test_admin_email_with_wrong_password_gets_generic_error(client):
    response = login(client, ADMIN_EMAIL, "guess")

    assert response.status_code == 401
    assert response.json()["message"] == "Invalid credentials"


def test_refresh_for_admin_skips_lookup(client, app, monkeypatch):
    login(client, ADMIN_EMAIL, ADMIN_PASSWORD)

    def boom(*args, **kwargs):
        raise AssertionError("account store must not be consulted")

    monkeypatch.setattr(UserService, "find_by_id", boom)

    response = client.post(f"{API}/refresh")

    assert response.status_code == 200
    claims = app.state.token_service.verify_access(response.json()["data"]["accessToken"])
    assert claims.role is Role.ADMIN


def test_refresh_picks_up_role_change(client, app, engine, register_user):
    data = register_user()
    first = login(client, "alice@example.com", "pa55word!").json()["data"]["accessToken"]

    with Session(engine) as session:
        user = session.get(User, data["id"])
        user.role = Role.ADMIN
        session.add(user)
        session.commit()

    refreshed = client.post(f"{API}/refresh").json()["data"]["accessToken"]

    tokens = app.state.token_service
    assert tokens.verify_access(first).role is Role.USER
    assert tokens.verify_access(refreshed).role is Role.ADMIN


def test_refresh_without_cookie_or_with_bad_cookie(client):
    missing = client.post(f"{API}/refresh")
    assert missing.status_code == 401
    assert missing.json()["message"] == "Refresh token not found"

    client.cookies.set("refreshToken", "garbage")
    invalid = client.post(f"{API}/refresh")
    assert invalid.status_code == 401
    assert invalid.json()["message"] == "Invalid token"


def test_refresh_for_deleted_account_is_not_found(client, engine, register_user):
    data = register_user()
    login(client, "alice@example.com", "pa55word!")

    with Session(engine) as session:
        session.delete(session.get(User, data["id"]))
        session.commit()

    assert client.post(f"{API}/refresh").status_code == 404


def audit_entries(caplog):
    return [json.loads(r.getMessage()[len("AUDIT: "):])
            for r in caplog.records if r.name == "storefront.audit"]


def test_refresh_is_audited(client, engine, caplog, register_user):
    caplog.set_level(logging.INFO, logger="storefront.audit")
    data = register_user()
    login(client, "alice@example.com", "pa55word!")
    client.post(f"{API}/refresh")

    with Session(engine) as session:
        session.delete(session.get(User, data["id"]))
        session.commit()
    client.post(f"{API}/refresh")

    login(client, ADMIN_EMAIL, ADMIN_PASSWORD)
    client.post(f"{API}/refresh")

    refreshes = [e for e in audit_entries(caplog) if e["action"].startswith("refresh")]
    assert [(e["action"], e["success"]) for e in refreshes] == [
        ("refresh", True),
        ("refresh_account_gone", False),
        ("refresh_admin", True),
    ]
    assert refreshes[0]["user_id"] == data["id"]
    assert refreshes[1]["user_id"] == data["id"]
    assert refreshes[2]["user_id"].startswith("admin_")
    assert "alice@example.com" not in caplog.text


def test_refresh_cookie_expires_after_seven_days(client, clock, register_user):
    register_user()
    login(client, "alice@example.com", "pa55word!")
    clock.advance(7 * 24 * 60 * 60)

    response = client.post(f"{API}/refresh")

    assert response.status_code == 401
    assert response.json()["message"] == "Token expired"


def test_logout_clears_refresh_cookie(client, register_user):
    register_user()
    login(client, "alice@example.com", "pa55word!")

    response = client.post(f"{API}/logout")

    assert response.status_code == 200
    assert response.json()["message"] == "Logged out successfully"
    assert 'refreshToken=""' in response.headers["set-cookie"]
    assert client.post(f"{API}/refresh").status_code == 401


def test_logout_leaves_access_token_usable(client, register_user):
    register_user()
    token = login(client, "alice@example.com", "pa55word!").json()["data"]["accessToken"]
    client.post(f"{API}/logout", headers=bearer(token))

    assert client.get(f"{API}/me", headers=bearer(token)).status_code == 200


# Password recovery

def test_forgot_password_unknown_email_looks_the_same(client, app, sms, mail, register_user):
    register_user()
    sms.sent.clear()
    mail.sent.clear()

    unknown = client.post(f"{API}/forgot-password", json={"email": "ghost@example.com"})
    assert sms.sent == [] and mail.sent == []
    assert app.state.email_otp.ledger.peek("ghost@example.com") is None

    known = client.post(f"{API}/forgot-password", json={"email": "alice@example.com"})
    assert len(sms.sent) == 1 and len(mail.sent) == 1

    assert unknown.status_code == known.status_code == 200
    assert unknown.json() == known.json()


def test_forgot_password_rejects_admin_email(client):
    response = client.post(f"{API}/forgot-password", json={"email": ADMIN_EMAIL})

    assert response.status_code == 403


def test_forgot_password_requires_email(client):
    assert client.post(f"{API}/forgot-password", json={}).status_code == 400


def test_reset_password_with_email_otp(client, mail, register_user):
    register_user()
    client.post(f"{API}/forgot-password", json={"email": "alice@example.com"})

    response = client.post(f"{API}/reset-password", json={
        "email": "alice@example.com",
        "otp": mail.last_code(),
        "newPassword": "n3w-pass",
        "verificationType": "email",
    })

    assert response.status_code == 200
    assert login(client, "alice@example.com", "n3w-pass").status_code == 200
    assert login(client, "alice@example.com", "pa55word!").status_code == 401


def test_password_update_touches_updated_at(client, db_session):
    users = UserService(db_session)
    user = users.create(username="bob", email="bob@example.com",
                        phone="15550002222", password_hash="old")
    before = user.updated_at

    assert users.update_password("new", user_id=user.id)

    db_session.refresh(user)
    assert user.password_hash == "new"
    assert user.updated_at is not None
    assert user.updated_at.replace(tzinfo=None) >= before.replace(tzinfo=None)
    assert users.update_password("new", email="nobody@example.com") is False


def test_reset_password_with_phone_otp(client, sms, register_user):
    data = register_user()
    client.post(f"{API}/forgot-password", json={"email": "alice@example.com"})

    response = client.post(f"{API}/reset-password", json={
        "userId": data["id"],
        "otp": sms.last_code(),
        "newPassword": "n3w-pass",
        "verificationType": "phone",
    })

    assert response.status_code == 200
    assert login(client, "alice@example.com", "n3w-pass").status_code == 200


def test_reset_password_rejects_bad_input(client, register_user):
    data = register_user()

    missing = client.post(f"{API}/reset-password", json={"otp": "123456", "newPassword": "x"})
    bad_type = client.post(f"{API}/reset-password", json={
        "userId": data["id"], "otp": "123456", "newPassword": "x", "verificationType": "carrier-pigeon",
    })
    no_identifier = client.post(f"{API}/reset-password", json={
        "userId": data["id"], "otp": "123456", "newPassword": "x", "verificationType": "email",
    })

    assert missing.status_code == bad_type.status_code == no_identifier.status_code == 400
    assert bad_type.json()["message"] == "Invalid verification type or missing identifier"
    assert no_identifier.json()["message"] == "Invalid verification type or missing identifier"


def test_reset_password_with_wrong_otp(client, register_user):
    register_user()
    client.post(f"{API}/forgot-password", json={"email": "alice@example.com"})

    response = client.post(f"{API}/reset-password", json={
        "email": "alice@example.com", "otp": "000000", "newPassword": "x", "verificationType": "email",
    })

    assert response.status_code == 400
    assert response.json()["message"] == "Invalid or expired OTP"


# Current user and role gate

def test_me_returns_profile_without_password(client, register_user):
    data = register_user()
    token = login(client, "alice@example.com", "pa55word!").json()["data"]["accessToken"]

    response = client.get(f"{API}/me", headers=bearer(token))

    assert response.status_code == 200
    profile = response.json()["data"]
    assert profile["id"] == data["id"]
    assert profile["phonenumber"] == "919876543210"
    assert "password_hash" not in profile


def test_me_for_admin_is_synthetic(client):
    token = login(client, ADMIN_EMAIL, ADMIN_PASSWORD).json()["data"]["accessToken"]

    profile = client.get(f"{API}/me", headers=bearer(token)).json()["data"]

    assert profile["role"] == "admin"
    assert profile["email"] == ADMIN_EMAIL
    assert profile["id"].startswith("admin_")


def test_me_requires_valid_token(client, clock, register_user):
    register_user()
    token = login(client, "alice@example.com", "pa55word!").json()["data"]["accessToken"]

    no_header = client.get(f"{API}/me")
    malformed = client.get(f"{API}/me", headers={"Authorization": f"Token {token}"})
    invalid = client.get(f"{API}/me", headers=bearer("garbage"))
    clock.advance(16 * 60)
    expired = client.get(f"{API}/me", headers=bearer(token))

    assert no_header.status_code == malformed.status_code == invalid.status_code == expired.status_code == 401
    assert no_header.json()["message"] == "Authentication required"
    assert invalid.json()["message"] == "Invalid token"
    assert expired.json()["message"] == "Token expired"


def test_admin_routes_are_role_gated(client, register_user):
    register_user()
    user_token = login(client, "alice@example.com", "pa55word!").json()["data"]["accessToken"]
    admin_token = login(client, ADMIN_EMAIL, ADMIN_PASSWORD).json()["data"]["accessToken"]

    assert client.get(f"{API}/admin/users").status_code == 401
    forbidden = client.get(f"{API}/admin/users", headers=bearer(user_token))
    assert forbidden.status_code == 403
    assert forbidden.json()["message"] == "Access denied. Insufficient permissions."

    users = client.get(f"{API}/admin/users", headers=bearer(admin_token))
    assert users.status_code == 200
    assert [u["email"] for u in users.json()["data"]] == ["alice@example.com"]
    assert all("password_hash" not in u for u in users.json()["data"])

    dashboard = client.get(f"{API}/admin/dashboard", headers=bearer(admin_token))
    assert dashboard.json()["data"] == {"stats": {"totalUsers": 1}}


def test_root_and_health(client):
    assert client.get("/").json() == {"message": "API Working"}
    assert client.get("/health").json()["status"] == "healthy"
