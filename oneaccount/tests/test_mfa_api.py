from datetime import timedelta

import pyotp
import pytest

from oneaccount.core.time import utcnow
from oneaccount.models import MfaAttempt


EMAIL = "email_channel"
GAUTH = "google_authenticator"
PASSWORD = "Secret123!"


@pytest.fixture()
def mfa_policy(db, services):
    def _set(*steps, allow_api_management=True):
        services.settings_manager.set_mfa_config(db, True, allow_api_management, *steps)

    return _set


def bearer_for(client, email):
    return {"Authorization": f"Bearer {login(client, email=email).json()['token']}"}


def login(client, email="jane@example.com", **extra):
    return client.post("/auth/login", json={"email": email, "password": PASSWORD, **extra})


def test_login_without_mfa_returns_session_token(client, user):
    resp = login(client, with_user=True)
    assert resp.status_code == 200
    body = resp.json()
    assert body["token_name"] == "api_token"
    assert body["user"]["email"] == user.email

    me = client.get("/auth/me", headers={"Authorization": f"Bearer {body['token']}"})
    assert me.status_code == 200
    assert me.json()["id"] == user.id


def test_login_failures(client, user, make_user):
    resp = client.post("/auth/login", json={"email": user.email, "password": "wrong"})
    assert resp.status_code == 401
    assert resp.json()["error_code"] == "INVALID_CREDENTIALS_ERROR"

    make_user("off@example.com", is_active=False)
    resp = login(client, email="off@example.com")
    assert resp.status_code == 403
    assert resp.json() == {"error_code": "FORBIDDEN_ERROR", "message": "Account is deactivated."}


def test_email_then_authenticator_pipeline(client, user, mfa_policy, notifier):
    mfa_policy(EMAIL, GAUTH)

    resp = login(client, client_name="My Laptop")
    assert resp.status_code == 200
    body = resp.json()
    token = body["mfa_token"]
    assert "token" not in body
    assert [s["name"] for s in body["mfa_steps"]] == [EMAIL, GAUTH]
    assert body["mfa_steps"][0] == {"name": EMAIL, "completed": False, "type": "delivery", "enrolled": False}
    assert len(notifier.sent) == 1

    resp = client.post("/auth/mfa/send-code", json={"token": token})
    assert resp.status_code == 202
    assert resp.json()["current_step"] == EMAIL

    resp = client.post("/auth/mfa/verify-code", json={"token": token, "code": notifier.last_code})
    assert resp.status_code == 200
    assert resp.json() == {
        "message": "MFA code validation success",
        "current_step": EMAIL,
        "next_step": GAUTH,
    }

    # the authenticator step has nothing to deliver
    resp = client.post("/auth/mfa/send-code", json={"token": token})
    assert resp.status_code == 409

    resp = client.post("/auth/mfa/generate-qrcode", json={"token": token})
    assert resp.status_code == 200
    qr = resp.json()
    assert qr["current_step"] == GAUTH
    assert qr["qr_code"].startswith("data:image/png;base64,")
    assert len(qr["backup_codes"]) == 10

    code = pyotp.TOTP(qr["secret_key"]).now()
    resp = client.post("/auth/mfa/verify-code", json={"token": token, "code": code})
    assert resp.status_code == 200
    final = resp.json()
    assert final["token_name"] == "My Laptop"
    assert client.get("/auth/me", headers={"Authorization": f"Bearer {final['token']}"}).status_code == 200

    resp = client.post("/auth/mfa/verify-code", json={"token": token, "code": code})
    assert resp.status_code == 409


def test_completed_pipeline_defaults_token_name(client, user, mfa_policy, notifier, db, services):
    mfa_policy(EMAIL)
    token = login(client).json()["mfa_token"]
    attempt = services.orchestrator.get_mfa_attempt_from_token(db, token)
    attempt.auth_metadata = {"auth_type": "jwt"}
    db.commit()

    resp = client.post("/auth/mfa/verify-code", json={"token": token, "code": notifier.last_code})
    assert resp.status_code == 200
    assert resp.json()["token_name"] == "api_token"
    assert resp.json()["token"].count(".") == 2


def test_email_step_marks_email_verified(client, user, mfa_policy, notifier, db):
    mfa_policy(EMAIL)
    token = login(client).json()["mfa_token"]

    client.post("/auth/mfa/verify-code", json={"token": token, "code": notifier.last_code})
    db.refresh(user)
    assert user.email_verified_at is not None


def test_wrong_code_keeps_the_step(client, user, mfa_policy, notifier):
    mfa_policy(EMAIL)
    token = login(client).json()["mfa_token"]
    wrong = str((int(notifier.last_code) + 1) % 1000000).zfill(6)

    resp = client.post("/auth/mfa/verify-code", json={"token": token, "code": wrong})
    assert resp.status_code == 422
    assert resp.json()["error_code"] == "INVALID_MFA_CODE_ERROR"

    resp = client.post("/auth/mfa/verify-code", json={"token": token, "code": notifier.last_code})
    assert resp.status_code == 200


def test_qr_code_is_only_shown_once(client, user, mfa_policy):
    mfa_policy(GAUTH)
    token = login(client).json()["mfa_token"]

    first = client.post("/auth/mfa/generate-qrcode", json={"token": token})
    assert first.status_code == 200
    assert first.json()["secret_key"]
    assert first.json()["backup_codes"]

    second = client.post("/auth/mfa/generate-qrcode", json={"token": token})
    assert second.status_code == 403
    assert second.json()["error_code"] == "FORBIDDEN_ERROR"


def test_backup_code_reprovisions_the_authenticator(client, user, mfa_policy):
    mfa_policy(GAUTH)
    token = login(client).json()["mfa_token"]
    qr = client.post("/auth/mfa/generate-qrcode", json={"token": token}).json()

    resp = client.post("/auth/mfa/verify-backup-code", json={"token": token, "code": qr["backup_codes"][0]})
    assert resp.status_code == 200
    body = resp.json()
    assert body["qr_code"].startswith("data:image/png;base64,")
    assert body["secret_key"] != qr["secret_key"]

    resp = client.post("/auth/mfa/verify-backup-code", json={"token": token, "code": qr["backup_codes"][0]})
    assert resp.status_code == 422
    assert resp.json()["error_code"] == "INVALID_MFA_BACKUP_CODE_ERROR"

    code = pyotp.TOTP(body["secret_key"]).now()
    resp = client.post("/auth/mfa/verify-code", json={"token": token, "code": code})
    assert resp.status_code == 200
    assert "token" in resp.json()


def test_attempt_token_errors(client, user, mfa_policy, db, services):
    mfa_policy(EMAIL)
    token = login(client).json()["mfa_token"]
    lookup_id, secret = token.split("|")

    resp = client.post("/auth/mfa/send-code", json={"token": f"{lookup_id}|nope"})
    assert resp.status_code == 422
    assert resp.json()["error_code"] == "INVALID_MFA_ATTEMPT_TOKEN_ERROR"

    resp = client.post("/auth/mfa/send-code", json={"token": "malformed"})
    assert resp.status_code == 422

    resp = client.post("/auth/mfa/send-code", json={"token": f"00000000-0000-0000-0000-000000000000|{secret}"})
    assert resp.status_code == 404
    assert resp.json()["error_code"] == "RESOURCE_NOT_FOUND_ERROR"

    attempt = db.get(MfaAttempt, lookup_id)
    attempt.expires_at_utc = utcnow() - timedelta(seconds=1)
    db.commit()
    resp = client.post("/auth/mfa/send-code", json={"token": token})
    assert resp.status_code == 422


def test_delivery_failure(client, user, mfa_policy, notifier):
    mfa_policy(EMAIL)
    notifier.fail = True

    resp = login(client)
    assert resp.status_code == 200
    token = resp.json()["mfa_token"]

    resp = client.post("/auth/mfa/send-code", json={"token": token})
    assert resp.status_code == 503
    assert resp.json()["error_code"] == "DEPENDENCY_ERROR"


def test_methods_listing(client, mfa_policy):
    mfa_policy(GAUTH)

    resp = client.get("/auth/mfa/methods")
    assert resp.json() == [
        {"name": GAUTH, "enabled": True, "type": "app"},
        {"name": EMAIL, "enabled": False, "type": "delivery"},
    ]


def test_app_settings_api(client, admin, mfa_policy):
    bearer = bearer_for(client, admin.email)

    resp = client.post("/app-settings", json={"theme": "dark", "mfa": {"steps": [EMAIL]}}, headers=bearer)
    assert resp.status_code == 200
    values = {s["name"]: s["value"] for s in resp.json()}
    assert values["theme"] == "dark"
    assert values["mfa"] == {"enabled": False, "steps": [EMAIL], "allow_api_management": True}

    mfa_policy(EMAIL, allow_api_management=False)
    resp = client.post("/app-settings", json={"mfa": {"enabled": False}}, headers=bearer)
    assert resp.status_code == 403
    resp = client.post("/app-settings", json={"theme": "light"}, headers=bearer)
    assert resp.status_code == 200

    assert client.post("/app-settings", json={"theme": "light"}).status_code == 401


def test_api_key_endpoints(client, user):
    bearer = {"Authorization": f"Bearer {login(client).json()['token']}"}

    resp = client.post("/api-keys", json={"name": "ci", "permissions": ["users.read"]}, headers=bearer)
    assert resp.status_code == 201
    created = resp.json()
    assert created["expires_at"] is None

    resp = client.get("/api-keys/introspect", headers={"X-API-KEY": created["raw_key"]})
    assert resp.status_code == 200
    assert resp.json()["permissions"] == ["users.read"]

    client.post(f"/api-keys/{created['id']}/activation", json={"active": False}, headers=bearer)
    assert client.get("/api-keys/introspect", headers={"X-API-KEY": created["raw_key"]}).status_code == 401

    assert client.delete(f"/api-keys/{created['id']}", headers=bearer).status_code == 204
    assert client.get(f"/api-keys/{created['id']}", headers=bearer).status_code == 404


def test_token_listing_and_revocation(client, user):
    first = login(client, client_name="phone").json()["token"]
    login(client, client_name="laptop")
    bearer = {"Authorization": f"Bearer {first}"}

    names = sorted(t["name"] for t in client.get("/auth/tokens", headers=bearer).json())
    assert names == ["laptop", "phone"]

    assert client.post("/auth/logout", headers=bearer).status_code == 204
    assert client.get("/auth/me", headers=bearer).status_code == 401


def test_un_enroll_endpoint(client, user, admin, mfa_policy):
    bearer = bearer_for(client, admin.email)
    mfa_policy(GAUTH)
    token = login(client).json()["mfa_token"]
    assert client.post("/auth/mfa/generate-qrcode", json={"token": token}).status_code == 200
    assert client.post("/auth/mfa/generate-qrcode", json={"token": token}).status_code == 403

    resp = client.post(f"/users/{user.id}/mfa/un-enroll", json={"mfa_step": GAUTH}, headers=bearer)
    assert resp.status_code == 200
    assert client.post("/auth/mfa/generate-qrcode", json={"token": token}).status_code == 200

    resp = client.post(f"/users/{user.id}/mfa/un-enroll", json={"mfa_step": "sms_channel"}, headers=bearer)
    assert resp.status_code == 422


def test_members_cannot_change_app_settings(client, user, mfa_policy):
    bearer = bearer_for(client, user.email)
    mfa_policy(EMAIL)

    resp = client.post("/app-settings", json={"mfa": {"enabled": False}}, headers=bearer)
    assert resp.status_code == 403
    resp = client.post("/app-settings", json={"theme": "dark"}, headers=bearer)
    assert resp.status_code == 403

    # the policy still applies to the next login
    assert "mfa_token" in login(client).json()


def test_members_cannot_un_enroll_other_users(client, user, make_user, mfa_policy):
    other = make_user("mallory@example.com")
    bearer = bearer_for(client, other.email)
    mfa_policy(GAUTH)
    token = login(client).json()["mfa_token"]
    assert client.post("/auth/mfa/generate-qrcode", json={"token": token}).status_code == 200

    resp = client.post(f"/users/{user.id}/mfa/un-enroll", json={"mfa_step": GAUTH}, headers=bearer)
    assert resp.status_code == 403

    fresh = login(client).json()["mfa_token"]
    assert client.post("/auth/mfa/generate-qrcode", json={"token": fresh}).status_code == 403


def test_api_keys_are_scoped_to_their_owner(client, user, make_user, admin):
    owner = bearer_for(client, user.email)
    other = bearer_for(client, make_user("mallory@example.com").email)
    created = client.post("/api-keys", json={"name": "ci"}, headers=owner).json()
    key_url = f"/api-keys/{created['id']}"

    assert client.get("/api-keys", headers=other).json() == []
    assert client.get(key_url, headers=other).status_code == 404
    assert client.put(key_url, json={"name": "x", "description": ""}, headers=other).status_code == 404
    assert client.post(f"{key_url}/activation", json={"active": False}, headers=other).status_code == 404
    assert client.delete(key_url, headers=other).status_code == 404
    assert client.get("/api-keys/introspect", headers={"X-API-KEY": created["raw_key"]}).status_code == 200

    assert [k["id"] for k in client.get("/api-keys", headers=owner).json()] == [created["id"]]

    admin_bearer = bearer_for(client, admin.email)
    assert [k["id"] for k in client.get("/api-keys", headers=admin_bearer).json()] == [created["id"]]
    assert client.delete(key_url, headers=admin_bearer).status_code == 204
