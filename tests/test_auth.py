# tests/test_auth.py
import uuid
from types import SimpleNamespace

from conftest import API, bearer, make_token
from shopflow.core import auth
from shopflow.models.profile import Profile

ME = f"{API}/profiles/me"


def _auth(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


def test_first_request_provisions_profile(client, session):
    user_id = uuid.uuid4()

    resp = client.get(ME, headers=_auth(make_token(user_id, full_name="  Ada Lovelace ")))

    assert resp.status_code == 200
    assert resp.json()["full_name"] == "Ada Lovelace"
    assert resp.json()["role"] == "user"
    assert session.get(Profile, user_id) is not None


def test_existing_profile_is_returned(client, admin):
    resp = client.get(ME, headers=bearer(admin))

    assert resp.json()["id"] == str(admin.id)
    assert resp.json()["role"] == "admin"


def test_missing_token_is_unauthorized(client):
    resp = client.get(ME)

    assert resp.status_code == 401
    assert resp.json()["detail"] == "Authentication required"


def test_bad_tokens_are_rejected(client):
    expired = make_token(uuid.uuid4(), expires_in=-60)
    no_sub = make_token(uuid.uuid4(), sub="")
    bad_sub = make_token(uuid.uuid4(), sub="not-a-uuid")

    assert client.get(ME, headers=_auth("garbage")).status_code == 401
    assert client.get(ME, headers=_auth(expired)).status_code == 401
    assert client.get(ME, headers=_auth(no_sub)).json()["detail"] == "Token missing sub"
    assert client.get(ME, headers=_auth(bad_sub)).json()["detail"] == "Invalid sub in token"


def test_header_wins_over_cookie(client, user, other_user):
    client.cookies.set("sb-access-token", make_token(other_user.id))

    resp = client.get(ME, headers=bearer(user))

    assert resp.json()["id"] == str(user.id)


def test_update_own_name(client, user):
    resp = client.patch(ME, json={"full_name": "  Jane Smith "}, headers=bearer(user))

    assert resp.status_code == 200
    assert resp.json()["full_name"] == "Jane Smith"


def test_role_is_not_editable(client, user):
    resp = client.patch(ME, json={"role": "admin"}, headers=bearer(user))

    assert resp.status_code == 400


def test_token_checked_by_auth_service_without_secret(client, monkeypatch):
    user_id = uuid.uuid4()
    seen = {}

    class FakeAuth:
        def get_user(self, token):
            seen["token"] = token
            user = SimpleNamespace(
                id=user_id,
                email="ada@example.com",
                user_metadata={"full_name": "Ada"},
            )
            return SimpleNamespace(user=user)

    monkeypatch.setattr(auth.settings, "SUPABASE_JWT_SECRET", None)
    monkeypatch.setattr(auth, "supabase_public", lambda: SimpleNamespace(auth=FakeAuth()))

    resp = client.get(ME, headers=_auth("opaque-token"))

    assert resp.status_code == 200
    assert resp.json()["id"] == str(user_id)
    assert seen["token"] == "opaque-token"


def test_auth_service_failure_is_unauthorized(client, monkeypatch):
    class DownAuth:
        def get_user(self, token):
            raise ConnectionError("auth service unreachable")

    monkeypatch.setattr(auth.settings, "SUPABASE_JWT_SECRET", None)
    monkeypatch.setattr(auth, "supabase_public", lambda: SimpleNamespace(auth=DownAuth()))

    resp = client.get(ME, headers=_auth("opaque-token"))

    assert resp.status_code == 401
