# tests/test_supabase_client.py
import pytest

from shopflow.core import supabase_client


@pytest.fixture(autouse=True)
def fresh_clients(monkeypatch):
    created = []

    def fake_create_client(url, key):
        created.append((url, key))
        return object()

    monkeypatch.setattr(supabase_client, "create_client", fake_create_client)
    supabase_client._client.cache_clear()
    yield created
    supabase_client._client.cache_clear()


def test_public_client_is_built_once_with_anon_key(fresh_clients):
    first = supabase_client.supabase_public()
    second = supabase_client.supabase_public()

    assert first is second
    assert fresh_clients == [("http://localhost:54321", "anon-test-key")]


def test_admin_client_uses_service_role_key(fresh_clients, monkeypatch):
    monkeypatch.setattr(supabase_client.settings, "SUPABASE_SERVICE_ROLE_KEY", "service-key")

    supabase_client.supabase_admin()

    assert fresh_clients == [("http://localhost:54321", "service-key")]


def test_admin_client_requires_service_role_key(monkeypatch):
    monkeypatch.setattr(supabase_client.settings, "SUPABASE_SERVICE_ROLE_KEY", None)

    with pytest.raises(RuntimeError):
        supabase_client.supabase_admin()
