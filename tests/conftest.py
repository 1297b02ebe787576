import os
import sys

import pytest

# Ensure repo root on sys.path for imports like `marketplace...`
ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), os.pardir))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

os.environ.setdefault("SUPABASE_URL", "https://project.supabase.co")
os.environ.setdefault("SUPABASE_ANON_KEY", "anon-key")
os.environ.setdefault("SUPABASE_SERVICE_ROLE_KEY", "service-key")
os.environ.setdefault("STORAGE_BUCKET", "ads")

from fake_supabase import FakeSupabase  # noqa: E402


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
def fake_db(monkeypatch):
    from marketplace.DB import supabase as supabase_module

    db = FakeSupabase()
    monkeypatch.setattr(supabase_module, "_create", db.client_factory())
    monkeypatch.setattr(supabase_module, "_client", None)
    monkeypatch.setattr(supabase_module, "_admin_client", None)
    return db


@pytest.fixture
def client(fake_db):
    from fastapi.testclient import TestClient
    from marketplace.main import app

    with TestClient(app) as c:
        yield c
