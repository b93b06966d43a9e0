import os
import tempfile

# settings are read at import time, so point them at throwaway locations first
_TMP = tempfile.mkdtemp(prefix="backoffice-tests-")
os.environ.setdefault("DATABASE_URL", f"sqlite:///{os.path.join(_TMP, 'test.db')}")
os.environ.setdefault("BLOB_STORAGE_DIR", os.path.join(_TMP, "blobs"))
os.environ.setdefault("BLOB_PUBLIC_BASE_URL", "http://testserver/blobs")

import pytest
from fastapi.testclient import TestClient

from backoffice.db import SessionLocal, init_db
from backoffice.main import app
from backoffice.models.document import USERS
from backoffice.repositories.document_repo import DocumentRepository

PASSWORD = "secret-pw-1"


@pytest.fixture(scope="module")
def client():
    init_db(reset=True)
    with TestClient(app) as c:
        yield c


def staff_headers(client, email, role, portal=None):
    """Register an account, give it ``role`` and sign it in through its portal."""
    r = client.post(
        "/api/auth/register",
        json={"email": email, "password": PASSWORD, "name": email.split("@")[0]},
    )
    assert r.status_code == 200, r.text
    uid = r.json()["uid"]
    db = SessionLocal()
    try:
        DocumentRepository(db).update(USERS, uid, {"role": role})
        db.commit()
    finally:
        db.close()
    portal = portal or role.replace(" ", "-")
    r = client.post(f"/api/auth/{portal}/login", json={"email": email, "password": PASSWORD})
    assert r.status_code == 200, r.text
    return {"Authorization": f"Bearer {r.json()['token']}"}


@pytest.fixture(scope="module")
def admin_headers(client):
    return staff_headers(client, "admin@example.com", "admin")


@pytest.fixture(scope="module")
def super_admin_headers(client):
    return staff_headers(client, "owner@example.com", "super admin")
