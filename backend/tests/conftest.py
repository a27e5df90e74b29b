"""Shared fixtures for the reconciliation service tests."""

import json
from typing import Any, Dict, Optional

import pytest

import app.services.storage as storage_module
from app.config import get_settings
from app.services.conversations import reset_legacy_purge, reset_scope_locks


class InMemoryStorage:
    """Dict-backed stand-in for KeyValueStorage with the same return conventions."""

    def __init__(self, data: Optional[Dict[str, Any]] = None, fail_writes: bool = False):
        self.data: Dict[str, str] = {
            key: json.dumps(value) for key, value in (data or {}).items()
        }
        self.fail_writes = fail_writes
        self.writes = 0

    async def get_json(self, key: str, family: str = "default") -> Optional[Any]:
        raw = self.data.get(key)
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except ValueError:
            return None

    async def set_json(self, key: str, value: Any, family: str = "default") -> bool:
        if self.fail_writes:
            return False
        self.data[key] = json.dumps(value)
        self.writes += 1
        return True

    async def exists(self, *keys: str) -> int:
        return sum(1 for key in keys if key in self.data)

    async def delete(self, *keys: str) -> int:
        removed = 0
        for key in keys:
            if self.data.pop(key, None) is not None:
                removed += 1
        return removed

    async def health_check(self) -> bool:
        return True

    async def close(self) -> None:
        pass

    def load(self, key: str) -> Any:
        return json.loads(self.data[key])


@pytest.fixture(autouse=True)
def isolated_state():
    """Fresh scope locks, storage singleton and settings for every test."""
    reset_scope_locks()
    reset_legacy_purge()
    storage_module._storage_instance = None
    get_settings.cache_clear()
    yield
    reset_scope_locks()
    reset_legacy_purge()
    storage_module._storage_instance = None
    get_settings.cache_clear()


@pytest.fixture
def memory_storage():
    return InMemoryStorage()


@pytest.fixture
def storage_factory():
    """Build an InMemoryStorage preloaded with JSON documents."""
    return InMemoryStorage


@pytest.fixture
def sample_companies():
    return [
        {"_id": "c1", "name": "Acme Corp", "verified": True, "industry": "Technology"},
        {"id": "c2", "name": "Globex", "is_verified": False, "industry": "Finance"},
    ]


@pytest.fixture
def sample_jobs():
    return [
        {"_id": "j1", "title": "Backend Engineer", "companyId": "c1", "tier": "MegaJob", "status": "active"},
        {"_id": "j2", "title": "Analyst", "company": {"_id": "c2", "name": "Globex"}, "tier": "premium_job", "status": "closed"},
        {"_id": "j3", "title": "Driver", "company": "ACME CORP ", "tier": "latest", "status": "Active"},
        {"_id": "j4", "title": "Clerk", "companyName": "Nobody Ltd", "tier": "newspaper", "status": "expired"},
    ]


@pytest.fixture
def sample_applications():
    return [
        {"_id": "a1", "job": {"_id": "j1"}, "status": "shortlisted",
         "job_seeker": {"_id": "s1", "full_name": "Asha Rai"}},
        {"_id": "a2", "jobId": "j3", "status": "hired",
         "job_seeker": {"_id": "s2", "full_name": "Bikash Thapa"}},
        {"_id": "a3", "job_id": "j2", "status": "pending",
         "candidate": {"id": "s1", "name": "Asha R."}},
        {"_id": "a4", "jobId": "missing", "status": "pending",
         "job_seeker": {"_id": "s3", "full_name": "Orphan Applicant"}},
    ]
