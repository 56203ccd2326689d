"""
Shared fixtures.

Every test runs against the in-memory document store and in-memory
key-value storage; nothing touches the network or the filesystem unless
it asks for ``tmp_path``.
"""

from datetime import datetime, timedelta, timezone

import pytest

from expenseflow.audit import AuditLogger
from expenseflow.models import Identity
from expenseflow.services.storage import InMemoryDocumentStore, InMemoryKeyValueStorage
from expenseflow.session import ExpenseSession


NOW = datetime(2026, 3, 15, 12, 0, tzinfo=timezone.utc)


class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, now: datetime = NOW):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store():
    return InMemoryDocumentStore()


@pytest.fixture
def local_storage():
    return InMemoryKeyValueStorage()


@pytest.fixture
def audit():
    return AuditLogger()


@pytest.fixture
def alice():
    return Identity(uid="alice", email="alice@example.com", display_name="Alice")


@pytest.fixture
def bob():
    return Identity(uid="bob", email="bob@example.com", display_name="Bob")


@pytest.fixture
def carol():
    return Identity(uid="carol", email="carol@example.com", display_name="Carol")


@pytest.fixture
def make_session(store, clock):
    """Factory for sessions sharing one document store (one per client)."""

    def factory(local_storage=None, **kwargs):
        return ExpenseSession(
            store,
            local_storage if local_storage is not None else InMemoryKeyValueStorage(),
            clock=clock,
            **kwargs,
        )

    return factory


@pytest.fixture
def session(store, local_storage, audit, clock):
    return ExpenseSession(store, local_storage, audit=audit, clock=clock)
