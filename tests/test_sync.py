"""Tests for identity-driven sync."""

import asyncio
import json
from datetime import datetime, timedelta, timezone

import pytest

from expenseflow.models import (
    AuditEventType,
    Budget,
    Family,
    Goal,
    Identity,
    Invitation,
    MemberInfo,
    MemberRole,
    Transaction,
)
from expenseflow.services.storage import (
    FinanceRepository,
    InMemoryDocumentStore,
    InMemoryKeyValueStorage,
    PermissionDeniedError,
)
from expenseflow.session import ExpenseSession
from expenseflow.state import actions as a


WHEN = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


def tx(text, amount=-10.0, day=1, family_id=None) -> Transaction:
    return Transaction(
        text=text,
        amount=amount,
        date=WHEN.replace(day=day),
        category="Groceries",
        family_id=family_id,
    )


async def seed_family(store, admin_uid="alice", member_uid="bob") -> Family:
    family = Family(
        family_id="family_1",
        family_name="Smiths",
        created_by=admin_uid,
        created_at=WHEN,
        members={
            admin_uid: MemberInfo(role=MemberRole.ADMIN, joined_at=WHEN, name="Alice"),
            member_uid: MemberInfo(role=MemberRole.MEMBER, joined_at=WHEN, name="Bob"),
        },
        version=2,
    )
    await store.set_document("families/family_1", family.to_document())
    await store.set_document(
        f"users/{admin_uid}", {"email": "alice@example.com", "familyId": "family_1", "role": "admin"}
    )
    return family


class SentInvitationsDeniedStore(InMemoryDocumentStore):
    """Security rules that hide a family's sent invitations from this client."""

    async def query_documents(self, collection_path, filters):
        if "familyId" in filters:
            raise PermissionDeniedError("Permission denied: list familyInvitations")
        return await super().query_documents(collection_path, filters)


class GatedStore(InMemoryDocumentStore):
    """Holds every listing under ``users/alice`` until ``gate`` is set."""

    def __init__(self):
        super().__init__()
        self.gate = asyncio.Event()

    async def list_documents(self, collection_path):
        if collection_path.startswith("users/alice"):
            await self.gate.wait()
        return await super().list_documents(collection_path)


class TestSignIn:
    """Tests for the signed-in fetch."""

    @pytest.mark.asyncio
    async def test_loads_personal_data(self, store, session, alice):
        """Test that sign-in replaces the container with the remote snapshot."""
        repo = FinanceRepository(store)
        await repo.add("alice", tx("Old", day=2))
        await repo.add("alice", tx("New", day=9))
        await repo.add("alice", Goal(name="Bike", target_amount=500))
        await repo.save_settings("alice", {"currency": "EUR"})
        await repo.save_categories("alice", ["Food", "Rent"])

        assert await session.set_identity(alice) is True

        state = session.state
        assert [t.text for t in state.transactions] == ["New", "Old"]
        assert [g.name for g in state.goals] == ["Bike"]
        assert state.settings.currency == "EUR"
        assert state.settings.theme == "dark"
        assert state.categories == ("Food", "Rent")
        assert state.family is None

    @pytest.mark.asyncio
    async def test_new_user_gets_defaults(self, session, alice):
        await session.set_identity(alice)
        state = session.state
        assert state.transactions == ()
        assert state.settings.currency == "USD"
        assert "Groceries" in state.categories

    @pytest.mark.asyncio
    async def test_loads_family_data(self, store, session, alice):
        repo = FinanceRepository(store)
        await seed_family(store)
        await repo.add("alice", tx("Shared dinner", family_id="family_1"))
        await repo.add("alice", Budget(
            category="Bills", limit=200, month=3, year=2026, is_family=True, family_id="family_1"
        ))
        await repo.add("alice", Budget(category="Groceries", limit=300, month=3, year=2026))
        await store.set_document("familyInvitations/i1", Invitation(
            family_id="family_1",
            family_name="Smiths",
            invited_by="alice",
            invited_email="carol@example.com",
            created_at=WHEN,
            expires_at=WHEN + timedelta(days=7),
        ).to_document())

        await session.set_identity(alice)

        state = session.state
        assert state.family.family_id == "family_1"
        assert [m.uid for m in state.family_members] == ["alice", "bob"]
        assert [t.text for t in state.family_transactions] == ["Shared dinner"]
        assert state.transactions == ()
        assert sorted(b.category for b in state.budgets) == ["Bills", "Groceries"]
        assert [i.id for i in state.sent_invitations] == ["i1"]

    @pytest.mark.asyncio
    async def test_received_invitations(self, store, session, bob):
        await store.set_document("familyInvitations/i1", Invitation(
            family_id="family_1",
            family_name="Smiths",
            invited_by="alice",
            invited_email="bob@example.com",
            created_at=WHEN,
            expires_at=WHEN + timedelta(days=7),
        ).to_document())

        await session.set_identity(bob)

        assert [i.id for i in session.state.family_invitations] == ["i1"]

    @pytest.mark.asyncio
    async def test_denied_sent_invitations_are_empty(self, alice, clock):
        """A member who may not list sent invitations just sees none."""
        store = SentInvitationsDeniedStore()
        await seed_family(store)
        session = ExpenseSession(store, InMemoryKeyValueStorage(), clock=clock)

        assert await session.set_identity(alice) is True

        assert session.state.family is not None
        assert session.state.sent_invitations == ()
        assert not any(
            e.event_type == AuditEventType.SYNC_READ_FAILED for e in session.audit.history
        )

    @pytest.mark.asyncio
    async def test_failed_read_keeps_default(self, store, session, audit, alice):
        """Test that one failing read does not abort the others."""
        repo = FinanceRepository(store)
        await repo.add("alice", tx("Milk"))
        await repo.add("alice", Goal(name="Bike", target_amount=500))
        store.deny_reads("users/alice/goals")

        assert await session.set_identity(alice) is True

        assert [t.text for t in session.state.transactions] == ["Milk"]
        assert session.state.goals == ()
        failed = [e for e in audit.history if e.event_type == AuditEventType.SYNC_READ_FAILED]
        assert [e.entity_type for e in failed] == ["goals"]

    @pytest.mark.asyncio
    async def test_invalid_document_keeps_default(self, store, session, audit, alice):
        await store.set_document("users/alice/transactions/bad", {"amount": "lots"})
        await session.set_identity(alice)
        assert session.state.transactions == ()
        assert any(e.event_type == AuditEventType.SYNC_READ_FAILED for e in audit.history)

    @pytest.mark.asyncio
    async def test_no_email_skips_invitation_lookup(self, store, session, audit):
        store.deny_reads("familyInvitations")

        assert await session.set_identity(Identity(uid="anon")) is True

        assert session.state.family_invitations == ()
        assert not any(e.event_type == AuditEventType.SYNC_READ_FAILED for e in audit.history)

    @pytest.mark.asyncio
    async def test_switching_users_resets_state(self, store, session, alice, bob):
        repo = FinanceRepository(store)
        await repo.add("alice", tx("Alice's lunch"))
        await repo.add("bob", tx("Bob's lunch"))

        await session.set_identity(alice)
        await session.set_identity(bob)

        assert [t.text for t in session.state.transactions] == ["Bob's lunch"]

    @pytest.mark.asyncio
    async def test_stale_fetch_is_discarded(self, alice, bob, clock):
        """Test that a slow fetch for an earlier identity cannot win."""
        store = GatedStore()
        repo = FinanceRepository(store)
        await repo.add("alice", tx("Alice's lunch"))
        await repo.add("bob", tx("Bob's lunch"))
        session = ExpenseSession(store, InMemoryKeyValueStorage(), clock=clock)

        first = asyncio.create_task(session.set_identity(alice))
        await asyncio.sleep(0)
        assert await session.set_identity(bob) is True

        store.gate.set()
        assert await first is False

        assert session.identity == bob
        assert [t.text for t in session.state.transactions] == ["Bob's lunch"]
        assert any(e.event_type == AuditEventType.SYNC_DISCARDED for e in session.audit.history)


class TestSignedOut:
    """Tests for local hydration and mirroring."""

    @pytest.mark.asyncio
    async def test_hydrates_from_local_storage(self, alice, clock, store):
        saved = tx("Offline coffee").model_copy(update={"id": "local-1"})
        local_storage = InMemoryKeyValueStorage({
            "transactions": json.dumps([saved.to_record()]),
            "settings": json.dumps({"currency": "GBP"}),
        })
        session = ExpenseSession(store, local_storage, clock=clock)

        await session.set_identity(None)

        assert [t.id for t in session.state.transactions] == ["local-1"]
        assert session.state.settings.currency == "GBP"
        assert session.sync.mirroring

    @pytest.mark.asyncio
    async def test_invalid_stored_settings_do_not_block_start(self, clock, store):
        local_storage = InMemoryKeyValueStorage({
            "settings": json.dumps({"theme": "system", "currency": "GBP"}),
            "categories": json.dumps(["Pets"]),
        })
        session = ExpenseSession(store, local_storage, clock=clock)

        await session.set_identity(None)

        assert session.state.settings.theme == "dark"
        assert session.state.settings.currency == "USD"
        assert session.state.categories == ("Pets",)

    @pytest.mark.asyncio
    async def test_changes_are_mirrored_while_signed_out(self, session, local_storage):
        await session.set_identity(None)
        session.container.dispatch(a.AddCategory(payload="Pets"))
        assert "Pets" in json.loads(local_storage.get_item("categories"))

    @pytest.mark.asyncio
    async def test_sign_in_stops_mirroring(self, session, local_storage, alice):
        await session.set_identity(None)
        await session.set_identity(alice)
        assert not session.sync.mirroring

        session.container.dispatch(a.AddCategory(payload="Pets"))

        assert local_storage.get_item("categories") is None

    @pytest.mark.asyncio
    async def test_sign_out_drops_remote_data(self, store, session, alice):
        await FinanceRepository(store).add("alice", tx("Remote only"))
        await session.set_identity(alice)

        await session.set_identity(None)

        assert session.state.transactions == ()
        assert session.identity is None

    @pytest.mark.asyncio
    async def test_refresh_refetches(self, store, session, alice):
        await session.set_identity(alice)
        await FinanceRepository(store).add("alice", tx("Added elsewhere"))

        await session.sync.refresh()

        assert [t.text for t in session.state.transactions] == ["Added elsewhere"]
