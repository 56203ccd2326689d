"""Tests for session write paths and delete policies."""

import json
from datetime import datetime, timezone

import pytest

from expenseflow.models import AuditEventType, Budget, Goal, Ownership, Transaction
from expenseflow.services.storage import FinanceRepository, StorageError
from expenseflow.session import DeletePolicy, ExpenseSession
from expenseflow.state import ContainerClosedError
from expenseflow.state import actions as a
from expenseflow.validation import ValidationError


WHEN = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


def tx(text="Milk", amount=-3.0, family_id=None) -> Transaction:
    return Transaction(text=text, amount=amount, date=WHEN, category="Groceries", family_id=family_id)


class TestSignedOutWrites:
    """Tests for writes while nobody is signed in."""

    @pytest.mark.asyncio
    async def test_add_assigns_local_id_and_mirrors(self, session, store, local_storage):
        await session.set_identity(None)

        saved = await session.add_transaction(tx())

        assert saved.id
        assert session.state.transactions == (saved,)
        assert json.loads(local_storage.get_item("transactions"))[0]["id"] == saved.id
        assert store.dump() == {}

    @pytest.mark.asyncio
    async def test_delete_only_touches_local_state(self, session, local_storage):
        await session.set_identity(None)
        saved = await session.add_transaction(tx())

        await session.delete_transaction(saved.id)

        assert session.state.transactions == ()
        assert json.loads(local_storage.get_item("transactions")) == []

    @pytest.mark.asyncio
    async def test_clear_all_data_keeps_theme(self, session, local_storage):
        await session.set_identity(None)
        await session.add_transaction(tx())
        await session.update_settings({"theme": "light"})

        assert await session.clear_all_data() == 0

        assert session.state.transactions == ()
        assert local_storage.keys() == ["theme"]
        assert session.state.settings.theme == "light"
        assert session.local.read_theme() == "light"
        assert any(e.event_type == AuditEventType.DATA_CLEARED for e in session.audit.history)


class TestSignedInWrites:
    """Tests for writes that go to the remote store first."""

    @pytest.mark.asyncio
    async def test_add_uses_server_id_and_stamps_author(self, session, store, alice):
        await session.set_identity(alice)

        saved = await session.add_transaction(tx())

        doc = await store.get_document(f"users/alice/transactions/{saved.id}")
        assert doc["addedBy"] == "alice"
        assert doc["addedByName"] == "Alice"
        assert session.state.transactions == (saved,)

    @pytest.mark.asyncio
    async def test_family_transaction_goes_to_family_state(self, session, store, alice):
        await session.set_identity(alice)
        family = await session.create_family("Smiths")

        saved = await session.add_transaction(tx(family_id=family.family_id))

        assert session.state.family_transactions == (saved,)
        assert session.state.transactions == ()
        assert await store.get_document(
            f"families/{family.family_id}/transactions/{saved.id}"
        ) is not None

    @pytest.mark.asyncio
    async def test_family_budget_gets_family_id(self, session, store, alice):
        await session.set_identity(alice)
        family = await session.create_family("Smiths")

        saved = await session.add_budget(
            Budget(category="Bills", limit=200, month=3, year=2026, is_family=True)
        )

        assert saved.family_id == family.family_id
        assert saved.ownership == Ownership.FAMILY
        assert session.state.budgets == (saved,)
        assert await store.list_documents(f"families/{family.family_id}/budgets") != []

    @pytest.mark.asyncio
    async def test_failed_add_leaves_state_untouched(self, session, store, alice):
        """Test that a rejected remote write never reaches the container."""
        await session.set_identity(alice)
        store.fail_writes()

        with pytest.raises(StorageError):
            await session.add_transaction(tx())
        assert session.state.transactions == ()

    @pytest.mark.asyncio
    async def test_update(self, session, store, alice):
        await session.set_identity(alice)
        saved = await session.add_goal(Goal(name="Bike", target_amount=500))

        await session.update_goal(saved.model_copy(update={"current_amount": 120}))

        doc = await store.get_document(f"users/alice/goals/{saved.id}")
        assert doc["currentAmount"] == 120
        assert session.state.goals[0].current_amount == 120

    @pytest.mark.asyncio
    async def test_settings_write_only_changed_fields(self, session, store, alice):
        await session.set_identity(alice)

        await session.update_settings({"currency": "EUR"})

        assert await store.get_document("users/alice/settings/preferences") == {"currency": "EUR"}
        assert session.state.settings.currency == "EUR"

    @pytest.mark.asyncio
    async def test_categories(self, session, store, alice):
        await session.set_identity(alice)

        await session.add_category("Pets")
        await session.delete_category("Bills")

        stored = (await store.get_document("users/alice/categories/list"))["list"]
        assert "Pets" in stored and "Bills" not in stored
        assert tuple(stored) == session.state.categories

    @pytest.mark.asyncio
    async def test_duplicate_category_is_rejected(self, session, alice):
        await session.set_identity(alice)
        with pytest.raises(ValidationError):
            await session.add_category(" Groceries ")

    @pytest.mark.asyncio
    async def test_clear_all_data_leaves_family(self, session, store, alice):
        await session.set_identity(alice)
        family = await session.create_family("Smiths")
        await session.add_transaction(tx())
        shared = await session.add_transaction(tx(family_id=family.family_id))

        assert await session.clear_all_data() == 1

        assert session.state.transactions == ()
        assert session.state.family.family_id == family.family_id
        assert [t.id for t in session.state.family_transactions] == [shared.id]

    @pytest.mark.asyncio
    async def test_closed_session_rejects_dispatch(self, session):
        session.close()
        with pytest.raises(ContainerClosedError):
            session.container.dispatch(a.ResetState())


class TestDeletePolicies:
    """Tests for optimistic and pessimistic deletes."""

    @pytest.mark.asyncio
    async def test_optimistic_delete_tolerates_remote_failure(self, session, store, alice):
        """Local state is updated even though the remote delete failed."""
        await session.set_identity(alice)
        saved = await session.add_transaction(tx())
        store.fail_writes()

        await session.delete_transaction(saved)

        assert session.state.transactions == ()
        assert await store.get_document(f"users/alice/transactions/{saved.id}") is not None
        assert session.audit.history[-1].event_type == AuditEventType.REMOTE_DELETE_FAILED

    @pytest.mark.asyncio
    async def test_pessimistic_delete_propagates_failure(self, store, local_storage, clock, alice):
        session = ExpenseSession(
            store, local_storage, delete_policy=DeletePolicy.PESSIMISTIC, clock=clock
        )
        await session.set_identity(alice)
        saved = await session.add_transaction(tx())
        store.fail_writes()

        with pytest.raises(StorageError):
            await session.delete_transaction(saved)

        assert session.state.transactions == (saved,)
        assert session.audit.history[-1].event_type == AuditEventType.WRITE_FAILED

    @pytest.mark.asyncio
    async def test_pessimistic_delete_success(self, store, local_storage, clock, alice):
        session = ExpenseSession(store, local_storage, delete_policy="pessimistic", clock=clock)
        await session.set_identity(alice)
        saved = await session.add_budget(Budget(category="Bills", limit=50, month=3, year=2026))

        await session.delete_budget(saved.id)

        assert session.state.budgets == ()
        assert await FinanceRepository(store).list_records(Budget, uid="alice") == []

    @pytest.mark.asyncio
    async def test_family_delete_is_routed_by_ownership(self, session, store, alice):
        await session.set_identity(alice)
        family = await session.create_family("Smiths")
        shared = await session.add_transaction(tx(family_id=family.family_id))

        await session.delete_transaction(shared)

        assert session.state.family_transactions == ()
        assert await store.list_documents(f"families/{family.family_id}/transactions") == []
