"""Tests for the document stores, local fallback storage and repository."""

import json
from datetime import datetime, timezone

import pytest

from expenseflow.models import AuditEventType, Budget, Goal, Transaction
from expenseflow.services.storage import (
    APP_KEYS,
    ConcurrentModificationError,
    FinanceRepository,
    InMemoryKeyValueStorage,
    JSONFileStorage,
    LocalStateStore,
    NotFoundError,
    PermissionDeniedError,
    StorageError,
)
from expenseflow.services.storage import paths
from expenseflow.services.storage.local import THEME_KEY
from expenseflow.state import StateContainer
from expenseflow.state import actions as a


WHEN = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


def tx(text="Milk", amount=-3.0, family_id=None, day=1) -> Transaction:
    return Transaction(
        text=text,
        amount=amount,
        date=WHEN.replace(day=day),
        category="Groceries",
        family_id=family_id,
    )


class TestInMemoryDocumentStore:
    """Tests for the dict-backed document store."""

    @pytest.mark.asyncio
    async def test_add_and_get(self, store):
        doc_id = await store.add_document("users/u1/transactions", {"text": "Milk"})
        assert await store.get_document(f"users/u1/transactions/{doc_id}") == {"text": "Milk"}

    @pytest.mark.asyncio
    async def test_get_returns_a_copy(self, store):
        await store.set_document("users/u1", {"email": "a@example.com"})
        doc = await store.get_document("users/u1")
        doc["email"] = "changed"
        assert (await store.get_document("users/u1"))["email"] == "a@example.com"

    @pytest.mark.asyncio
    async def test_missing_document_is_none(self, store):
        assert await store.get_document("users/nobody") is None

    @pytest.mark.asyncio
    async def test_merge_keeps_other_fields(self, store):
        await store.set_document("users/u1", {"email": "a@example.com", "role": "admin"})
        await store.set_document("users/u1", {"role": None}, merge=True)
        assert await store.get_document("users/u1") == {"email": "a@example.com", "role": None}

    @pytest.mark.asyncio
    async def test_list_only_direct_children(self, store):
        await store.set_document("users/u1", {"email": "a@example.com"})
        await store.set_document("users/u1/transactions/t1", {"text": "Milk"})
        await store.set_document("users/u1/goals/g1", {"name": "Bike"})

        listed = await store.list_documents("users/u1/transactions")
        assert listed == [("t1", {"text": "Milk"})]

    @pytest.mark.asyncio
    async def test_query_matches_all_filters(self, store):
        await store.set_document("familyInvitations/i1", {"familyId": "f1", "status": "pending"})
        await store.set_document("familyInvitations/i2", {"familyId": "f1", "status": "declined"})
        await store.set_document("familyInvitations/i3", {"familyId": "f2", "status": "pending"})

        found = await store.query_documents(
            "familyInvitations", {"familyId": "f1", "status": "pending"}
        )
        assert [doc_id for doc_id, _ in found] == ["i1"]

    @pytest.mark.asyncio
    async def test_versioned_update(self, store):
        await store.set_document("families/f1", {"members": {}, "version": 1})
        await store.update_document("families/f1", {"version": 2}, expected_version=1)

        with pytest.raises(ConcurrentModificationError):
            await store.update_document("families/f1", {"version": 2}, expected_version=1)
        assert (await store.get_document("families/f1"))["version"] == 2

    @pytest.mark.asyncio
    async def test_update_missing_document(self, store):
        with pytest.raises(NotFoundError):
            await store.update_document("families/missing", {"version": 2})

    @pytest.mark.asyncio
    async def test_denied_reads(self, store):
        store.deny_reads("users/u1/goals")
        with pytest.raises(PermissionDeniedError):
            await store.list_documents("users/u1/goals")
        store.allow_reads("users/u1/goals")
        assert await store.list_documents("users/u1/goals") == []

    @pytest.mark.asyncio
    async def test_failing_writes(self, store):
        store.fail_writes()
        with pytest.raises(StorageError):
            await store.set_document("users/u1", {})
        assert store.write_count == 0


class TestJSONFileStorage:
    """Tests for the file-backed key-value storage."""

    def test_round_trip(self, tmp_path):
        storage = JSONFileStorage(str(tmp_path / "data"))
        storage.set_item("transactions", "[]")
        assert storage.get_item("transactions") == "[]"
        assert (tmp_path / "data" / "transactions.json").exists()

    def test_missing_key(self, tmp_path):
        assert JSONFileStorage(str(tmp_path)).get_item("budgets") is None

    def test_remove_is_idempotent(self, tmp_path):
        storage = JSONFileStorage(str(tmp_path))
        storage.set_item("goals", "[]")
        storage.remove_item("goals")
        storage.remove_item("goals")
        assert storage.get_item("goals") is None

    def test_rejects_path_like_keys(self, tmp_path):
        with pytest.raises(StorageError):
            JSONFileStorage(str(tmp_path)).set_item("../escape", "[]")


class TestLocalStateStore:
    """Tests for hydration from and mirroring to local storage."""

    def _hydrate(self, local: LocalStateStore) -> StateContainer:
        container = StateContainer()
        for action in local.load_actions():
            container.dispatch(action)
        return container

    def test_hydrates_valid_keys(self, audit):
        storage = InMemoryKeyValueStorage({
            "transactions": json.dumps([tx().model_copy(update={"id": "t1"}).to_record()]),
            "categories": json.dumps(["Food", "Rent"]),
            "settings": json.dumps({"currency": "EUR"}),
        })
        container = self._hydrate(LocalStateStore(storage, audit))

        state = container.state
        assert [t.id for t in state.transactions] == ["t1"]
        assert state.categories == ("Food", "Rent")
        assert state.settings.currency == "EUR"
        assert state.settings.theme == "dark"

    def test_malformed_json_falls_back_to_default(self, audit):
        """Test that a corrupt key is logged and defaults, others still load."""
        storage = InMemoryKeyValueStorage({
            "transactions": "{not json",
            "goals": json.dumps([{"id": "g1", "name": "Bike", "targetAmount": 500}]),
        })
        container = self._hydrate(LocalStateStore(storage, audit))

        assert container.state.transactions == ()
        assert [g.id for g in container.state.goals] == ["g1"]
        invalid = [
            e for e in audit.history if e.event_type == AuditEventType.LOCAL_STORAGE_INVALID
        ]
        assert [e.entity_type for e in invalid] == ["transactions"]

    def test_wrong_shape_falls_back_to_default(self, audit):
        storage = InMemoryKeyValueStorage({
            "budgets": json.dumps([{"category": "Food", "limit": 100, "month": 0, "year": 2026}]),
            "categories": json.dumps(42),
        })
        container = self._hydrate(LocalStateStore(storage, audit))
        assert container.state.budgets == ()
        assert container.state.categories == StateContainer().state.categories

    @pytest.mark.parametrize("stored", [{"theme": "system"}, {"warningThreshold": None}])
    def test_invalid_settings_fall_back_to_default(self, audit, stored):
        storage = InMemoryKeyValueStorage({"settings": json.dumps(stored)})

        container = self._hydrate(LocalStateStore(storage, audit))

        assert container.state.settings == StateContainer().state.settings
        invalid = [
            e for e in audit.history if e.event_type == AuditEventType.LOCAL_STORAGE_INVALID
        ]
        assert [e.entity_type for e in invalid] == ["settings"]

    def test_mirror_writes_only_changed_keys(self):
        storage = InMemoryKeyValueStorage()
        local = LocalStateStore(storage)
        container = StateContainer()
        container.subscribe(local.mirror)

        container.dispatch(a.AddCategory(payload="Pets"))

        assert storage.keys() == ["categories"]
        assert json.loads(storage.get_item("categories"))[-1] == "Pets"

    def test_mirror_persists_theme(self):
        storage = InMemoryKeyValueStorage()
        local = LocalStateStore(storage)
        container = StateContainer()
        container.subscribe(local.mirror)

        container.dispatch(a.UpdateSettings(payload={"theme": "light"}))

        assert local.read_theme() == "light"
        assert json.loads(storage.get_item("settings"))["theme"] == "light"

    def test_bare_theme_value_is_read(self):
        local = LocalStateStore(InMemoryKeyValueStorage({THEME_KEY: "light"}))
        assert local.read_theme() == "light"

    def test_save_writes_every_key(self):
        storage = InMemoryKeyValueStorage()
        LocalStateStore(storage).save(StateContainer().state)
        assert set(storage.keys()) == set(APP_KEYS)

    def test_clear_keeps_theme(self):
        storage = InMemoryKeyValueStorage({key: "[]" for key in APP_KEYS})
        local = LocalStateStore(storage)
        local.write_theme("light")

        local.clear()

        assert storage.keys() == [THEME_KEY]


class TestFinanceRepository:
    """Tests for collection routing and reads."""

    @pytest.mark.asyncio
    async def test_add_returns_server_id(self, store):
        """Test that a placeholder id is replaced by the store-assigned one."""
        repo = FinanceRepository(store)
        saved = await repo.add("alice", tx().model_copy(update={"id": "local-1"}))

        assert saved.id and saved.id != "local-1"
        doc = await store.get_document(f"users/alice/transactions/{saved.id}")
        assert doc["text"] == "Milk"
        assert "id" not in doc

    @pytest.mark.asyncio
    async def test_family_transaction_goes_to_family_collection(self, store):
        repo = FinanceRepository(store)
        saved = await repo.add("alice", tx(family_id="family_1"))

        assert await store.get_document(f"families/family_1/transactions/{saved.id}") is not None
        assert await store.list_documents("users/alice/transactions") == []

    def test_budget_routing_needs_flag_and_family_id(self, store):
        repo = FinanceRepository(store)
        shared = Budget(
            category="Bills", limit=100, month=3, year=2026, is_family=True, family_id="family_1"
        )
        flagged_only = Budget(category="Bills", limit=100, month=3, year=2026, is_family=True)

        assert repo.collection_for("alice", shared) == "families/family_1/budgets"
        assert repo.collection_for("alice", flagged_only) == "users/alice/budgets"

    def test_goals_are_always_personal(self, store):
        repo = FinanceRepository(store)
        assert repo.collection_for("alice", Goal(name="Bike", target_amount=500)) == (
            paths.user_collection("alice", paths.GOALS)
        )

    @pytest.mark.asyncio
    async def test_update_merges(self, store):
        repo = FinanceRepository(store)
        saved = await repo.add("alice", tx())
        path = f"users/alice/transactions/{saved.id}"
        await store.set_document(path, {"note": "kept"}, merge=True)

        await repo.update("alice", saved.model_copy(update={"text": "Oat milk"}))

        doc = await store.get_document(path)
        assert doc["text"] == "Oat milk"
        assert doc["note"] == "kept"

    @pytest.mark.asyncio
    async def test_update_without_id_fails(self, store):
        with pytest.raises(StorageError):
            await FinanceRepository(store).update("alice", tx())

    @pytest.mark.asyncio
    async def test_delete_by_id_and_by_record(self, store):
        repo = FinanceRepository(store)
        personal = await repo.add("alice", tx())
        shared = await repo.add("alice", tx(family_id="family_1"))

        await repo.delete("alice", Transaction, personal.id)
        await repo.delete("alice", Transaction, shared)

        assert store.dump() == {}

    @pytest.mark.asyncio
    async def test_failed_add_is_audited_and_raised(self, store, audit):
        repo = FinanceRepository(store, audit)
        store.fail_writes()

        with pytest.raises(StorageError):
            await repo.add("alice", tx())
        assert audit.history[-1].event_type == AuditEventType.WRITE_FAILED

    @pytest.mark.asyncio
    async def test_list_transactions_newest_first(self, store):
        repo = FinanceRepository(store)
        for day in (3, 10, 1):
            await repo.add("alice", tx(text=f"day {day}", day=day))

        listed = await repo.list_records(Transaction, uid="alice")
        assert [t.text for t in listed] == ["day 10", "day 3", "day 1"]

    @pytest.mark.asyncio
    async def test_list_requires_owner(self, store):
        with pytest.raises(ValueError):
            await FinanceRepository(store).list_records(Transaction)

    @pytest.mark.asyncio
    async def test_settings_and_categories(self, store):
        repo = FinanceRepository(store)
        assert await repo.get_settings("alice") is None

        await repo.save_settings("alice", {"currency": "EUR"})
        await repo.save_categories("alice", ["Food", "Rent"])

        assert (await repo.get_settings("alice")).currency == "EUR"
        assert await repo.get_categories("alice") == ["Food", "Rent"]

    @pytest.mark.asyncio
    async def test_profile_gets_uid(self, store):
        await store.set_document("users/alice", {"email": "alice@example.com", "familyId": "f1"})
        profile = await FinanceRepository(store).get_profile("alice")
        assert profile.uid == "alice"
        assert profile.family_id == "f1"

    @pytest.mark.asyncio
    async def test_clear_personal_data_leaves_family(self, store):
        repo = FinanceRepository(store)
        await repo.add("alice", tx())
        await repo.add("alice", Goal(name="Bike", target_amount=500))
        await repo.save_settings("alice", {"currency": "EUR"})
        shared = await repo.add("alice", tx(family_id="family_1"))

        assert await repo.clear_personal_data("alice") == 3
        assert list(store.dump()) == [f"families/family_1/transactions/{shared.id}"]
