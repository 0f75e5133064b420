"""
Tests for the layered configuration store.
"""

import json
from types import SimpleNamespace
from unittest.mock import AsyncMock, patch

import pytest

from casework_notifier.db.helpers import DatabaseError
from casework_notifier.models.domain.config_domain import ConfigUnavailable
from casework_notifier.services.config_store import (
    ConfigSourceError,
    ConfigurationResolver,
    InMemoryTier,
    PostgresDurableTier,
    RedisCacheTier,
    VariablesSheetStore,
    tiers,
)
from casework_notifier.services.config_store.resolver import CACHE_KEY, DURABLE_KEY

AUTOMATION_ID = "automation-sheet"


@pytest.fixture
def resolver_parts(fake_source, fake_redis, base_variables, variables_table):
    fake_source.spreadsheets[AUTOMATION_ID] = {"Variables": variables_table(base_variables)}
    store = VariablesSheetStore(fake_source, AUTOMATION_ID)
    cache = RedisCacheTier(fake_redis, ttl_s=18000)
    durable = InMemoryTier("durable")
    return store, cache, durable


@pytest.fixture
def resolver(resolver_parts):
    return ConfigurationResolver(*resolver_parts)


class TestVariablesSheetStore:
    @pytest.mark.asyncio
    async def test_read_all_skips_blank_rows(self, fake_source):
        fake_source.spreadsheets[AUTOMATION_ID] = {
            "Variables": [["Key", "Value"], ["A", " 1 "], ["", "orphan"], ["B", ""], [], ["C", 3]]
        }

        values = await VariablesSheetStore(fake_source, AUTOMATION_ID).read_all()

        assert values == {"A": "1", "C": "3"}

    @pytest.mark.asyncio
    async def test_read_all_leaves_out_contact_sheets_backup(self, fake_source):
        fake_source.spreadsheets[AUTOMATION_ID] = {
            "Variables": [
                ["Key", "Value", "Note"],
                ["SSM_NAME", "Morgan Manager"],
                ["contactSheets", '[{"name": "March Contacts", "seenByCol": 4}]', "autofilled"],
            ]
        }
        store = VariablesSheetStore(fake_source, AUTOMATION_ID)

        assert await store.read_all() == {"SSM_NAME": "Morgan Manager"}
        assert "March Contacts" in await store.get_raw("contactSheets")

    @pytest.mark.asyncio
    async def test_missing_tab_raises(self, fake_source):
        fake_source.spreadsheets[AUTOMATION_ID] = {}

        with pytest.raises(ConfigSourceError):
            await VariablesSheetStore(fake_source, AUTOMATION_ID).read_all()

    @pytest.mark.asyncio
    async def test_header_only_raises(self, fake_source):
        fake_source.spreadsheets[AUTOMATION_ID] = {"Variables": [["Key", "Value"]]}

        with pytest.raises(ConfigSourceError):
            await VariablesSheetStore(fake_source, AUTOMATION_ID).read_all()

    @pytest.mark.asyncio
    async def test_api_error_is_wrapped(self, fake_source):
        fake_source.spreadsheets[AUTOMATION_ID] = {"Variables": [["Key", "Value"]]}
        fake_source.failing_sheets.add("Variables")

        with pytest.raises(ConfigSourceError):
            await VariablesSheetStore(fake_source, AUTOMATION_ID).read_all()

    @pytest.mark.asyncio
    async def test_upsert_overwrites_first_matching_row(self, fake_source):
        fake_source.spreadsheets[AUTOMATION_ID] = {
            "Variables": [["Key", "Value"], ["A", "1"], ["B", "2"]]
        }
        store = VariablesSheetStore(fake_source, AUTOMATION_ID)

        updated = await store.upsert("B", "20")

        assert updated is True
        assert fake_source.sheet(AUTOMATION_ID, "Variables") == [
            ["Key", "Value"],
            ["A", "1"],
            ["B", "20"],
        ]
        assert fake_source.appends == []

    @pytest.mark.asyncio
    async def test_upsert_appends_then_updates(self, fake_source):
        fake_source.spreadsheets[AUTOMATION_ID] = {"Variables": [["Key", "Value"], ["A", "1"]]}
        store = VariablesSheetStore(fake_source, AUTOMATION_ID)

        assert await store.upsert("NEW", "x", note="autofilled") is False
        assert await store.upsert("NEW", "y") is True

        rows = fake_source.sheet(AUTOMATION_ID, "Variables")
        assert [row[0] for row in rows].count("NEW") == 1
        assert rows[-1][:3] == ["NEW", "y", "autofilled"]

    @pytest.mark.asyncio
    async def test_get_raw(self, fake_source):
        fake_source.spreadsheets[AUTOMATION_ID] = {
            "Variables": [["Key", "Value"], ["contactSheets", "[]"]]
        }
        store = VariablesSheetStore(fake_source, AUTOMATION_ID)

        assert await store.get_raw("contactSheets") == "[]"
        assert await store.get_raw("missing") is None


class TestInMemoryTier:
    @pytest.mark.asyncio
    async def test_put_get_invalidate(self):
        tier = InMemoryTier()

        assert await tier.put("k", "v") is True
        assert await tier.get("k") == "v"
        assert await tier.invalidate("k") is True
        assert await tier.get("k") is None
        assert await tier.invalidate("k") is False

    @pytest.mark.asyncio
    async def test_entries_expire(self, monkeypatch):
        clock = {"now": 1000.0}
        monkeypatch.setattr(tiers, "time", SimpleNamespace(monotonic=lambda: clock["now"]))
        tier = InMemoryTier(ttl_s=60)

        await tier.put("k", "v")
        clock["now"] += 61

        assert await tier.get("k") is None


class TestPostgresDurableTier:
    @pytest.mark.asyncio
    async def test_get_returns_stored_value(self):
        with patch.object(tiers, "fetch_one", new=AsyncMock(return_value={"value": "{}"})) as q:
            assert await PostgresDurableTier().get("config:variables") == "{}"

        assert q.await_args.args[1] == ("config:variables",)

    @pytest.mark.asyncio
    async def test_put_upserts(self):
        with patch.object(tiers, "execute_query", new=AsyncMock(return_value=1)) as q:
            assert await PostgresDurableTier().put("k", "v") is True

        assert "ON CONFLICT (key)" in q.await_args.args[0]
        assert q.await_args.args[1] == ("k", "v")

    @pytest.mark.asyncio
    async def test_database_errors_are_misses(self):
        failing = AsyncMock(side_effect=DatabaseError("connection refused"))
        with (
            patch.object(tiers, "fetch_one", new=failing),
            patch.object(tiers, "execute_query", new=failing),
        ):
            tier = PostgresDurableTier()

            assert await tier.get("k") is None
            assert await tier.put("k", "v") is False
            assert await tier.invalidate("k") is False

    @pytest.mark.asyncio
    async def test_invalidate_reports_deleted_rows(self):
        with patch.object(tiers, "execute_query", new=AsyncMock(return_value=0)):
            assert await PostgresDurableTier().invalidate("k") is False


class TestConfigurationResolver:
    @pytest.mark.asyncio
    async def test_cold_start_reads_sheet_and_writes_through(self, resolver, fake_redis):
        context = await resolver.resolve()

        assert context.source == "sheet"
        assert context.main_worker_name == "Ellie Brewer"
        assert json.loads(fake_redis.store[CACHE_KEY])["SSM_NAME"] == "Morgan Manager"
        assert json.loads(await resolver._durable.get(DURABLE_KEY))["SSM_NAME"] == "Morgan Manager"

    @pytest.mark.asyncio
    async def test_warm_cache_skips_sheet(self, resolver, fake_source):
        await resolver.resolve()
        reads_before = fake_source.read_counts[(AUTOMATION_ID, "Variables")]

        context = await resolver.resolve()

        assert context.source == "cache"
        assert fake_source.read_counts[(AUTOMATION_ID, "Variables")] == reads_before

    @pytest.mark.asyncio
    async def test_durable_hit_repopulates_cache(self, resolver, fake_redis, base_variables):
        await resolver._durable.put(DURABLE_KEY, json.dumps(base_variables))

        context = await resolver.resolve()

        assert context.source == "durable"
        assert CACHE_KEY in fake_redis.store

    @pytest.mark.asyncio
    async def test_incomplete_cache_forces_refresh(self, resolver, fake_redis, base_variables):
        partial = dict(base_variables)
        del partial["SSM_EMAIL"]
        fake_redis.store[CACHE_KEY] = json.dumps(partial)

        context = await resolver.resolve()

        assert context.source == "sheet"
        assert context.manager_email == "morgan@example.org"

    @pytest.mark.asyncio
    async def test_unreadable_cache_payload_falls_through(self, resolver, fake_redis):
        fake_redis.store[CACHE_KEY] = "{not json"

        context = await resolver.resolve()

        assert context.source == "sheet"

    @pytest.mark.asyncio
    async def test_missing_required_key_is_fatal(
        self, fake_source, resolver_parts, base_variables, variables_table
    ):
        del base_variables["CONTACT_COMPLETE_MONTHS"]
        fake_source.spreadsheets[AUTOMATION_ID]["Variables"] = variables_table(base_variables)
        resolver = ConfigurationResolver(*resolver_parts)

        with pytest.raises(ConfigUnavailable) as exc_info:
            await resolver.resolve()

        assert exc_info.value.missing_keys == ["CONTACT_COMPLETE_MONTHS"]

    @pytest.mark.asyncio
    async def test_sheet_unreachable_is_fatal(self, resolver, fake_source):
        fake_source.failing_sheets.add("Variables")

        with pytest.raises(ConfigUnavailable):
            await resolver.resolve()

    @pytest.mark.asyncio
    async def test_cache_write_failure_is_not_fatal(self, resolver_parts):
        store, cache, durable = resolver_parts
        cache.put = AsyncMock(return_value=False)
        resolver = ConfigurationResolver(store, cache, durable)

        context = await resolver.resolve()

        assert context.source == "sheet"

    @pytest.mark.asyncio
    async def test_update_then_resolve_returns_new_value(self, resolver, fake_source):
        await resolver.resolve()

        await resolver.update_value("CONTACT_COMPLETE_MONTHS", "January, February")
        context = await resolver.resolve()

        assert context["CONTACT_COMPLETE_MONTHS"] == "January, February"
        keys = [row[0] for row in fake_source.sheet(AUTOMATION_ID, "Variables")]
        assert keys.count("CONTACT_COMPLETE_MONTHS") == 1

    @pytest.mark.asyncio
    async def test_update_bypassing_cache_round_trip(self, resolver, fake_redis):
        await resolver.update_value("SSM_NAME", "New Manager")
        fake_redis.store.clear()

        context = await resolver.resolve()

        assert context.manager_name == "New Manager"

    @pytest.mark.asyncio
    async def test_update_appends_unknown_key_once(self, resolver, fake_source):
        await resolver.update_value("WORKER_CELL_NUMBER", "555-0100")
        await resolver.update_value("WORKER_CELL_NUMBER", "555-0199")

        rows = fake_source.sheet(AUTOMATION_ID, "Variables")
        matching = [row for row in rows if row[0] == "WORKER_CELL_NUMBER"]
        assert matching == [["WORKER_CELL_NUMBER", "555-0199"]]

    @pytest.mark.asyncio
    async def test_update_rejects_empty_value(self, resolver):
        with pytest.raises(ValueError):
            await resolver.update_value("SSM_NAME", "   ")

    @pytest.mark.asyncio
    async def test_refresh_error_propagates(self, resolver, fake_source):
        fake_source.failing_sheets.add("Variables")

        with pytest.raises(ConfigSourceError):
            await resolver.refresh()

