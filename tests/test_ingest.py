"""Tests for legiswatch.ingest — the ingest run."""

from __future__ import annotations

import json

import pytest

from legiswatch.config import Config
from legiswatch.ingest import (
    IngestOptions,
    SourceConfig,
    build_fetch_params,
    compute_content_hash,
    load_sources_config,
    run_ingest,
)
from legiswatch.sources.adapter import MissingStatesError, SourceAdapter
from legiswatch.sources.models import (
    Jurisdiction,
    NormalizedLegislationItem,
    SourceFetchParams,
    SourceFetchResult,
)
from legiswatch.sources.registry import _REGISTRY, clear_registry, register_adapter
from legiswatch.storage.connection import get_connection
from legiswatch.storage.schema import init_db


def _item(key, source="utahGlen", cross_ref_key=None, **overrides):
    fields = {
        "source": source,
        "source_key": key,
        "item_type": "bill",
        "jurisdiction": Jurisdiction(level="state", state="UT"),
        "title": f"Landlord bill {key}",
        "topics": ("landlord_tenant",),
        "raw": {"id": key},
        "cross_ref_key": cross_ref_key if cross_ref_key is not None else f"UT-{key}-2025",
    }
    fields.update(overrides)
    return NormalizedLegislationItem(**fields)


class _FakeAdapter(SourceAdapter):
    def __init__(self, source_id, items=(), errors=(), available=True, exc=None):
        super().__init__()
        self._source_id = source_id
        self._items = list(items)
        self._errors = list(errors)
        self._available = available
        self._exc = exc
        self.calls: list[SourceFetchParams] = []

    @property
    def source_id(self):
        return self._source_id

    @property
    def name(self):
        return self._source_id

    def is_available(self):
        return self._available

    def fetch(self, params):
        self.calls.append(params)
        if self._exc is not None:
            raise self._exc
        return SourceFetchResult(items=list(self._items), errors=list(self._errors))


@pytest.fixture(autouse=True)
def _isolated_registry():
    original = dict(_REGISTRY)
    clear_registry()
    yield
    _REGISTRY.clear()
    _REGISTRY.update(original)


@pytest.fixture()
def make_config(tmp_path):
    db_path = str(tmp_path / "test.db")
    init_db(db_path)

    def _make(sources):
        path = tmp_path / "sources.json"
        path.write_text(json.dumps({"sources": sources}))
        return Config(database_path=db_path, sources_config_path=str(path))

    return _make


def _count(db_path, table):
    with get_connection(db_path) as conn:
        return conn.execute(f"SELECT COUNT(*) FROM {table}").fetchone()[0]


class TestRunIngest:
    def test_persists_new_items_and_records_run(self, make_config):
        register_adapter(_FakeAdapter("utahGlen", items=[_item("HB1"), _item("HB2")]))
        config = make_config([{"id": "utahGlen", "enabled": True}])

        result = run_ingest(config)

        assert result.status == "success"
        assert result.new_items == 2
        assert result.errors == []
        assert _count(config.database_path, "legislation_updates") == 2

        with get_connection(config.database_path) as conn:
            run = conn.execute("SELECT * FROM source_runs").fetchone()
            state = conn.execute("SELECT * FROM source_state").fetchone()
            update = conn.execute(
                "SELECT * FROM legislation_updates WHERE source_key = 'HB1'"
            ).fetchone()
        assert run["run_id"] == result.run_id
        assert run["status"] == "success"
        assert run["new_items"] == 2
        assert state["source_id"] == "utahGlen"
        assert state["last_run_status"] == "success"
        assert state["last_seen_date"] is not None
        assert json.loads(update["topics"]) == ["landlord_tenant"]
        assert json.loads(update["raw_data"]) == {"id": "HB1"}
        assert len(update["content_hash"]) == 32

    def test_second_run_skips_stored_cross_ref_keys(self, make_config):
        register_adapter(_FakeAdapter("utahGlen", items=[_item("HB1")]))
        config = make_config([{"id": "utahGlen"}])

        run_ingest(config)
        second = run_ingest(config)

        assert second.new_items == 0
        assert second.duplicates == 1
        assert _count(config.database_path, "legislation_updates") == 1

    def test_cross_source_duplicates_skipped(self, make_config):
        register_adapter(_FakeAdapter("legiscan", items=[_item("1", source="legiscan", cross_ref_key="UT-HB5-2025")]))
        register_adapter(_FakeAdapter("pluralPolicy", items=[_item("x", source="pluralPolicy", cross_ref_key="UT-HB5-2025")]))
        config = make_config([{"id": "legiscan"}, {"id": "pluralPolicy"}])

        result = run_ingest(config)

        assert result.new_items == 1
        assert result.duplicates == 1

    def test_stored_cursor_becomes_since(self, make_config):
        adapter = _FakeAdapter("utahGlen")
        register_adapter(adapter)
        config = make_config([{"id": "utahGlen"}])
        with get_connection(config.database_path) as conn:
            conn.execute(
                "INSERT INTO source_state (source_id, last_seen_date) VALUES ('utahGlen', '2025-04-01')"
            )

        run_ingest(config)

        assert adapter.calls[0].since == "2025-04-01"

    def test_adapter_errors_are_prefixed_and_keep_cursor(self, make_config):
        register_adapter(_FakeAdapter("legiscan", items=[_item("1", source="legiscan")], errors=["LegiScan error for UT: 500"]))
        config = make_config([{"id": "legiscan", "states": ["UT", "TX"]}])

        result = run_ingest(config)

        assert result.status == "partial"
        assert result.errors == ["[legiscan] LegiScan error for UT: 500"]
        assert result.new_items == 1
        with get_connection(config.database_path) as conn:
            state = conn.execute("SELECT * FROM source_state").fetchone()
        assert state["last_run_status"] == "partial"
        assert state["last_seen_date"] is None
        assert state["last_error"] == "LegiScan error for UT: 500"

    def test_raising_adapter_is_contained(self, make_config):
        register_adapter(_FakeAdapter("legiscan", exc=MissingStatesError("LegiScan requires states")))
        register_adapter(_FakeAdapter("utahGlen", items=[_item("HB1")]))
        config = make_config([{"id": "legiscan"}, {"id": "utahGlen"}])

        result = run_ingest(config)

        assert result.status == "partial"
        assert [s.status for s in result.sources] == ["failed", "success"]
        assert result.errors == ["[legiscan] Source legiscan failed: LegiScan requires states"]
        assert result.new_items == 1

    def test_unavailable_and_missing_adapters_fail(self, make_config):
        register_adapter(_FakeAdapter("courtListener", available=False))
        config = make_config([{"id": "courtListener"}, {"id": "congressGov"}])

        result = run_ingest(config)

        assert result.status == "failed"
        assert result.errors == [
            "[courtListener] Source not available",
            "[congressGov] No adapter found for source: congressGov",
        ]
        assert _count(config.database_path, "source_runs") == 2

    def test_disabled_sources_skipped(self, make_config):
        adapter = _FakeAdapter("ecfr", items=[_item("1", source="ecfr")])
        register_adapter(adapter)
        config = make_config([{"id": "ecfr", "enabled": False}])

        result = run_ingest(config)

        assert result.status == "success"
        assert result.sources == []
        assert adapter.calls == []

    def test_missing_sources_file_fails_run(self, tmp_path):
        config = Config(
            database_path=str(tmp_path / "test.db"),
            sources_config_path=str(tmp_path / "missing.json"),
        )
        result = run_ingest(config)
        assert result.status == "failed"
        assert result.errors[0].startswith("Pipeline error:")

    def test_dry_run_writes_nothing(self, make_config):
        register_adapter(_FakeAdapter("utahGlen", items=[_item("HB1")]))
        config = make_config([{"id": "utahGlen"}])

        result = run_ingest(config, IngestOptions(dry_run=True))

        assert result.items_fetched == 1
        assert _count(config.database_path, "legislation_updates") == 0
        assert _count(config.database_path, "source_runs") == 0

    def test_source_ids_option_limits_run(self, make_config):
        glen = _FakeAdapter("utahGlen")
        ecfr = _FakeAdapter("ecfr")
        register_adapter(glen)
        register_adapter(ecfr)
        config = make_config([{"id": "utahGlen"}, {"id": "ecfr"}])

        run_ingest(config, IngestOptions(source_ids=["ecfr"]))

        assert glen.calls == []
        assert len(ecfr.calls) == 1


class TestBuildFetchParams:
    def test_tribal_topic_implies_include_tribal(self):
        params = build_fetch_params(
            SourceConfig(id="ecfr", topics=["ihbg"]), None, IngestOptions()
        )
        assert params.include_tribal is True

    def test_explicit_include_tribal(self):
        params = build_fetch_params(
            SourceConfig(id="utahGlen", include_tribal=True), None, IngestOptions()
        )
        assert params.include_tribal is True

    def test_defaults_to_not_tribal(self):
        params = build_fetch_params(
            SourceConfig(id="legiscan", states=["UT"], topics=["eviction"]), "2025-01-01", IngestOptions()
        )
        assert params == SourceFetchParams(
            states=["UT"], since="2025-01-01", topics=["eviction"], include_tribal=False
        )

    def test_options_override_source_config(self):
        params = build_fetch_params(
            SourceConfig(id="legiscan", states=["UT"], include_tribal=True),
            "2025-01-01",
            IngestOptions(states=["TX"], since="2024-12-01", include_tribal=False),
        )
        assert params.states == ["TX"]
        assert params.since == "2024-12-01"
        assert params.include_tribal is False


def test_load_sources_config(tmp_path):
    path = tmp_path / "sources.json"
    path.write_text(json.dumps({"sources": [
        {"id": "legiscan", "states": ["UT"], "topics": []},
        {"id": "ecfr", "enabled": False, "include_tribal": True},
    ]}))

    sources = load_sources_config(str(path))

    assert sources == [
        SourceConfig(id="legiscan", states=["UT"], topics=None),
        SourceConfig(id="ecfr", enabled=False, include_tribal=True),
    ]


def test_load_sources_config_rejects_entry_without_id(tmp_path):
    path = tmp_path / "sources.json"
    path.write_text(json.dumps({"sources": [{"enabled": True}]}))
    with pytest.raises(ValueError):
        load_sources_config(str(path))


def test_content_hash_depends_on_title_summary_status():
    a = _item("1", summary="s", status="Introduced")
    b = _item("2", title="Landlord bill 1", summary="s", status="Introduced")
    c = _item("1", summary="s", status="Passed")
    assert compute_content_hash(a) == compute_content_hash(b)
    assert compute_content_hash(a) != compute_content_hash(c)


@pytest.mark.parametrize(
    "payload",
    [
        [{"id": "ecfr"}],
        {"sources": {"id": "ecfr"}},
        {"sources": ["ecfr"]},
    ],
)
def test_sources_file_of_wrong_shape_fails_run(tmp_path, payload):
    path = tmp_path / "sources.json"
    path.write_text(json.dumps(payload))
    config = Config(database_path=str(tmp_path / "test.db"), sources_config_path=str(path))

    result = run_ingest(config)

    assert result.status == "failed"
    assert result.errors[0].startswith("Pipeline error:")


def test_storage_errors_are_contained_per_source(tmp_path):
    register_adapter(_FakeAdapter("utahGlen", items=[_item("HB1")]))
    path = tmp_path / "sources.json"
    path.write_text(json.dumps({"sources": [{"id": "utahGlen"}]}))
    # No init_db: the tables do not exist.
    config = Config(database_path=str(tmp_path / "bare.db"), sources_config_path=str(path))

    result = run_ingest(config, IngestOptions(dry_run=True))

    assert result.status == "failed"
    assert result.sources[0].status == "failed"
    assert result.errors[0].startswith("[utahGlen] Source utahGlen failed:")
