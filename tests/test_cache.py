"""Tests for table fingerprints and the content cache."""

import json

from hypothesis import given, strategies as st

from sheetgraph.core import ContentCache, MemoryCacheStorage, canonical_json, fingerprint

from conftest import SAMPLE_GRAPH, make_table

cell_values = st.none() | st.integers(min_value=-1000, max_value=1000) | st.text(max_size=6)


@st.composite
def tables(draw):
    """Small tables with at least one data cell."""
    width = draw(st.integers(min_value=1, max_value=3))
    height = draw(st.integers(min_value=2, max_value=4))
    grid = [[draw(cell_values) for _ in range(width)] for _ in range(height)]
    return make_table(draw(st.text(min_size=1, max_size=5)), *grid)


def reorder_keys(value):
    """Same data, every dict rebuilt with its keys in reverse order."""
    if isinstance(value, dict):
        return {k: reorder_keys(value[k]) for k in reversed(list(value))}
    if isinstance(value, list):
        return [reorder_keys(v) for v in value]
    return value


class TestFingerprint:
    def test_is_sha256_hex(self, sample_tables):
        key = fingerprint(sample_tables)
        assert len(key) == 64
        assert all(c in "0123456789abcdef" for c in key)

    def test_canonical_json_sorts_nested_keys(self):
        assert canonical_json({"b": 1, "a": {"d": 2, "c": [3, {"f": 4, "e": 5}]}}) == \
            '{"a":{"c":[3,{"e":5,"f":4}],"d":2},"b":1}'

    def test_list_order_matters(self, sales_table):
        other = make_table("Other", ["x"], [1])
        assert fingerprint([sales_table, other]) != fingerprint([other, sales_table])

    @given(tables())
    def test_invariant_under_key_order(self, table):
        assert fingerprint([reorder_keys(table)]) == fingerprint([table])

    @given(tables(), st.integers(min_value=2000, max_value=3000))
    def test_changes_when_a_cell_value_changes(self, table, new_value):
        changed = json.loads(json.dumps(table))
        changed["rows"][-1][0]["value"] = new_value
        assert fingerprint([changed]) != fingerprint([table])


class TestContentCache:
    def test_put_then_get(self, cache, sample_tables):
        key = fingerprint(sample_tables)
        assert cache.put(key, SAMPLE_GRAPH, sample_tables) is True

        entry = cache.get(key)
        assert entry["graph"] == SAMPLE_GRAPH
        assert entry["tables"] == sample_tables
        assert entry["metadata"]["key"] == key
        assert entry["metadata"]["generated_at"].endswith("+00:00")

    def test_miss_returns_none(self, cache):
        assert cache.get("missing") is None

    def test_put_overwrites(self, cache, sample_tables):
        cache.put("k", SAMPLE_GRAPH, sample_tables)
        cache.put("k", {"nodes": [], "links": []}, [])
        assert cache.get("k")["graph"] == {"nodes": [], "links": []}

    def test_unparsable_entry_is_purged(self):
        storage = MemoryCacheStorage()
        storage.set("k", "{not json")
        cache = ContentCache(storage)

        assert cache.get("k") is None
        assert storage.get("k") is None

    def test_entry_with_wrong_shape_is_purged(self):
        storage = MemoryCacheStorage()
        storage.set("k", json.dumps({"metadata": {"key": "k"}, "graph": {"nodes": []}, "tables": []}))
        cache = ContentCache(storage)

        assert cache.get("k") is None
        assert "k" not in storage.keys()

    def test_cyclic_data_is_reported_not_raised(self, cache):
        graph = {"nodes": [], "links": []}
        graph["nodes"].append(graph)
        assert cache.put("k", graph, []) is False
        assert cache.get("k") is None

    def test_quota_failure_is_reported_not_raised(self, sample_tables):
        cache = ContentCache(MemoryCacheStorage(max_bytes=10))
        assert cache.put("k", SAMPLE_GRAPH, sample_tables) is False

    def test_clear(self, cache, sample_tables):
        cache.put("a", SAMPLE_GRAPH, sample_tables)
        cache.put("b", SAMPLE_GRAPH, sample_tables)
        assert cache.clear() == 2
        assert cache.get("a") is None
