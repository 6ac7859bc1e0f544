import gzip
import json

from match_index import MatchIndex, MatchIndexStore
from patch import Release

RELEASE = Release(15, 16)


class TestBootstrap:

    def test_missing_file_is_empty(self, tmp_path):
        index = MatchIndex("JP1", RELEASE, str(tmp_path))
        assert len(index) == 0
        assert index.filter_new(["a", "b"]) == ["a", "b"]
        assert index.contains_any(["a"]) == set()

    def test_merge_creates_file(self, tmp_path):
        index = MatchIndex("JP1", RELEASE, str(tmp_path))
        assert index.merge(["a", "b"]) == 2
        path = tmp_path / "JP1" / "15.16" / "index.json.gz"
        with gzip.open(path, "rt", encoding="utf-8") as f:
            assert json.load(f) == ["a", "b"]


class TestFiltering:

    def test_filter_new_is_ordered_and_disjoint(self, tmp_path):
        index = MatchIndex("JP1", RELEASE, str(tmp_path))
        index.merge(["m2", "m4"])
        ids = ["m5", "m4", "m1", "m2", "m3"]
        new = index.filter_new(ids)
        assert new == ["m5", "m1", "m3"]
        assert not set(new) & index.contains_any(ids)
        assert set(new) <= set(ids)

    def test_contains_any(self, tmp_path):
        index = MatchIndex("JP1", RELEASE, str(tmp_path))
        index.merge(["m1", "m2"])
        assert index.contains_any(["m2", "m3"]) == {"m2"}
        assert "m1" in index


class TestMerge:

    def test_merge_is_idempotent(self, tmp_path):
        index = MatchIndex("JP1", RELEASE, str(tmp_path))
        assert index.merge(["a", "b"]) == 2
        assert index.merge(["a", "b"]) == 0
        assert index.merge(["b", "c", "c"]) == 1
        assert len(MatchIndex("JP1", RELEASE, str(tmp_path))) == 3

    def test_partitions_are_separate(self, tmp_path):
        MatchIndex("JP1", RELEASE, str(tmp_path)).merge(["a"])
        assert len(MatchIndex("JP1", Release(15, 15), str(tmp_path))) == 0
        assert len(MatchIndex("KR", RELEASE, str(tmp_path))) == 0


class TestStore:

    def test_same_index_within_a_run(self, tmp_path):
        store = MatchIndexStore(str(tmp_path))
        assert store.get("jp1", RELEASE) is store.get("JP1", "15.16")

    def test_new_store_rereads_disk(self, tmp_path):
        store = MatchIndexStore(str(tmp_path))
        cached = store.get("JP1", RELEASE)
        assert len(cached) == 0

        MatchIndex("JP1", RELEASE, str(tmp_path)).merge(["a"])

        assert len(store.get("JP1", RELEASE)) == 0
        assert len(MatchIndexStore(str(tmp_path)).get("JP1", RELEASE)) == 1

    def test_clear(self, tmp_path):
        store = MatchIndexStore(str(tmp_path))
        first = store.get("JP1", RELEASE)
        store.clear()
        assert store.get("JP1", RELEASE) is not first

    def test_releases_on_disk(self, tmp_path):
        MatchIndex("JP1", Release(15, 9), str(tmp_path)).merge(["a"])
        MatchIndex("JP1", RELEASE, str(tmp_path)).merge(["b"])
        (tmp_path / "JP1" / "players.json.gz").write_bytes(b"")
        (tmp_path / "JP1" / "15.17").mkdir()
        store = MatchIndexStore(str(tmp_path))
        assert store.releases("jp1") == [Release(15, 9), RELEASE]
        assert store.releases("KR") == []

    def test_filter_new_across_releases(self, tmp_path):
        MatchIndex("JP1", Release(15, 15), str(tmp_path)).merge(["old"])
        MatchIndex("JP1", RELEASE, str(tmp_path)).merge(["cur"])
        store = MatchIndexStore(str(tmp_path))
        ids = ["new", "old", "cur"]
        assert store.filter_new("JP1", ids, [Release(15, 15), RELEASE]) == ["new"]
        assert store.filter_new("JP1", ids, [RELEASE]) == ["new", "old"]
