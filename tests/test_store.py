"""Tests for the file-backed key-value store."""

from prompt_studio.db.client import KeyValueStore


class TestKeyValueStore:
    def test_missing_key_returns_default(self, tmp_path):
        store = KeyValueStore(tmp_path)
        assert store.get("nope") is None
        assert store.get("nope", default=[]) == []

    def test_set_and_get(self, tmp_path):
        store = KeyValueStore(tmp_path)
        store.set("prompts_alice", [{"id": "abc", "name": "Ünïcode"}])
        assert store.get("prompts_alice") == [{"id": "abc", "name": "Ünïcode"}]

    def test_persists_across_instances(self, tmp_path):
        KeyValueStore(tmp_path).set("current_user", "alice")
        assert KeyValueStore(tmp_path).get("current_user") == "alice"

    def test_overwrite(self, tmp_path):
        store = KeyValueStore(tmp_path)
        store.set("k", 1)
        store.set("k", 2)
        assert store.get("k") == 2

    def test_delete(self, tmp_path):
        store = KeyValueStore(tmp_path)
        store.set("k", 1)
        store.delete("k")
        store.delete("k")
        assert store.get("k") is None

    def test_unsafe_characters_in_key(self, tmp_path):
        store = KeyValueStore(tmp_path)
        store.set("prompts_a/b c", [1])
        assert store.get("prompts_a/b c") == [1]
        assert [p.parent for p in tmp_path.iterdir()] == [tmp_path]

    def test_no_temp_files_left(self, tmp_path):
        store = KeyValueStore(tmp_path)
        store.set("k", {"a": 1})
        assert [p.name for p in tmp_path.iterdir()] == ["k.json"]

    def test_creates_root(self, tmp_path):
        root = tmp_path / "nested" / "data"
        KeyValueStore(root).set("k", 1)
        assert (root / "k.json").exists()
