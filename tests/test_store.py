import json

from channel_transcriber.processor.store import JsonFileStore, MemoryStore


def test_json_store_persists_across_instances(tmp_path):
    path = tmp_path / "nested" / "store.json"
    store = JsonFileStore(str(path))

    store.set("transcript_cache", {"https://v/1": "xin chào"})
    store.set("apify_token", "abc")

    reloaded = JsonFileStore(str(path))
    assert reloaded.get("transcript_cache") == {"https://v/1": "xin chào"}
    assert reloaded.get("apify_token") == "abc"
    assert reloaded.get("missing", "default") == "default"

    raw = json.loads(path.read_text(encoding="utf-8"))
    assert "last_updated" in raw
    assert raw["values"]["transcript_cache"] == {"https://v/1": "xin chào"}


def test_json_store_starts_empty_without_file(tmp_path):
    store = JsonFileStore(str(tmp_path / "store.json"))

    assert store.get("audio_links", {}) == {}


def test_stores_return_copies():
    for store in (MemoryStore(), MemoryStore({"links": {}})):
        store.set("links", {"a": "1"})
        links = store.get("links")
        links["b"] = "2"
        assert store.get("links") == {"a": "1"}
