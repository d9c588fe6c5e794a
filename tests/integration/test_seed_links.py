import json

import seed_links
from linktrail.storage.memory_store import MemoryKeyValueStore


def test_seed_memory_backend(tmp_path, capsys):
    out = tmp_path / "seeded.jsonl"
    created = seed_links.main(["--backend", "memory", "--count", "5", "--out", str(out)])

    assert created == 5
    lines = [json.loads(line) for line in out.read_text(encoding="utf-8").splitlines()]
    assert len({line["short_id"] for line in lines}) == 5
    assert lines[0]["url"] == "https://example.com/seed/0"
    assert "CREATED: 5/5 links" in capsys.readouterr().out


def test_seed_postgres_creates_schema_first(tmp_path, monkeypatch):
    calls = []

    def fake_get_store(backend, **kwargs):
        calls.append((backend, kwargs))
        store = MemoryKeyValueStore()
        store.ensure_schema = lambda: calls.append("schema")
        return store

    monkeypatch.setattr(seed_links, "get_store", fake_get_store)
    created = seed_links.main(
        ["--backend", "postgres", "--dsn", "postgresql://x/y", "--count", "2", "--out", str(tmp_path / "o.jsonl")]
    )
    assert created == 2
    assert calls == [("postgres", {"dsn": "postgresql://x/y"}), "schema"]
