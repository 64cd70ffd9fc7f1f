import json
import pytest

from jarvis_agent.memory import keyword
from jarvis_agent.memory.keyword import KeywordMemory, extract_keywords


@pytest.fixture
def memory(tmp_path):
    return KeywordMemory(tmp_path / "memory" / "memory.json")


def remember(memory, text, response="ok", session_id="s1"):
    memory.store({"input": text, "response": response, "session_id": session_id})


def test_extract_keywords_drops_stop_words_and_short_words():
    assert extract_keywords("What is the weather in Paris, today?") == ["weather", "paris", "today"]


def test_extract_keywords_is_capped():
    words = " ".join(f"word{i}" for i in range(50))

    assert len(extract_keywords(words)) == keyword.MAX_KEYWORDS


def test_store_persists_to_disk(memory):
    remember(memory, "my favourite colour is green")

    data = json.loads(memory.file_path.read_text())
    assert memory.size == 1
    assert data["memories"][0]["input"] == "my favourite colour is green"
    assert "green" in data["memories"][0]["keywords"]


def test_reload_from_disk(memory):
    remember(memory, "the project deadline is friday")

    reloaded = KeywordMemory(memory.file_path)

    assert reloaded.size == 1
    assert "friday" in reloaded.recall("deadline")[0]["content"]


def test_corrupt_file_starts_fresh(tmp_path):
    path = tmp_path / "memory.json"
    path.write_text("{not json")

    assert KeywordMemory(path).size == 0


def test_recall_ranks_by_overlap_then_recency(memory):
    remember(memory, "python packaging tips", response="use pyproject")
    remember(memory, "cooking pasta tonight", response="boil water")
    remember(memory, "python testing tips", response="use pytest")

    results = memory.recall("python tips")

    assert len(results) == 2
    assert results[0]["content"] == "Q: python testing tips\nA: use pytest"
    assert results[1]["content"] == "Q: python packaging tips\nA: use pyproject"


def test_recall_without_keywords_returns_most_recent(memory):
    for i in range(4):
        remember(memory, f"entry number{i}")

    results = memory.recall("is it?", limit=2)

    assert [r["content"].splitlines()[0] for r in results] == ["Q: entry number3", "Q: entry number2"]


def test_recall_respects_limit(memory):
    for i in range(5):
        remember(memory, f"weather report {i}")

    assert len(memory.recall("weather", limit=3)) == 3


def test_store_keeps_only_recent_entries(memory, monkeypatch):
    monkeypatch.setattr(keyword, "MAX_MEMORIES", 3)

    for i in range(5):
        remember(memory, f"note{i}")

    assert memory.size == 3
    assert [m["input"] for m in memory.memories] == ["note2", "note3", "note4"]


def test_wipe(memory):
    remember(memory, "something memorable")

    memory.wipe()

    assert memory.size == 0
    assert json.loads(memory.file_path.read_text()) == {"memories": []}


def test_files_from_older_versions_still_load(tmp_path):
    path = tmp_path / "memory.json"
    path.write_text(json.dumps({
        "memories": [{"input": "hi", "response": "hello", "keywords": ["hello"], "created_at": "2024-01-01T00:00:00Z"}],
        "summaries": {"s1": {"summary": "old"}},
    }))

    memory = KeywordMemory(path)
    memory.close()

    assert memory.size == 1
    assert json.loads(path.read_text()) == {"memories": memory.memories}
