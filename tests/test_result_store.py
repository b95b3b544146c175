from postcraft.models import StructuredPost
from postcraft.result_store import ResultStore


def _post(text: str = "x") -> StructuredPost:
    return StructuredPost(
        linkedinPost=text,
        characterCount=len(text),
        category="A",
        originalText="orig",
        sourceUrl="https://example.test",
        timestamp="2025-01-01T00:00:00+00:00",
    )


def test_results_are_kept_per_identifier():
    store = ResultStore()
    a = store.put(_post("a"))
    b = store.put(_post("b"))
    assert a != b
    assert store.get(a).linkedin_post == "a"
    assert store.get(b).linkedin_post == "b"
    assert store.get("missing") is None


def test_caller_supplied_identifier_is_used():
    store = ResultStore()
    assert store.put(_post(), result_id="tab-42") == "tab-42"
    assert store.get("tab-42") is not None


def test_entries_expire_after_ttl():
    now = {"t": 100.0}
    store = ResultStore(ttl_seconds=10, clock=lambda: now["t"])
    key = store.put(_post())
    now["t"] = 109.0
    assert store.get(key) is not None
    now["t"] = 110.0
    assert store.get(key) is None
    assert len(store) == 0


def test_oldest_entry_evicted_when_full():
    store = ResultStore(max_entries=2)
    first = store.put(_post("1"))
    second = store.put(_post("2"))
    third = store.put(_post("3"))
    assert store.get(first) is None
    assert store.get(second) is not None
    assert store.get(third) is not None
    assert len(store) == 2


def test_pop_discards_entry():
    store = ResultStore()
    key = store.put(_post())
    assert store.pop(key) is not None
    assert store.pop(key) is None
    assert store.get(key) is None
