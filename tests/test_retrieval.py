import pytest

from content_pipeline.agents.memory import ConceptMemory
from content_pipeline.agents.retrieval import EvidenceRetrievalLoop, consolidate_evidence
from content_pipeline.config import RetrievalSettings
from content_pipeline.errors import ExhaustionError, ExternalCallError, ParseError

from helpers import FakeSearch, ScriptedGeneration


def _loop(generation, search, **settings):
    return EvidenceRetrievalLoop(generation, search, RetrievalSettings(**settings), stage="themes")


def _run(loop, memory=None):
    return loop.run("find angles", "brief context", "doc-1", memory or ConceptMemory())


def _endless_analysis():
    counter = iter(range(1000))

    def analysis(stage, messages):
        n = next(counter)
        return {"analysis": "keep going", "next_queries": [f"follow up {n} a", f"follow up {n} b"]}

    return analysis


def test_single_round_stops_when_analysis_proposes_nothing() -> None:
    generation = ScriptedGeneration()
    search = FakeSearch()

    result = _run(_loop(generation, search))

    assert [call["query"] for call in search.calls] == ["inventory data cost", "stockout impact"]
    assert result.searches_issued == 2
    assert generation.count("SearchPlan") == 1
    assert generation.count("RoundAnalysis") == 1
    assert all(entry["analysis"] == "Enough material" for entry in result.search_log)


def test_never_exceeds_search_cap() -> None:
    generation = ScriptedGeneration(RoundAnalysis=_endless_analysis())
    search = FakeSearch()

    result = _run(_loop(generation, search, max_searches=5))

    assert len(search.calls) == 5
    assert result.searches_issued == 5
    assert len(result.search_log) == 5


def test_analysis_is_skipped_once_the_cap_is_reached() -> None:
    generation = ScriptedGeneration(RoundAnalysis=_endless_analysis())
    search = FakeSearch()

    _run(_loop(generation, search, max_searches=4))

    # seed round: 2 searches + analysis; second round hits the cap, no analysis
    assert generation.count("RoundAnalysis") == 1


def test_follow_ups_are_capped_per_round() -> None:
    many = {"analysis": "lots", "next_queries": [f"idea number {i}" for i in range(10)]}
    generation = ScriptedGeneration(RoundAnalysis=[many, {"analysis": "done", "next_queries": []}])
    search = FakeSearch()

    _run(_loop(generation, search, max_searches=12, max_follow_ups=4))

    assert len(search.calls) == 2 + 4


def test_repeated_queries_are_not_reissued() -> None:
    repeat = {"analysis": "again", "next_queries": ["Inventory  Data COST", "new angle here"]}
    generation = ScriptedGeneration(RoundAnalysis=[repeat, {"analysis": "done", "next_queries": []}])
    search = FakeSearch()

    _run(_loop(generation, search))

    queries = [call["query"] for call in search.calls]
    assert queries == ["inventory data cost", "stockout impact", "new angle here"]


def test_failed_search_is_logged_and_skipped() -> None:
    generation = ScriptedGeneration()
    search = FakeSearch(fail_on={"inventory data cost"})

    result = _run(_loop(generation, search))

    failed = [entry for entry in result.search_log if entry["error"]]
    assert len(failed) == 1
    assert failed[0]["query"] == "inventory data cost"
    assert failed[0]["result_count"] == 0
    assert all(item["id"].startswith("stockout-impact") for item in result.evidence)


def test_zero_hits_everywhere_raises_exhaustion_without_synthesis() -> None:
    generation = ScriptedGeneration(RoundAnalysis=_endless_analysis())
    search = FakeSearch(hits_for=lambda query: [])

    with pytest.raises(ExhaustionError):
        _run(_loop(generation, search, max_searches=8))

    assert len(search.calls) == 8
    names = {name for _, name in generation.calls}
    assert names == {"SearchPlan", "RoundAnalysis"}


def test_every_search_failing_raises_exhaustion() -> None:
    generation = ScriptedGeneration()
    search = FakeSearch(fail_on={"inventory data cost", "stockout impact"})

    with pytest.raises(ExhaustionError):
        _run(_loop(generation, search))


def test_seed_failure_is_fatal() -> None:
    generation = ScriptedGeneration(SearchPlan="no json here")
    with pytest.raises(ParseError):
        _run(_loop(generation, FakeSearch()))


def test_analysis_generation_failure_is_fatal() -> None:
    generation = ScriptedGeneration(RoundAnalysis=ExternalCallError("generation", "timeout"))
    with pytest.raises(ExternalCallError):
        _run(_loop(generation, FakeSearch()))


def test_consolidation_dedups_sorts_and_truncates() -> None:
    def hits(query):
        # every query returns the same shared chunk plus one of its own
        return [
            {"id": "shared", "score": 0.5, "text": "shared", "category": ""},
            {"id": query, "score": len(query) / 100, "text": query, "category": ""},
        ]

    follow = {"analysis": "more", "next_queries": ["a much longer query text", "short q"]}
    generation = ScriptedGeneration(RoundAnalysis=[follow, {"analysis": "done", "next_queries": []}])

    result = _run(_loop(generation, FakeSearch(hits_for=hits), top_m=3))

    ids = [item["id"] for item in result.evidence]
    assert len(ids) == len(set(ids)) == 3
    scores = [item["score"] for item in result.evidence]
    assert scores == sorted(scores, reverse=True)
    assert ids[0] == "shared"


def test_consolidate_keeps_first_occurrence_and_first_seen_order_on_ties() -> None:
    items = [
        {"id": "a", "score": 0.5, "text": "first a"},
        {"id": "b", "score": 0.9, "text": "b"},
        {"id": "a", "score": 0.99, "text": "second a"},
        {"id": "c", "score": 0.5, "text": "c"},
    ]
    result = consolidate_evidence(items, top_m=10)
    assert [item["id"] for item in result] == ["b", "a", "c"]
    assert result[1]["text"] == "first a"


def test_search_uses_configured_ranking_sizes_and_partition() -> None:
    search = FakeSearch()
    _run(_loop(ScriptedGeneration(), search, top_k=12, top_n=8))
    assert all(call["top_k"] == 12 and call["top_n"] == 8 for call in search.calls)
    assert all(call["partition_id"] == "doc-1" for call in search.calls)


def test_memory_is_rendered_into_the_seed_prompt() -> None:
    generation = ScriptedGeneration()
    memory = ConceptMemory(
        previous_themes=[{"title": "The Hidden Cost of Stockouts"}],
        search_history=[{"query": "stockout cost"}],
    )

    _run(_loop(generation, FakeSearch()), memory)

    seed_messages = next(messages for name, messages in generation.messages if name == "SearchPlan")
    assert "The Hidden Cost of Stockouts" in seed_messages[1]["content"]
    assert "stockout cost" in seed_messages[1]["content"]
