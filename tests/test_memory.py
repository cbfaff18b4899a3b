from content_pipeline.agents.memory import ConceptMemory, normalize_query

from helpers import theme_batch


def test_fold_appends_without_mutating_inputs() -> None:
    previous = [{"id": "old", "title": "Old"}]
    batch = theme_batch(0)["themes"]

    folded = ConceptMemory.fold(previous, batch)

    assert len(folded) == 4
    assert len(previous) == 1
    assert folded[1] == batch[0]
    assert folded[1] is not batch[0]


def test_repeated_folds_lose_nothing() -> None:
    previous = []
    for k in range(1, 4):
        previous = ConceptMemory.fold(previous, theme_batch(k * 3)["themes"])
        assert len(previous) == k * 3


def test_avoid_titles_keeps_order_and_drops_duplicates() -> None:
    memory = ConceptMemory(previous_themes=[
        {"title": "B side"}, {"title": "A side"}, {"title": "B side"},
    ])
    assert memory.avoid_titles() == ["B side", "A side"]


def test_explored_queries_are_normalized() -> None:
    memory = ConceptMemory(search_history=[
        {"query": "Stockout  Cost"}, {"query": "stockout cost"}, {"query": "pricing"},
    ])
    assert memory.explored_queries() == ["stockout cost", "pricing"]
    assert normalize_query("  A   B ") == "a b"


def test_render_for_prompt_is_empty_without_history() -> None:
    assert ConceptMemory().render_for_prompt() == ""


def test_render_for_prompt_lists_titles_and_queries() -> None:
    memory = ConceptMemory(
        previous_themes=[{"title": "The Hidden Cost of Stockouts"}],
        search_history=[{"query": "stockout cost"}],
    )
    rendered = memory.render_for_prompt()
    assert "- The Hidden Cost of Stockouts" in rendered
    assert "- stockout cost" in rendered


def test_find_repeats_catches_exact_and_near_duplicates() -> None:
    memory = ConceptMemory(previous_themes=[
        {"title": "The Hidden Cost of Stockouts"},
        {"title": "Loyalty Programs That Actually Work"},
    ])
    new_themes = [
        {"title": "the hidden cost of stockouts"},
        {"title": "Hidden Stockouts Cost"},
        {"title": "Pricing Agility for Small Chains"},
    ]

    repeats = memory.find_repeats(new_themes)

    assert [r["title"] for r in repeats] == ["the hidden cost of stockouts", "Hidden Stockouts Cost"]
    assert all(r["matches"] == "The Hidden Cost of Stockouts" for r in repeats)


def test_from_state_reads_previous_themes_and_history() -> None:
    memory = ConceptMemory.from_state({
        "previous_themes": theme_batch(0)["themes"],
        "search_history": [{"query": "q"}],
    })
    stats = memory.get_statistics()
    assert stats["previous_themes"] == 3
    assert stats["searches"] == 1
