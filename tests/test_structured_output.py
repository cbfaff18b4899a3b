import json

import pytest

from content_pipeline.errors import ParseError
from content_pipeline.validation.schemas import (
    ArticleBatch,
    EditedSocialBatch,
    ResearchDossier,
    SearchPlan,
    theme_batch_schema,
)
from content_pipeline.validation.structured_output import (
    StructuredOutputValidator,
    extract_json_block,
    recover_balanced_object,
)

from helpers import article_batch, dossier_record, social_batch, theme_batch


def test_closed_fence_parses_the_fenced_value() -> None:
    text = "Sure! Here is the plan:\n```json\n{\"queries\": [\"a b\", \"c d\"]}\n```\nLet me know."
    plan = StructuredOutputValidator().parse(text, SearchPlan)
    assert plan.queries == ["a b", "c d"]


def test_plain_fence_without_language_tag() -> None:
    text = "```\n" + json.dumps({"queries": ["one two", "three four"]}) + "\n```"
    assert extract_json_block(text) == json.dumps({"queries": ["one two", "three four"]})


def test_unclosed_fence_recovers_the_complete_object() -> None:
    payload = json.dumps(dossier_record())
    # model output cut off after the object, before the closing fence
    text = "```json\n" + payload + "\n\nNotes: the evidence {was strong"
    dossier = StructuredOutputValidator().parse(text, ResearchDossier)
    assert dossier.summary.startswith("Inventory")


def test_truncated_object_with_no_closing_fence_is_a_parse_error() -> None:
    payload = json.dumps(dossier_record())
    text = "```json\n" + payload[: len(payload) // 2]
    with pytest.raises(ParseError) as excinfo:
        StructuredOutputValidator().parse(text, ResearchDossier)
    assert excinfo.value.raw_text == text
    assert excinfo.value.schema_name == "ResearchDossier"


def test_braces_inside_strings_do_not_confuse_recovery() -> None:
    text = 'prefix {"analysis": "use {curly} braces \\" and }", "next_queries": []} trailing }'
    assert recover_balanced_object(text) == '{"analysis": "use {curly} braces \\" and }", "next_queries": []}'


def test_unfenced_text_with_prose_is_extracted() -> None:
    text = 'I found these: {"queries": ["x y", "z w"]} hope that helps'
    assert StructuredOutputValidator().parse(text, SearchPlan).queries == ["x y", "z w"]


def test_malformed_json_raises_parse_error_with_raw_text() -> None:
    text = '```json\n{"queries": ["a", "b",]}\n```'
    with pytest.raises(ParseError) as excinfo:
        StructuredOutputValidator().parse(text, SearchPlan)
    assert excinfo.value.raw_text == text


def test_no_json_at_all_is_a_parse_error() -> None:
    with pytest.raises(ParseError):
        StructuredOutputValidator().parse("I could not find anything useful.", SearchPlan)


def test_empty_response_is_a_parse_error() -> None:
    with pytest.raises(ParseError):
        StructuredOutputValidator().parse("   ", SearchPlan)


def test_wrong_bullet_count_is_rejected() -> None:
    data = theme_batch(0, bullets=2)
    with pytest.raises(ParseError):
        StructuredOutputValidator().parse(json.dumps(data), theme_batch_schema(3))


def test_bullet_count_is_configurable() -> None:
    data = theme_batch(0, bullets=5)
    batch = StructuredOutputValidator().parse(json.dumps(data), theme_batch_schema(5))
    assert all(len(theme.why_it_works) == 5 for theme in batch.themes)


def test_duplicate_theme_ids_are_rejected() -> None:
    data = theme_batch(0)
    data["themes"][1]["id"] = data["themes"][0]["id"]
    with pytest.raises(ParseError) as excinfo:
        StructuredOutputValidator().parse(json.dumps(data), theme_batch_schema(3))
    assert "unique" in excinfo.value.reason


def test_enum_membership_is_enforced() -> None:
    data = social_batch(2, edited=True)
    data["posts"][0]["platform"] = "myspace"
    with pytest.raises(ParseError):
        StructuredOutputValidator().parse(json.dumps(data), EditedSocialBatch)


def test_strict_types_reject_stringly_numbers() -> None:
    data = social_batch(1, edited=True)
    data["posts"][0]["character_count"] = "120"
    with pytest.raises(ParseError):
        StructuredOutputValidator().parse(json.dumps(data), EditedSocialBatch)


def test_quality_score_must_be_between_one_and_ten() -> None:
    data = social_batch(1, edited=True)
    data["quality_score"] = 11
    with pytest.raises(ParseError):
        StructuredOutputValidator().parse(json.dumps(data), EditedSocialBatch)


def test_validate_data_accepts_structured_fast_path_output() -> None:
    plan = StructuredOutputValidator().validate_data({"queries": ["a b", "c d"]}, SearchPlan)
    assert plan.queries == ["a b", "c d"]


def test_validate_data_rejects_nonconforming_output() -> None:
    with pytest.raises(ParseError):
        StructuredOutputValidator().validate_data({"queries": ["only one"]}, SearchPlan)


def test_code_fences_inside_a_fenced_article_body_are_kept() -> None:
    data = article_batch(1)
    data["articles"][0]["body"] = "Run this:\n```sql\nSELECT 1;\n```\nDone."
    text = "Here you go:\n```json\n" + json.dumps(data) + "\n```\nAnything else?"

    batch = StructuredOutputValidator().parse(text, ArticleBatch)

    assert batch.articles[0].body == "Run this:\n```sql\nSELECT 1;\n```\nDone."


def test_backticks_inside_unfenced_json_are_not_a_fence() -> None:
    data = article_batch(1)
    data["articles"][0]["body"] = "Use ``` for code"

    batch = StructuredOutputValidator().parse(json.dumps(data), ArticleBatch)

    assert batch.articles[0].body == "Use ``` for code"


def test_unclosed_fence_ignores_backticks_inside_strings() -> None:
    data = article_batch(1)
    data["articles"][0]["body"] = "```python\nprint(1)\n```"
    text = "```json\n" + json.dumps(data) + "\n\nI hope this helps"

    batch = StructuredOutputValidator().parse(text, ArticleBatch)

    assert batch.articles[0].body == "```python\nprint(1)\n```"


@pytest.mark.parametrize("tag", ["JSON", "Json", "javascript", "json "])
def test_any_language_tag_on_the_opening_fence_is_stripped(tag) -> None:
    text = "```" + tag + "\n" + json.dumps({"queries": ["a b", "c d"]}) + "\n```"
    assert StructuredOutputValidator().parse(text, SearchPlan).queries == ["a b", "c d"]
