"""Scripted stand-ins for the generation and search services."""

import itertools
import json
import re
import threading

from content_pipeline.errors import ExternalCallError
from content_pipeline.validation.structured_output import StructuredOutputValidator


BRIEF_INPUTS = {
    "business_context": "Northwind sells data-quality monitoring to retailers",
    "target_audience": "Heads of retail operations",
    "marketing_goals": "Generate demo requests",
    "articles_count": 1,
    "linkedin_posts_count": 2,
    "social_posts_count": 3,
    "cta_type": "download_whitepaper",
    "cta_url": "https://example.com/whitepaper",
    "selected_document_id": "doc-1",
}

TITLE_WORDS = ["Inventory", "Shrinkage", "Forecasting", "Loyalty", "Pricing", "Returns", "Staffing", "Sourcing"]


def brief_record():
    return {
        "executive_summary": "Bad inventory data costs mid-market retailers millions.",
        "target_persona": {
            "demographic": "Operations leaders",
            "psychographic": "Pragmatic, metrics driven",
            "pain_points": ["stockouts"],
            "motivations": ["margin"],
        },
        "campaign_objectives": ["Drive whitepaper downloads"],
        "key_messages": ["Clean data pays for itself"],
        "content_strategy": {"articles": "One deep dive", "linkedin_posts": "Series", "social_posts": "Teasers"},
        "call_to_action": {"type": "download_whitepaper", "message": "Download the report", "url": None},
    }


def theme_batch(start, count=3, bullets=3):
    themes = []
    for i in range(start, start + count):
        word = TITLE_WORDS[i % len(TITLE_WORDS)]
        themes.append({
            "id": f"theme-{i}",
            "title": f"{word} Blind Spots {i}",
            "description": f"Angle number {i}",
            "why_it_works": [f"reason {n}" for n in range(bullets)],
            "detailed_description": "Plays out across every channel.",
        })
    return {"themes": themes, "search_summary": "searched the whitepaper"}


def dossier_record(concepts=3):
    return {
        "key_findings": [{"claim": "Stockouts cost 4% of revenue", "evidence": "p. 3", "confidence": "high"}],
        "suggested_concepts": [
            {
                "title": f"Concept {i}",
                "angle": "cost of inaction",
                "rationale": "backed by survey data",
                "evidence_refs": ["chunk-1"],
                "content_direction": "lead with the number",
            }
            for i in range(concepts)
        ],
        "summary": "Inventory data quality is a margin problem.",
    }


def _requested_count(messages):
    text = "\n".join(m["content"] for m in messages)
    match = re.search(r"Number of items requested: (\d+)", text) or re.search(r"Keep exactly (\d+) item", text)
    return int(match.group(1))


def article_batch(count, edited=False):
    data = {
        "articles": [
            {
                "headline": f"Headline {i}",
                "subheadline": "Sub",
                "body": "Body text",
                "word_count": 900,
                "key_takeaways": ["one"],
                "seo_keywords": ["inventory"],
                "call_to_action": "Download",
            }
            for i in range(count)
        ]
    }
    return _edited(data) if edited else data


def linkedin_batch(count, edited=False):
    data = {
        "posts": [
            {"hook": "Hook", "body": "Body", "call_to_action": "Download", "hashtags": ["#retail"], "character_count": 300}
            for _ in range(count)
        ],
        "campaign_narrative": "A four week arc",
    }
    return _edited(data) if edited else data


def social_batch(count, edited=False):
    platforms = ["twitter", "facebook", "instagram"]
    data = {
        "posts": [
            {
                "platform": platforms[i % 3],
                "content": "Short post",
                "hashtags": ["#data"],
                "character_count": 120,
                "visual_suggestion": "Bar chart",
            }
            for i in range(count)
        ],
        "posting_strategy": "Stagger across the week",
    }
    return _edited(data) if edited else data


def _edited(data):
    return dict(data, editing_notes="Tightened the hooks", quality_score=8)


def fenced(data):
    return f"Here you go:\n```json\n{json.dumps(data)}\n```"


def default_handlers():
    batch_numbers = itertools.count(0, 3)
    return {
        "MarketingBrief": lambda stage, messages: fenced(brief_record()),
        "SearchPlan": {"queries": ["inventory data cost", "stockout impact"]},
        "RoundAnalysis": {"analysis": "Enough material", "next_queries": []},
        "ThemeBatch": lambda stage, messages: fenced(theme_batch(next(batch_numbers))),
        "ResearchDossier": lambda stage, messages: dossier_record(),
        "ArticleBatch": lambda stage, messages: article_batch(_requested_count(messages)),
        "LinkedInBatch": lambda stage, messages: linkedin_batch(_requested_count(messages)),
        "SocialBatch": lambda stage, messages: social_batch(_requested_count(messages)),
        "EditedArticleBatch": lambda stage, messages: article_batch(_requested_count(messages), edited=True),
        "EditedLinkedInBatch": lambda stage, messages: linkedin_batch(_requested_count(messages), edited=True),
        "EditedSocialBatch": lambda stage, messages: social_batch(_requested_count(messages), edited=True),
    }


class ScriptedGeneration:
    """
    Answers generate_structured calls by schema name.

    A handler is a value (dict or text), a callable (stage, messages) -> value,
    a list of those consumed in order (the last one repeats), or an exception
    to raise. Text still goes through the real validator.
    """

    def __init__(self, **handlers):
        self.handlers = default_handlers()
        self.handlers.update(handlers)
        self.calls = []
        self.messages = []
        self.validator = StructuredOutputValidator()
        self._lock = threading.Lock()

    def generate_structured(self, stage, messages, schema):
        name = schema.__name__
        with self._lock:
            self.calls.append((stage, name))
            self.messages.append((name, messages))
            handler = self.handlers[name]
            if isinstance(handler, list):
                handler = handler.pop(0) if len(handler) > 1 else handler[0]

        if callable(handler):
            handler = handler(stage, messages)
        if isinstance(handler, Exception):
            raise handler
        text = handler if isinstance(handler, str) else json.dumps(handler)
        return self.validator.parse(text, schema)

    def count(self, schema_name):
        return sum(1 for _, name in self.calls if name == schema_name)


class FakeSearch:
    """Returns two hits per query unless told otherwise."""

    def __init__(self, hits_for=None, fail_on=()):
        self.hits_for = hits_for
        self.fail_on = set(fail_on)
        self.calls = []

    def search(self, query, partition_id, top_k=10, top_n=None):
        self.calls.append({"query": query, "partition_id": partition_id, "top_k": top_k, "top_n": top_n})
        if query in self.fail_on:
            raise ExternalCallError("vector_search", "read timed out")
        if self.hits_for is not None:
            return self.hits_for(query)
        slug = query.replace(" ", "-")
        return [
            {"id": f"{slug}-{i}", "score": 0.9 - i * 0.1, "text": f"Snippet {i} about {query}", "category": "stats"}
            for i in range(2)
        ]
