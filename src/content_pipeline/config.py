"""
Pipeline configuration.

config.yaml is read with yaml.safe_load, secrets come from the environment
(.env via python-dotenv), and everything is frozen into dataclasses so the
graph is built once from a value nobody can mutate afterwards.
"""

import os
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional

import yaml
from dotenv import load_dotenv


STAGES = (
    "brief",
    "themes",
    "research",
    "article_writer",
    "linkedin_writer",
    "social_writer",
    "article_editor",
    "linkedin_editor",
    "social_editor",
)


@dataclass(frozen=True)
class ModelSettings:
    name: str = "gpt-4o-mini"
    temperature: float = 0.7
    timeout: float = 120.0
    max_retries: int = 2
    structured_output: bool = False


@dataclass(frozen=True)
class SearchSettings:
    base_url: str = "http://localhost:8000"
    timeout: float = 15.0
    min_request_interval: float = 0.5
    # document id -> vector namespace, for documents indexed under another name
    partitions: Mapping[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class RetrievalSettings:
    max_searches: int = 12
    top_k: int = 10
    top_n: Optional[int] = 5
    top_m: int = 30
    max_follow_ups: int = 4


@dataclass(frozen=True)
class ThemeSettings:
    count: int = 3
    bullet_count: int = 3


@dataclass(frozen=True)
class PipelineConfig:
    """Immutable configuration for one orchestrator instance."""

    models: Mapping[str, ModelSettings] = field(default_factory=dict)
    default_model: ModelSettings = field(default_factory=ModelSettings)
    search: SearchSettings = field(default_factory=SearchSettings)
    theme_retrieval: RetrievalSettings = field(default_factory=RetrievalSettings)
    research_retrieval: RetrievalSettings = field(
        default_factory=lambda: RetrievalSettings(top_k=12, top_n=8, top_m=40)
    )
    themes: ThemeSettings = field(default_factory=ThemeSettings)
    concept_count: int = 3
    max_workers: int = 3
    pause_after_research: bool = True

    def model_for(self, stage: str) -> ModelSettings:
        """Model settings for a stage, falling back to the default entry."""
        return self.models.get(stage, self.default_model)

    def partition_for(self, document_id: str) -> str:
        return self.search.partitions.get(document_id, document_id)

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "PipelineConfig":
        """
        Build a config from the parsed YAML mapping.

        Args:
            data: Parsed config.yaml contents (missing sections use defaults)

        Returns:
            Frozen PipelineConfig

        Raises:
            ValueError: If a value is out of range
        """
        data = data or {}

        models_section = dict(data.get("models") or {})
        default_model = _model_settings(models_section.pop("default", None), ModelSettings())
        models = {}
        for stage, raw in models_section.items():
            if stage not in STAGES:
                raise ValueError(f"Unknown model stage '{stage}' (expected one of {', '.join(STAGES)})")
            models[stage] = _model_settings(raw, default_model)

        search_raw = data.get("search") or {}
        search = SearchSettings(
            base_url=os.getenv("VECTOR_SEARCH_URL", search_raw.get("base_url", SearchSettings.base_url)),
            timeout=float(search_raw.get("timeout", SearchSettings.timeout)),
            min_request_interval=float(
                search_raw.get("min_request_interval", SearchSettings.min_request_interval)
            ),
            partitions=dict(search_raw.get("partitions") or {}),
        )

        retrieval_raw = data.get("retrieval") or {}
        theme_retrieval = _retrieval_settings(retrieval_raw.get("themes"), RetrievalSettings())
        research_retrieval = _retrieval_settings(
            retrieval_raw.get("research"),
            RetrievalSettings(top_k=12, top_n=8, top_m=40),
        )

        themes_raw = data.get("themes") or {}
        themes = ThemeSettings(
            count=int(themes_raw.get("count", ThemeSettings.count)),
            bullet_count=int(themes_raw.get("bullet_count", ThemeSettings.bullet_count)),
        )

        research_raw = data.get("research") or {}
        fanout_raw = data.get("fanout") or {}
        pipeline_raw = data.get("pipeline") or {}

        config = cls(
            models=models,
            default_model=default_model,
            search=search,
            theme_retrieval=theme_retrieval,
            research_retrieval=research_retrieval,
            themes=themes,
            concept_count=int(research_raw.get("concept_count", 3)),
            max_workers=int(fanout_raw.get("max_workers", 3)),
            pause_after_research=bool(pipeline_raw.get("pause_after_research", True)),
        )
        config.validate()
        return config

    def validate(self) -> None:
        if self.themes.count < 1:
            raise ValueError("themes.count must be at least 1")
        if self.themes.bullet_count < 1:
            raise ValueError("themes.bullet_count must be at least 1")
        if self.concept_count < 1:
            raise ValueError("research.concept_count must be at least 1")
        if self.max_workers < 1:
            raise ValueError("fanout.max_workers must be at least 1")
        if self.search.min_request_interval < 0:
            raise ValueError("search.min_request_interval cannot be negative")
        for name, settings in (("themes", self.theme_retrieval), ("research", self.research_retrieval)):
            if settings.max_searches < 1:
                raise ValueError(f"retrieval.{name}.max_searches must be at least 1")
            if settings.top_m < 1 or settings.top_k < 1:
                raise ValueError(f"retrieval.{name}.top_k and top_m must be at least 1")
            if settings.top_n is not None and settings.top_n > settings.top_k:
                raise ValueError(f"retrieval.{name}.top_n cannot exceed top_k")


def _model_settings(raw: Optional[Dict[str, Any]], base: ModelSettings) -> ModelSettings:
    raw = raw or {}
    return ModelSettings(
        name=raw.get("name", base.name),
        temperature=float(raw.get("temperature", base.temperature)),
        timeout=float(raw.get("timeout", base.timeout)),
        max_retries=int(raw.get("max_retries", base.max_retries)),
        structured_output=bool(raw.get("structured_output", base.structured_output)),
    )


def _retrieval_settings(raw: Optional[Dict[str, Any]], base: RetrievalSettings) -> RetrievalSettings:
    raw = raw or {}
    top_n = raw.get("top_n", base.top_n)
    return RetrievalSettings(
        max_searches=int(raw.get("max_searches", base.max_searches)),
        top_k=int(raw.get("top_k", base.top_k)),
        top_n=int(top_n) if top_n is not None else None,
        top_m=int(raw.get("top_m", base.top_m)),
        max_follow_ups=int(raw.get("max_follow_ups", base.max_follow_ups)),
    )


def load_config(path: str = "config.yaml") -> PipelineConfig:
    """Load environment variables and the YAML config file."""
    load_dotenv()

    with open(path, "r") as f:
        data = yaml.safe_load(f)

    return PipelineConfig.from_dict(data)
