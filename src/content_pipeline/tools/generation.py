"""
Generation Service

Thin adapter over LangChain's ChatOpenAI. Stages hand it role/content
messages and a schema; it returns a validated record. Every call carries the
stage's timeout, and any provider failure surfaces as ExternalCallError.
"""

import logging
import threading
from typing import Dict, List, Optional, Type

from langchain_core.messages import AIMessage, BaseMessage, HumanMessage, SystemMessage
from langchain_openai import ChatOpenAI

from ..config import PipelineConfig
from ..errors import ExternalCallError
from ..validation.structured_output import ModelT, StructuredOutputValidator


_ROLE_TO_MESSAGE = {
    "system": SystemMessage,
    "user": HumanMessage,
    "assistant": AIMessage,
}


def to_langchain_messages(messages: List[Dict[str, str]]) -> List[BaseMessage]:
    """Convert [{"role", "content"}] dicts into LangChain message objects."""
    converted = []
    for message in messages:
        role = message.get("role", "user")
        if role not in _ROLE_TO_MESSAGE:
            raise ValueError(f"Unsupported message role: {role}")
        converted.append(_ROLE_TO_MESSAGE[role](content=message["content"]))
    return converted


class GenerationService:
    """
    Chat-model access for every pipeline stage.

    Models are created lazily, one per stage, from the stage's ModelSettings.
    Parallel channel tasks share one service, so the cache fill is locked.
    """

    def __init__(self, config: PipelineConfig, validator: Optional[StructuredOutputValidator] = None):
        self.config = config
        self.validator = validator or StructuredOutputValidator()
        self.logger = logging.getLogger("tools.generation")
        self._models: Dict[str, ChatOpenAI] = {}
        self._models_lock = threading.Lock()

    def _model(self, stage: str) -> ChatOpenAI:
        with self._models_lock:
            if stage not in self._models:
                settings = self.config.model_for(stage)
                self._models[stage] = ChatOpenAI(
                    model=settings.name,
                    temperature=settings.temperature,
                    timeout=settings.timeout,
                    max_retries=settings.max_retries,
                )
            return self._models[stage]

    def complete(self, stage: str, messages: List[Dict[str, str]]) -> str:
        """
        Run one chat completion.

        Args:
            stage: Stage name used to pick model settings
            messages: Ordered role/content messages

        Returns:
            The response text

        Raises:
            ExternalCallError: If the provider call fails or times out
        """
        self.logger.debug(f"[{stage}] completion with {len(messages)} message(s)")
        try:
            response = self._model(stage).invoke(to_langchain_messages(messages))
        except Exception as e:
            self.logger.error(f"[{stage}] generation failed: {e}")
            raise ExternalCallError("generation", str(e)) from e

        content = response.content
        if isinstance(content, list):
            # Some providers return content blocks instead of a plain string
            content = "".join(
                block.get("text", "") if isinstance(block, dict) else str(block)
                for block in content
            )
        return content

    def complete_structured(self, stage: str, messages: List[Dict[str, str]], schema: Type[ModelT]):
        """Schema-constrained fast path; the result still goes through the validator."""
        try:
            structured = self._model(stage).with_structured_output(schema)
            return structured.invoke(to_langchain_messages(messages))
        except Exception as e:
            self.logger.error(f"[{stage}] structured generation failed: {e}")
            raise ExternalCallError("generation", str(e)) from e

    def generate_structured(
        self,
        stage: str,
        messages: List[Dict[str, str]],
        schema: Type[ModelT],
    ) -> ModelT:
        """
        Generate and validate a record for a stage.

        Uses the provider's structured output when the stage enables it,
        otherwise parses the text response.

        Raises:
            ExternalCallError: Provider failure
            ParseError: Output does not conform to the schema
        """
        if self.config.model_for(stage).structured_output:
            data = self.complete_structured(stage, messages, schema)
            return self.validator.validate_data(data, schema)

        text = self.complete(stage, messages)
        return self.validator.parse(text, schema)
