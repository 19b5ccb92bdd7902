# medreview/llm/client.py
from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import List, Dict, Optional

from openai import OpenAI

from medreview.config import Settings, get_settings
from medreview.errors import ConfigurationError

logger = logging.getLogger(__name__)


class LLMClient(ABC):
    """
    Text-generation backend used for preliminary diagnoses.
    """

    @abstractmethod
    def chat(
        self,
        messages: List[Dict[str, str]],
        temperature: Optional[float] = None,
        model: Optional[str] = None,
    ) -> str:
        """
        messages: list of {"role": "user"|"system", "content": "..."}
        temperature/model: None means the client's configured default.
        returns: the generated text
        """
        ...


class OpenAILLMClient(LLMClient):
    """
    Talks to OPENAI_BASE_URL (any OpenAI-compatible endpoint).

    Model and temperature come from LLM_MODEL / LLM_TEMPERATURE. The SDK's
    own retries are switched off: a diagnosis request makes exactly one call.
    """

    def __init__(self, settings: Optional[Settings] = None):
        settings = settings or get_settings()
        if not settings.openai_api_key:
            raise ConfigurationError("OPENAI_API_KEY is not set")

        self.client = OpenAI(
            api_key=settings.openai_api_key,
            base_url=settings.openai_base_url,
            max_retries=0,
        )
        self.model = settings.llm_model
        self.temperature = settings.llm_temperature

    def chat(
        self,
        messages: List[Dict[str, str]],
        temperature: Optional[float] = None,
        model: Optional[str] = None,
    ) -> str:
        model_name = model or self.model
        completion = self.client.chat.completions.create(
            model=model_name,
            messages=messages,
            temperature=self.temperature if temperature is None else temperature,
        )
        if completion.usage is not None:
            logger.debug(
                "%s used %s prompt / %s completion tokens",
                model_name,
                completion.usage.prompt_tokens,
                completion.usage.completion_tokens,
            )
        return completion.choices[0].message.content or ""
