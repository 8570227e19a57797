import asyncio
import time
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Optional

import httpx
from google import genai
from google.genai import errors as genai_errors
from google.genai import types as genai_types

from prompt_enhancer.config import Settings
from prompt_enhancer.services.errors import ConfigurationError, ServiceError, TransportError

logger = logging.getLogger(__name__)

USER_MESSAGE_TEMPLATE = (
    "Please optimize this AI prompt for maximum effectiveness:\n\n"
    "{content}\n\n"
    "Provide only the optimized prompt without explanations."
)


@dataclass(frozen=True)
class Completion:
    text: str
    response_time_ms: int


class CompletionClient(ABC):
    """Narrow interface to the external text completion service."""

    @property
    @abstractmethod
    def is_configured(self) -> bool:
        """Whether credentials are present so that calls can be attempted."""

    @abstractmethod
    async def complete(self, system_instructions: str, user_content: str) -> Completion:
        """
        Generate text for the given instructions and content.

        Raises:
            ConfigurationError: The service is not set up
            TransportError: Network failure or timeout
            ServiceError: The service returned an error or an empty answer
        """


class GeminiCompletionClient(CompletionClient):
    """
    Completion client backed by the Gemini API.
    Makes exactly one bounded call per request; retries are left to callers.
    """

    def __init__(self, settings: Settings, client: Optional[Any] = None):
        self.model_name = settings.model_name
        self.max_output_tokens = settings.max_output_tokens
        self.temperature = settings.temperature
        self.timeout_seconds = settings.timeout_seconds
        self.client = client
        if self.client is None and settings.api_key:
            self.client = genai.Client(api_key=settings.api_key)
            logger.info("Gemini client initialized successfully (completion_client).")

    @property
    def is_configured(self) -> bool:
        return self.client is not None

    async def complete(self, system_instructions: str, user_content: str) -> Completion:
        if self.client is None:
            raise ConfigurationError("GEMINI_API_KEY is not configured")

        config = genai_types.GenerateContentConfig(
            system_instruction=system_instructions,
            max_output_tokens=self.max_output_tokens,
            temperature=self.temperature,
        )
        start = time.perf_counter()
        try:
            response = await asyncio.wait_for(
                self.client.aio.models.generate_content(
                    model=self.model_name,
                    contents=USER_MESSAGE_TEMPLATE.format(content=user_content),
                    config=config,
                ),
                timeout=self.timeout_seconds,
            )
        except asyncio.TimeoutError as e:
            raise TransportError(f"Completion call timed out after {self.timeout_seconds}s") from e
        except genai_errors.APIError as e:
            raise ServiceError("Completion service returned an error", status_code=e.code, body=e.message) from e
        except (httpx.HTTPError, OSError) as e:
            raise TransportError(f"Completion service unreachable: {str(e)}") from e
        elapsed_ms = int((time.perf_counter() - start) * 1000)

        text = (response.text or "").strip() if response is not None else ""
        if not text:
            raise ServiceError("No content received from completion service")

        logger.info(f"Completion received from {self.model_name} in {elapsed_ms}ms")
        return Completion(text=text, response_time_ms=elapsed_ms)
