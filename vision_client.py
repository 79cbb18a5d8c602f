"""
OpenAI multimodal client used by the vision extractor.
"""
import base64
import json
import logging
import time
from typing import Any, Optional, Protocol, Sequence

from openai import APIConnectionError, APIError, APITimeoutError, InternalServerError, OpenAI, RateLimitError

from config import VisionConfig
from models import BatchError

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = "Tu es un expert en analyse de scripts de théâtre. Retourne uniquement du JSON valide."

# Worth another attempt after a pause
_TRANSIENT_ERRORS = (RateLimitError, APITimeoutError, APIConnectionError, InternalServerError)


class JsonVisionClient(Protocol):
    """Anything that can answer a prompt about page images with JSON text."""

    def complete_json(self, prompt: str, images: Sequence[bytes], detail: str = "low") -> str:
        ...


def image_data_url(png_bytes: bytes) -> str:
    return "data:image/png;base64," + base64.b64encode(png_bytes).decode("ascii")


class VisionClient:
    """
    Chat-completions wrapper sending page images with a JSON-only instruction.

    Transient provider errors are retried with exponential backoff; anything
    still failing is raised as BatchError so callers can skip the batch.
    """

    def __init__(
        self,
        client: OpenAI,
        model: str,
        max_retries: int = 2,
        retry_backoff: float = 2.0
    ):
        self._client = client
        self.model = model
        self.max_retries = max_retries
        self.retry_backoff = retry_backoff

    @classmethod
    def from_config(cls, config: VisionConfig) -> "VisionClient":
        api_key = config.resolved_api_key()
        if not api_key:
            raise ValueError("OpenAI API key missing: set OPENAI_API_KEY")
        return cls(
            OpenAI(api_key=api_key, timeout=config.request_timeout),
            model=config.model,
            max_retries=config.max_retries,
            retry_backoff=config.retry_backoff
        )

    def complete_json(self, prompt: str, images: Sequence[bytes], detail: str = "low") -> str:
        content: list[dict[str, Any]] = [{"type": "text", "text": prompt}]
        for png in images:
            content.append({
                "type": "image_url",
                "image_url": {"url": image_data_url(png), "detail": detail}
            })
        messages = [
            {"role": "system", "content": SYSTEM_PROMPT},
            {"role": "user", "content": content},
        ]

        delay = self.retry_backoff
        for attempt in range(1, self.max_retries + 2):
            try:
                response = self._client.chat.completions.create(
                    model=self.model,
                    messages=messages,
                    response_format={"type": "json_object"},
                    temperature=0
                )
            except _TRANSIENT_ERRORS as e:
                if attempt > self.max_retries:
                    raise BatchError(f"Provider error after {attempt} attempts: {e}") from e
                logger.warning("Transient provider error (attempt %d): %s, retrying in %.1fs",
                               attempt, e, delay)
                time.sleep(delay)
                delay *= 2
                continue
            except APIError as e:
                raise BatchError(f"Provider rejected request: {e}") from e

            if not response.choices:
                raise BatchError("No choices in response")
            result = response.choices[0].message.content
            if not result:
                raise BatchError("Empty response")
            return result

        raise BatchError("Retries exhausted")


def parse_json_payload(text: Optional[str]) -> dict[str, Any]:
    """
    Decode a model's JSON answer, tolerating markdown code fences.

    Raises:
        BatchError: if the text is empty, not JSON, or not a JSON object
    """
    if not text or not text.strip():
        raise BatchError("Empty response")
    result = text.strip()

    if result.startswith('```'):
        # Extract content between ```
        parts = result.split('```')
        if len(parts) >= 2:
            result = parts[1]
            if result.startswith('json'):
                result = result[4:]
            result = result.strip()

    try:
        payload = json.loads(result)
    except json.JSONDecodeError as e:
        raise BatchError(f"Invalid JSON: {e}") from e

    if not isinstance(payload, dict):
        raise BatchError(f"Expected a JSON object, got {type(payload).__name__}")
    return payload
