import json
import logging
import re
from abc import ABC, abstractmethod

from google import genai
from google.genai import errors
from google.genai import types

from biaswatch.errors import ConfigError, UpstreamError

logger = logging.getLogger(__name__)

_FENCE_RE = re.compile(r'^```(?:json)?\s*(.*?)\s*```$', re.S)


def parse_json_payload(raw_text: str):
    """
    Parse the JSON a completion returned. Models occasionally wrap it in a
    markdown code fence, which is stripped first.
    """
    if not raw_text or not raw_text.strip():
        raise UpstreamError("Empty response from completion service")
    text = raw_text.strip()
    fenced = _FENCE_RE.match(text)
    if fenced:
        text = fenced.group(1)
    try:
        return json.loads(text)
    except json.JSONDecodeError as e:
        logger.error(f"Failed to parse completion response: {e}")
        raise UpstreamError(f"Invalid JSON response: {e}") from e


class CompletionService(ABC):
    """Prompt in, JSON-bearing text out."""

    @abstractmethod
    def complete_json(self, prompt: str, max_output_tokens: int = 2000) -> str:
        raise NotImplementedError


class GeminiCompletionService(CompletionService):
    def __init__(self, api_key, model="gemini-2.0-flash"):
        if not api_key:
            raise ConfigError("Google AI API key is not configured")
        self.client = genai.Client(api_key=api_key)
        self.model = model

    def complete_json(self, prompt: str, max_output_tokens: int = 2000) -> str:
        logger.debug(f"Sending prompt to {self.model} ({len(prompt)} chars)")
        try:
            response = self.client.models.generate_content(
                model=self.model,
                contents=prompt,
                config=types.GenerateContentConfig(
                    response_mime_type="application/json",
                    max_output_tokens=max_output_tokens,
                ),
            )
        except errors.APIError as e:
            logger.error(f"Gemini API error: {e}")
            raise UpstreamError(f"Completion service error: {e}") from e

        if not response.text:
            raise UpstreamError("Empty response from Gemini")
        return response.text
