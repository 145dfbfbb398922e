import json
import logging
import re
import time
from typing import Any, Callable, Dict, Optional, Protocol

import google.generativeai as genai

logger = logging.getLogger(__name__)

_FENCE_OPEN = re.compile(r"^```[a-zA-Z]*\s*")
_FENCE_CLOSE = re.compile(r"\s*```$")
_JSON_BLOCK = re.compile(r"\{[\s\S]*\}")


class GenerationError(RuntimeError):
    """The model gave no usable answer after all attempts."""


class TextGenerator(Protocol):
    def generate_text(self, prompt: str) -> str: ...

    def generate_json(self, prompt: str) -> Dict[str, Any]: ...


def strip_fences(text: str) -> str:
    s = (text or "").strip()
    s = _FENCE_OPEN.sub("", s)
    s = _FENCE_CLOSE.sub("", s)
    return s.strip()


def extract_json(text: str) -> Dict[str, Any]:
    """Parse the model reply as JSON, falling back to the first {...} block."""
    s = strip_fences(text)
    try:
        data = json.loads(s)
    except ValueError:
        m = _JSON_BLOCK.search(s)
        if not m:
            raise ValueError("no JSON object in model response")
        data = json.loads(m.group(0))
    if not isinstance(data, dict):
        raise ValueError("model response is not a JSON object")
    return data


class GeminiClient:
    """
    Gemini text generation with bounded retries.
    Attempt n (1-based) that fails waits backoff_seconds * 2**n before the next one.
    """

    def __init__(
        self,
        api_key: str,
        model_name: str = "gemini-1.5-pro",
        max_attempts: int = 3,
        backoff_seconds: float = 1.0,
        model=None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        if model is None:
            genai.configure(api_key=api_key)
            model = genai.GenerativeModel(model_name)
        self.model = model
        self.model_name = model_name
        self.max_attempts = max(1, max_attempts)
        self.backoff_seconds = backoff_seconds
        self._sleep = sleep

    def _call(self, prompt: str) -> str:
        response = self.model.generate_content(prompt)
        return (response.text or "").strip()

    def _with_retry(self, prompt: str, parse: Callable[[str], Any]):
        last_error: Optional[Exception] = None
        for attempt in range(1, self.max_attempts + 1):
            try:
                return parse(self._call(prompt))
            except Exception as exc:
                last_error = exc
                if attempt < self.max_attempts:
                    delay = self.backoff_seconds * (2 ** attempt)
                    logger.warning(
                        "Gemini attempt %d/%d failed (%s), retrying in %.1fs",
                        attempt, self.max_attempts, exc, delay,
                    )
                    self._sleep(delay)
        logger.error("All %d Gemini attempts failed", self.max_attempts)
        raise GenerationError(f"model call failed after {self.max_attempts} attempts") from last_error

    def generate_text(self, prompt: str) -> str:
        return self._with_retry(prompt, lambda text: text)

    def generate_json(self, prompt: str) -> Dict[str, Any]:
        return self._with_retry(prompt, extract_json)
