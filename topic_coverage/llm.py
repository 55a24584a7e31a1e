"""
LLM completion providers and JSON response parsing.
"""
import json
from dataclasses import dataclass
from typing import Any, Optional

import google.generativeai as genai
from openai import OpenAI

from .core.errors import CompletionError
from .core.interfaces import CompletionProvider
from .utils import first_env_var, logger

DEFAULT_OPENAI_MODEL = "gpt-4o-mini"
DEFAULT_GEMINI_MODEL = "gemini-1.5-flash"


# ============================================================================
# RESPONSE PARSING
# ============================================================================

@dataclass(frozen=True)
class ParseResult:
    """Outcome of parsing an LLM reply: kind is 'parsed' (value set) or 'fallback' (raw only)."""
    kind: str
    value: Any = None
    raw: str = ""

    @property
    def ok(self) -> bool:
        return self.kind == "parsed"


def _strip_fences(text: str) -> str:
    stripped = text.strip()
    if '```json' in stripped:
        start = stripped.find('```json') + 7
        end = stripped.find('```', start)
        return stripped[start:end if end != -1 else None].strip()
    if stripped.startswith('```'):
        stripped = stripped[3:]
        end = stripped.rfind('```')
        return stripped[:end if end != -1 else None].strip()
    return stripped


def _bracketed(text: str, opening: str, closing: str) -> Optional[str]:
    start = text.find(opening)
    end = text.rfind(closing)
    if start == -1 or end <= start:
        return None
    return text[start:end + 1]


def parse_json_response(text: Optional[str], expect: Optional[type] = None) -> ParseResult:
    """Parse a model reply as JSON without ever raising.

    Markdown fences are stripped first; when the whole reply is not JSON the
    outermost [...] or {...} span is tried. A value whose type differs from
    ``expect`` counts as a fallback.
    """
    raw = text or ""
    candidate = _strip_fences(raw)

    attempts = [candidate]
    for opening, closing in (('[', ']'), ('{', '}')):
        span = _bracketed(candidate, opening, closing)
        if span and span != candidate:
            attempts.append(span)

    for attempt in attempts:
        try:
            value = json.loads(attempt)
        except (json.JSONDecodeError, TypeError):
            continue
        if expect is not None and not isinstance(value, expect):
            continue
        return ParseResult(kind="parsed", value=value, raw=raw)

    return ParseResult(kind="fallback", raw=raw)


# ============================================================================
# PROVIDERS
# ============================================================================

class OpenAICompletionProvider(CompletionProvider):
    """Chat completions through the OpenAI SDK."""

    def __init__(self, api_key: Optional[str] = None, model: str = DEFAULT_OPENAI_MODEL,
                 client: Optional[OpenAI] = None):
        self.model = model
        if client is None:
            api_key = api_key or first_env_var("OPENAI_API_KEY")
            if not api_key:
                raise ValueError("OPENAI_API_KEY environment variable not set")
            client = OpenAI(api_key=api_key)
        self.client = client

    def complete(self, prompt: str, system: Optional[str] = None,
                 temperature: float = 0.3, max_tokens: int = 1000, **params: Any) -> str:
        messages = []
        if system:
            messages.append({"role": "system", "content": system})
        messages.append({"role": "user", "content": prompt})

        try:
            response = self.client.chat.completions.create(
                model=params.get('model', self.model),
                messages=messages,
                temperature=temperature,
                max_tokens=max_tokens,
            )
            content = response.choices[0].message.content
        except Exception as e:
            logger.error(f"OpenAI completion failed: {e}")
            raise CompletionError(f"OpenAI completion failed: {e}") from e

        if not content:
            raise CompletionError("No response from OpenAI")
        return content


class GeminiCompletionProvider(CompletionProvider):
    """Text generation through google-generativeai."""

    def __init__(self, api_key: Optional[str] = None, model: str = DEFAULT_GEMINI_MODEL,
                 model_instance: Any = None):
        self.model = model
        if model_instance is None:
            api_key = api_key or first_env_var("GOOGLE_API_KEY", "GEMINI_API_KEY")
            if not api_key:
                raise ValueError("GOOGLE_API_KEY environment variable not set")
            genai.configure(api_key=api_key)
            model_instance = genai.GenerativeModel(model)
        self.model_instance = model_instance

    def complete(self, prompt: str, system: Optional[str] = None,
                 temperature: float = 0.7, max_tokens: int = 1000, **params: Any) -> str:
        full_prompt = f"{system}\n\n{prompt}" if system else prompt
        try:
            response = self.model_instance.generate_content(
                full_prompt,
                generation_config={"temperature": temperature, "max_output_tokens": max_tokens},
            )
            content = response.text
        except Exception as e:
            logger.error(f"Gemini completion failed: {e}")
            raise CompletionError(f"Gemini completion failed: {e}") from e

        if not content:
            raise CompletionError("No response from Gemini")
        return content
