from __future__ import annotations

import json
import logging
import os
import typing as t
import urllib.error
import urllib.parse
import urllib.request

from .errors import ConfigurationError, ServiceError
from .models import JsonDict

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "gemini-2.5-flash"
DEFAULT_TIMEOUT_S = 60.0
API_KEY_VARS = ("GEMINI_API_KEY", "GOOGLE_API_KEY", "API_KEY")


def _env_timeout() -> float:
    raw = os.environ.get("GEMINI_TIMEOUT_S")
    if not raw:
        return DEFAULT_TIMEOUT_S
    try:
        return float(raw)
    except ValueError:
        logger.warning("Ignoring non-numeric GEMINI_TIMEOUT_S=%r; using %s s", raw, DEFAULT_TIMEOUT_S)
        return DEFAULT_TIMEOUT_S


class GeminiClient:
    """Thin client for the Gemini ``generateContent`` REST endpoint.

    Construction never fails. ``initialize()`` resolves the API key and must
    succeed before any request is sent; callers may invoke it explicitly at a
    time of their choosing, otherwise ``generate_text`` does it on first use.
    """

    def __init__(
        self,
        api_key: str | None = None,
        model: str | None = None,
        base_url: str = "https://generativelanguage.googleapis.com/v1beta",
        timeout_s: float | None = None,
    ) -> None:
        self._configured_key = api_key
        self.api_key: str | None = None
        self.model = model or os.environ.get("GEMINI_MODEL") or DEFAULT_MODEL
        self.base_url = base_url.rstrip("/")
        self.timeout_s = _env_timeout() if timeout_s is None else timeout_s

    @property
    def ready(self) -> bool:
        return self.api_key is not None

    def initialize(self) -> "GeminiClient":
        if self.ready:
            return self
        key = self._configured_key
        if not key:
            for name in API_KEY_VARS:
                key = os.environ.get(name)
                if key:
                    break
        if not key:
            raise ConfigurationError(f"Missing Gemini API key. Set one of: {', '.join(API_KEY_VARS)}.")
        self.api_key = key
        logger.info("Gemini client initialized (model=%s)", self.model)
        return self

    def _endpoint(self) -> str:
        if self.api_key is None:
            raise ConfigurationError("Gemini client is not initialized.")
        return (
            f"{self.base_url}/models/{urllib.parse.quote(self.model)}:generateContent"
            f"?key={urllib.parse.quote(self.api_key)}"
        )

    def build_payload(
        self,
        *,
        prompt: str,
        response_schema: JsonDict | None = None,
        temperature: float = 0.7,
        max_output_tokens: int = 8192,
    ) -> JsonDict:
        generation_config: JsonDict = {
            "temperature": temperature,
            "maxOutputTokens": max_output_tokens,
        }
        if response_schema is not None:
            generation_config["responseMimeType"] = "application/json"
            generation_config["responseSchema"] = response_schema

        payload: JsonDict = {
            "contents": [{"role": "user", "parts": [{"text": prompt}]}],
            "generationConfig": generation_config,
        }
        return payload

    def generate_text(
        self,
        *,
        prompt: str,
        response_schema: JsonDict | None = None,
        temperature: float = 0.7,
        max_output_tokens: int = 8192,
    ) -> str:
        """Send one request and return the text of the first candidate.

        Raises ServiceError for transport failures and for a response that
        carries no text. There is no retry.
        """
        self.initialize()
        payload = self.build_payload(
            prompt=prompt,
            response_schema=response_schema,
            temperature=temperature,
            max_output_tokens=max_output_tokens,
        )
        req = urllib.request.Request(
            self._endpoint(),
            data=json.dumps(payload, ensure_ascii=False).encode("utf-8"),
            headers={"Content-Type": "application/json"},
            method="POST",
        )

        try:
            with urllib.request.urlopen(req, timeout=self.timeout_s) as resp:
                raw = resp.read().decode("utf-8")
        except urllib.error.HTTPError as e:
            body = None
            try:
                body = e.read().decode("utf-8")
            except Exception:
                body = None
            raise ServiceError(f"Gemini HTTPError {e.code}: {body}") from e
        except (urllib.error.URLError, TimeoutError, OSError) as e:
            raise ServiceError(f"Gemini request failed: {e}") from e

        try:
            data = t.cast(JsonDict, json.loads(raw))
        except json.JSONDecodeError as e:
            raise ServiceError(f"Gemini returned invalid JSON: {raw[:1000]}") from e

        candidates = data.get("candidates") or []
        if not candidates:
            raise ServiceError("Gemini returned no candidates.")

        content = candidates[0].get("content") or {}
        parts = content.get("parts") or []
        text_parts = [p.get("text") for p in parts if isinstance(p, dict) and p.get("text")]
        if not text_parts:
            finish_reason = candidates[0].get("finishReason")
            raise ServiceError(f"Gemini returned no text parts. Finish reason: {finish_reason}.")

        return "".join(t.cast(list[str], text_parts)).strip()
