"""
llm.py
------
LLM clients for the narrative fallback. Both expose ``complete(prompt) -> str``.

  StubLLMClient   used when USE_STUB_LLM=true or no GEMINI_API_KEY is set
  GeminiClient    google-genai SDK
"""

from __future__ import annotations
import os

from google import genai

import config


class StubLLMClient:
    """No-op LLM client. Returns a fixed, human-readable notice."""

    RESPONSE = "Narrative suggestions are unavailable in offline mode."

    def complete(self, prompt: str) -> str:  # noqa: ARG002
        return self.RESPONSE


class GeminiClient:
    def __init__(self, model: str | None = None, api_key: str | None = None):
        api_key = api_key or os.environ.get("GEMINI_API_KEY", config.GEMINI_API_KEY)
        if not api_key:
            raise RuntimeError("GEMINI_API_KEY missing")
        self._client = genai.Client(
            api_key=api_key,
            http_options={"timeout": config.LLM_TIMEOUT_SECONDS * 1000},
        )
        self._model = model or config.LLM_MODEL_NAME

    def complete(self, prompt: str) -> str:
        response = self._client.models.generate_content(
            model=self._model,
            contents=prompt,
        )
        if not response or not response.text:
            raise RuntimeError("Empty Gemini response")
        return response.text.strip()


def build_llm_client():
    """Client selected by config.USE_STUB_LLM / GEMINI_API_KEY."""
    if config.USE_STUB_LLM or not (os.environ.get("GEMINI_API_KEY") or config.GEMINI_API_KEY):
        return StubLLMClient()
    return GeminiClient()
