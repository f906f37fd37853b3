from __future__ import annotations

import asyncio
import json
import logging
import urllib.error
import urllib.parse
import urllib.request

logger = logging.getLogger(__name__)

API_BASE_URL = "https://generativelanguage.googleapis.com/v1beta/models"

INSIGHT_PROMPT = (
    "You are a highly experienced software development mentor. Provide 3-5 actionable sub-tasks or "
    "detailed strategies to effectively complete the following daily quest for a work-from-home software "
    "developer: '{description}'. Focus on productivity, well-being, and skill enhancement. Present the "
    "insights as a clear, concise bulleted list, starting each bullet with a practical verb."
)

AFFIRMATION_PROMPT = (
    "You are a motivating personal coach for a work-from-home software developer. Generate a short, "
    "encouraging, and highly specific daily affirmation or motivational tip (1-2 sentences) that helps with "
    "focus, productivity, and mental resilience. Make it sound like a system message from a game. Start with "
    "'SYSTEM: Your daily motivation is:' and follow directly with the tip."
)


class TextGenerationError(RuntimeError):
    """The service answered, but not with usable text."""


class TextServiceUnavailableError(TextGenerationError):
    """The service could not be reached."""


def insight_prompt(description: str) -> str:
    return INSIGHT_PROMPT.format(description=description)


def extract_text(result) -> str:
    try:
        text = result["candidates"][0]["content"]["parts"][0]["text"]
    except (KeyError, IndexError, TypeError) as exc:
        raise TextGenerationError(f"Unexpected response structure: {result!r}") from exc
    if not isinstance(text, str):
        raise TextGenerationError(f"Unexpected response structure: {result!r}")
    return text


class GeminiClient:
    """Single-prompt ``generateContent`` calls. No retries."""

    def __init__(self, api_key: str, model: str = "gemini-2.0-flash", timeout_s: float = 20) -> None:
        self.api_key = api_key
        self.model = model
        self.timeout_s = timeout_s

    def _build_request(self, prompt: str) -> urllib.request.Request:
        url = f"{API_BASE_URL}/{self.model}:generateContent?" + urllib.parse.urlencode({"key": self.api_key})
        payload = {"contents": [{"role": "user", "parts": [{"text": prompt}]}]}
        return urllib.request.Request(
            url,
            data=json.dumps(payload).encode("utf-8"),
            headers={"Content-Type": "application/json"},
            method="POST",
        )

    def generate_text(self, prompt: str) -> str:
        req = self._build_request(prompt)
        try:
            raw = urllib.request.urlopen(req, timeout=self.timeout_s).read()
        except (urllib.error.URLError, TimeoutError, OSError) as exc:
            raise TextServiceUnavailableError(str(exc)) from exc
        try:
            result = json.loads(raw)
        except ValueError as exc:
            raise TextGenerationError("Response was not JSON") from exc
        return extract_text(result)

    async def generate(self, prompt: str) -> str:
        return await asyncio.to_thread(self.generate_text, prompt)
