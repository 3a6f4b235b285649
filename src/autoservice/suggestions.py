"""
Advisory service suggestions from an LLM.

Suggestions are plain text shown next to the order form. They never set a
price or touch stock.
"""

from __future__ import annotations

import json
import logging
import re
from typing import Protocol

import requests

from .domain import SuggestedService

logger = logging.getLogger(__name__)

GEMINI_URL = "https://generativelanguage.googleapis.com/v1beta/models/{model}:generateContent"
DEFAULT_TIMEOUT = 30.0

_FENCED = re.compile(r"```(?:json)?\s*([\s\S]*?)\s*```")


class ServiceSuggester(Protocol):
    def suggest_services(self, mileage: int, complaints: str) -> list[SuggestedService]: ...


def parse_ai_response(text: str | None) -> list[SuggestedService]:
    if not text or not text.strip():
        raise ValueError("Empty response from AI")
    cleaned = text.strip()
    match = _FENCED.search(cleaned)
    if match:
        cleaned = match.group(1)
    data = json.loads(cleaned)
    if not isinstance(data, list):
        raise ValueError("AI response must be a JSON list")
    return [
        SuggestedService(service_name=str(item["serviceName"]), reason=str(item.get("reason", "")))
        for item in data
        if isinstance(item, dict) and item.get("serviceName")
    ]


class GeminiSuggester:
    def __init__(self, api_key: str, model: str, timeout: float = DEFAULT_TIMEOUT) -> None:
        self.api_key = api_key
        self.model = model
        self.timeout = timeout

    def _prompt(self, mileage: int, complaints: str) -> str:
        return (
            "You are the lead mechanic of a car repair shop. "
            f'Customer complaints: "{complaints}". Mileage: {mileage} km. '
            "Suggest the necessary work as a JSON array of objects with fields serviceName and reason."
        )

    def suggest_services(self, mileage: int, complaints: str) -> list[SuggestedService]:
        body = {
            "contents": [{"parts": [{"text": self._prompt(mileage, complaints)}]}],
            "generationConfig": {"responseMimeType": "application/json"},
        }
        try:
            response = requests.post(
                GEMINI_URL.format(model=self.model),
                params={"key": self.api_key},
                json=body,
                timeout=self.timeout,
            )
            response.raise_for_status()
            text = response.json()["candidates"][0]["content"]["parts"][0]["text"]
            return parse_ai_response(text)
        except (requests.RequestException, KeyError, IndexError, ValueError) as e:
            logger.warning("AI suggestion failed: %s", e)
            return []
