# visaboard/services/suggestion_service.py

import re
import logging
from typing import Optional
import httpx
from visaboard.config import settings
from visaboard.errors import UpstreamFailure

logger = logging.getLogger("visaboard.suggestions")

SYSTEM_PROMPT = (
    "You are a helpful assistant that generates relevant questions about US visas. "
    "Provide only the questions without any additional text or numbering."
)

PROMPTS = {
    "f-visa": "Generate 5 common questions about F-1 student visas that international students might have.",
    "b-visa": "Generate 5 common questions about B-1/B-2 business and tourist visas that applicants might have.",
    "default": "Generate 5 common questions about US visa application process that applicants might have.",
}

FALLBACK_SUGGESTIONS = [
    "What documents do I need for an F-1 visa interview?",
    "How can I prove non-immigrant intent for my F-1 visa?",
    "Can I work off-campus with an F-1 visa?",
    "What is the process for F-1 visa renewal?",
    "How early should I apply for an F-1 visa before my program starts?",
]

MAX_SUGGESTIONS = 5
_NUMBERING = re.compile(r"^\d+\.\s*")


def parse_suggestions(content: str) -> list[str]:
    lines = [line.strip() for line in content.split("\n") if line.strip()]
    return [_NUMBERING.sub("", line).strip() for line in lines][:MAX_SUGGESTIONS]


class SuggestionService:
    def __init__(
        self,
        api_key: Optional[str],
        base_url: str,
        model: str,
        timeout: float = 15.0,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self.api_key = api_key
        self.model = model
        self.client = httpx.Client(base_url=base_url, timeout=timeout, transport=transport)

    def request_completion(self, topic: str) -> list[str]:
        """Ask the chat-completion API for questions; raises UpstreamFailure on any provider problem"""
        if not self.api_key:
            raise UpstreamFailure("AI provider is not configured")
        payload = {
            "model": self.model,
            "messages": [
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": PROMPTS.get(topic, PROMPTS["default"])},
            ],
            "temperature": 0.7,
            "max_tokens": 200,
        }
        try:
            response = self.client.post(
                "/chat/completions",
                json=payload,
                headers={"Authorization": f"Bearer {self.api_key}"},
            )
            response.raise_for_status()
            content = response.json()["choices"][0]["message"]["content"] or ""
        except (httpx.HTTPError, ValueError, KeyError, IndexError, TypeError) as e:
            raise UpstreamFailure(f"Chat completion failed: {e}") from e
        return parse_suggestions(content)

    def generate(self, topic: str) -> list[str]:
        try:
            return self.request_completion(topic)
        except UpstreamFailure as e:
            logger.warning(f"{e}; using fallback suggestions")
            return list(FALLBACK_SUGGESTIONS)


suggestion_service = SuggestionService(
    api_key=settings.openai_api_key,
    base_url=settings.openai_base_url,
    model=settings.openai_model,
    timeout=settings.openai_timeout_seconds,
)


def get_suggestion_service() -> SuggestionService:
    return suggestion_service
