from __future__ import annotations

import re
from typing import Any

import httpx

from tracevista.config import settings
from tracevista.errors import ProviderCallError, ProviderErrorCause
from tracevista.models.entities import ProviderQuery
from tracevista.tools.search_provider import RawProviderResult

HUNTER_VERIFY_URL = "https://api.hunter.io/v2/email-verifier"
EMAIL_LOOKUP_COST = 0.01

_EMAIL = re.compile(r"[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}")


def _source_label(source: Any) -> str:
    if isinstance(source, dict):
        return str(source.get("domain") or source.get("uri") or "")
    return str(source or "")


def to_result_item(email: str, data: dict[str, Any]) -> dict[str, Any]:
    platforms = [label for label in (_source_label(s) for s in data.get("sources") or []) if label]
    score = data.get("score") or 0
    found_on = ", ".join(platforms) if platforms else "no public sources"
    return {
        "title": f"Email OSINT: {email}",
        "snippet": f"Email confidence: {score}%. Status: {data.get('status', 'unknown')}. Found on {found_on}.",
        "url": f"mailto:{email}",
        "source": "hunter.io",
        "confidence": score,
    }


class HunterEmailAdapter:
    """Email intelligence lookup for the subject's own address."""

    name = "email_intel"

    def __init__(self, *, priority: int = 2):
        self.priority = priority

    def accepts(self, query: ProviderQuery) -> bool:
        return query.category == "email" and _EMAIL.search(query.query) is not None

    def estimate(self, query: ProviderQuery) -> tuple[float, int]:
        return (EMAIL_LOOKUP_COST, 0)

    async def call(self, query: ProviderQuery) -> RawProviderResult:
        if not settings.hunter_api_key:
            raise ProviderCallError(self.name, "HUNTER_API_KEY is not configured")
        match = _EMAIL.search(query.query)
        if match is None:
            raise ProviderCallError(self.name, "query carries no email address", cause=ProviderErrorCause.MALFORMED_PAYLOAD)
        email = match.group(0)

        async with httpx.AsyncClient(timeout=30.0) as client:
            response = await client.get(
                HUNTER_VERIFY_URL,
                params={"email": email, "api_key": settings.hunter_api_key},
            )
            response.raise_for_status()
            payload = response.json()

        data = payload.get("data") if isinstance(payload, dict) else None
        if not isinstance(data, dict):
            raise ProviderCallError(self.name, "response has no data object", cause=ProviderErrorCause.MALFORMED_PAYLOAD)

        return RawProviderResult(
            provider=self.name,
            items=[to_result_item(email, data)],
            cost=EMAIL_LOOKUP_COST,
            credits=0,
        )
