"""Pytest fixtures for shared-creators tests."""

from __future__ import annotations

from collections.abc import Callable
from datetime import UTC, datetime
from typing import Any

import pytest
from creatorhub.creators.client import (
    MARKETPLACE_SEARCH_PATH,
    ORDER_SEARCH_PATH,
    Pacer,
    QuotaBudget,
)
from creatorhub.creators.config import EnrichmentSettings
from creatorhub.creators.store.memory import InMemoryCreatorStore


class FakeShopApi:
    """Scripted shop API executor for testing.

    Order feed pages are served in order; marketplace searches are answered
    by keyword. Either may be an exception instance, which is raised.
    """

    def __init__(self) -> None:
        self.order_pages: list[dict[str, Any] | Exception] = []
        self.marketplace: dict[str, list[dict[str, Any]] | Exception] = {}
        self.calls: list[tuple[str, str, dict[str, Any] | None, dict[str, Any] | None]] = []

    def request(
        self,
        method: str,
        path: str,
        body: dict[str, Any] | None = None,
        params: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        self.calls.append((method, path, body, params))

        if path == ORDER_SEARCH_PATH:
            if not self.order_pages:
                return {"orders": []}
            page = self.order_pages.pop(0)
            if isinstance(page, Exception):
                raise page
            return page

        if path == MARKETPLACE_SEARCH_PATH:
            result = self.marketplace.get((body or {}).get("keyword", ""), [])
            if isinstance(result, Exception):
                raise result
            return {"creators": result}

        raise AssertionError(f"Unexpected request: {method} {path}")

    def calls_to(self, path: str) -> list[tuple[str, str, Any, Any]]:
        """Return recorded calls for one path."""
        return [call for call in self.calls if call[1] == path]


@pytest.fixture
def store() -> InMemoryCreatorStore:
    """Empty in-memory creator store."""
    return InMemoryCreatorStore()


@pytest.fixture
def settings() -> EnrichmentSettings:
    """Settings with pacing disabled."""
    return EnrichmentSettings(
        access_token="test-token",
        api_delay_ms=0,
        batch_size=100,
        daily_request_quota=1000,
        sample_sync_pages=10,
    )


@pytest.fixture
def fake_api() -> FakeShopApi:
    """Scripted shop API."""
    return FakeShopApi()


@pytest.fixture
def quota() -> QuotaBudget:
    """Daily quota with plenty of headroom."""
    return QuotaBudget(daily_limit=1000)


@pytest.fixture
def sleeps() -> list[float]:
    """Recorded pacer sleeps."""
    return []


@pytest.fixture
def pacer(sleeps: list[float]) -> Pacer:
    """Pacer that records its delays instead of sleeping."""
    return Pacer(0.3, sleep=sleeps.append)


@pytest.fixture
def make_sample_order() -> Callable[..., dict[str, Any]]:
    """Factory for sample orders as returned by the order feed."""

    def _make(
        user_id: str | None = "u1",
        name: str | None = "Jane Doe",
        phone: str | None = "(+1)8085551234",
        create_time: int | None = 1_771_000_000,
        **recipient: Any,
    ) -> dict[str, Any]:
        return {
            "id": f"order-{user_id}",
            "is_sample_order": True,
            "user_id": user_id,
            "create_time": create_time,
            "recipient_address": {
                "name": name,
                "phone_number": phone,
                **recipient,
            },
        }

    return _make


@pytest.fixture
def marketplace_candidate() -> Callable[..., dict[str, Any]]:
    """Factory for marketplace search candidates."""

    def _make(username: str, **overrides: Any) -> dict[str, Any]:
        candidate: dict[str, Any] = {
            "username": username,
            "nickname": username.title(),
            "avatar": {"url": f"https://cdn.example.com/{username}.jpg"},
            "follower_count": 12500,
            "gmv": {"amount": "123.45", "currency": "USD"},
            "video_gmv": {"amount": "20.00", "currency": "USD"},
            "avg_ec_video_view_count": 3400,
        }
        candidate.update(overrides)
        return candidate

    return _make


@pytest.fixture
def now() -> datetime:
    """Fixed reference time."""
    return datetime(2026, 2, 20, 12, 0, tzinfo=UTC)
