"""Shared pytest fixtures for mwengine tests.

Fixture summary
---------------
settings    Engine settings pointing at the fake wiki, with zero pauses.
client      ApiClient built from ``settings``; closed after the test.
bot         Bot built from ``settings``; closed after the test.

All HTTP traffic is intercepted with respx; no test needs network access.
"""

from __future__ import annotations

import os
from collections.abc import AsyncGenerator
from typing import Any
from urllib.parse import parse_qs

import httpx
import pytest
import pytest_asyncio

# ---------------------------------------------------------------------------
# Test environment bootstrap
# ---------------------------------------------------------------------------
# Drop engine variables from the developer's shell so that EngineSettings()
# only sees what the tests set.

for _key in [key for key in os.environ if key.startswith("MWENGINE_")]:
    del os.environ[_key]

from mwengine.bot import Bot  # noqa: E402
from mwengine.client.orchestrator import ApiClient  # noqa: E402
from mwengine.config.settings import EngineSettings, get_settings  # noqa: E402

get_settings.cache_clear()

WIKI_HOST = "https://wiki.example.org"
API_PATH = "/w/api.php"
API_URL = WIKI_HOST + API_PATH


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def api_response(**payload: Any) -> httpx.Response:
    """Build a JSON API response with the given top-level fields."""
    return httpx.Response(200, json=payload)


def api_error(code: str, info: str = "error info") -> httpx.Response:
    """Build an API error response."""
    return httpx.Response(200, json={"error": {"code": code, "info": info}})


def sent_form(call: Any) -> dict[str, str]:
    """Decode the form body of a recorded respx call into a flat dict."""
    parsed = parse_qs(call.request.content.decode(), keep_blank_values=True)
    return {key: values[0] for key, values in parsed.items()}


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def settings() -> EngineSettings:
    return EngineSettings(
        api_url=API_URL,
        username="Example@bot",
        password="bot-password",
        maxlag_pause=0.0,
        default_throttle_delay=0.0,
    )


@pytest_asyncio.fixture
async def client(settings: EngineSettings) -> AsyncGenerator[ApiClient, None]:
    async with ApiClient(settings) as api_client:
        yield api_client


@pytest_asyncio.fixture
async def bot(settings: EngineSettings) -> AsyncGenerator[Bot, None]:
    async with Bot(settings) as wiki_bot:
        yield wiki_bot
