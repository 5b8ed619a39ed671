"""
mentionbot/llm/tools/trends.py

Trend augmentation helpers.

contains_trend_or_synonyms() decides whether a message is about trends;
get_today_trends_in_japanese() pulls today's trending searches for Japan
from the Google Trends daily endpoint so they can be added to the system
prompt.
"""

from __future__ import annotations

import json
import logging
from typing import Any

import httpx

logger = logging.getLogger(__name__)

TRENDING_URL = "https://trends.google.com/trends/api/dailytrends"
REGION_CODE = "JP"
TRENDS_PARAMS = {"hl": "ja", "tz": "-540", "geo": REGION_CODE}
DEFAULT_TIMEOUT_SECONDS = 10.0

# Google prefixes the JSON body with an anti-XSSI guard.
_BODY_PREFIX_LEN = 5

TREND_SYNONYMS = (
    "trend",
    "trending",
    "tendency",
    "fashion",
    "movement",
    "direction",
    "current",
    "popular",
)
TREND_JA = "トレンド"


class TrendFetchError(Exception):
    """Raised when the trends endpoint cannot be reached or parsed."""


def contains_trend_or_synonyms(text: str) -> bool:
    lowered = text.lower()
    if TREND_JA in lowered:
        return True
    return any(word in lowered for word in TREND_SYNONYMS)


def parse_daily_trends(body: str) -> list[str]:
    """Extract the first day's query strings from a raw dailytrends body."""
    try:
        data: Any = json.loads(body[_BODY_PREFIX_LEN:])
        searches = data["default"]["trendingSearchesDays"][0]["trendingSearches"]
        return [str(s["title"]["query"]) for s in searches]
    except (ValueError, KeyError, IndexError, TypeError) as e:
        raise TrendFetchError(f"Malformed trends response: {e}") from e


async def get_today_trends_in_japanese(
    client: httpx.AsyncClient | None = None,
    timeout: float = DEFAULT_TIMEOUT_SECONDS,
) -> list[str]:
    """
    Fetch today's trending search queries for Japan.

    A caller-owned client is reused when given; otherwise a short-lived one
    is opened for this request. Raises TrendFetchError on any failure.
    """
    if client is None:
        async with httpx.AsyncClient() as own_client:
            return await get_today_trends_in_japanese(own_client, timeout)

    try:
        response = await client.get(
            TRENDING_URL,
            params=TRENDS_PARAMS,
            headers={"Accept": "application/json"},
            timeout=timeout,
        )
        response.raise_for_status()
    except httpx.HTTPStatusError as e:
        raise TrendFetchError(f"HTTP error! Status: {e.response.status_code}") from e
    except httpx.HTTPError as e:
        raise TrendFetchError(f"Failed to fetch Google Trends: {e}") from e

    trends = parse_daily_trends(response.text)
    logger.info("Fetched %d trends for %s", len(trends), REGION_CODE)
    return trends
