from .trends import (
    TREND_SYNONYMS,
    TrendFetchError,
    contains_trend_or_synonyms,
    get_today_trends_in_japanese,
    parse_daily_trends,
)

__all__ = [
    "TREND_SYNONYMS",
    "TrendFetchError",
    "contains_trend_or_synonyms",
    "get_today_trends_in_japanese",
    "parse_daily_trends",
]
