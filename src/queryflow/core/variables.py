"""
Variable parsing and merging.

Precedence, lowest to highest:
- variables declared on the query definition
- overrides supplied by the caller
- startDate/endDate derived from a month range
"""

from __future__ import annotations

import calendar
import json
import logging
import re
from datetime import date, datetime
from typing import Any, Optional, Sequence, Union

logger = logging.getLogger(__name__)

MonthBoundary = Union[date, datetime, str]

# Matches strings first so comment markers inside them survive
_COMMENT_PATTERN = re.compile(
    r'("(?:\\.|[^"\\])*")|//[^\n]*|/\*.*?\*/',
    re.DOTALL,
)
_TRAILING_COMMA_PATTERN = re.compile(r'("(?:\\.|[^"\\])*")|,(\s*[}\]])')


def strip_comments(text: str) -> str:
    """Remove // and /* */ comments outside of string literals."""
    return _COMMENT_PATTERN.sub(lambda m: m.group(1) or "", text)


def _strip_trailing_commas(text: str) -> str:
    return _TRAILING_COMMA_PATTERN.sub(lambda m: m.group(1) or m.group(2), text)


def parse_variables(text: Optional[str]) -> dict[str, Any]:
    """
    Parse raw variables text into a dict.

    Accepts plain JSON as well as JSON with comments and trailing commas.
    Anything that does not parse to an object yields an empty dict.
    """
    if not text or not text.strip():
        return {}

    try:
        parsed = json.loads(text)
    except ValueError:
        try:
            parsed = json.loads(_strip_trailing_commas(strip_comments(text)))
        except ValueError as e:
            logger.warning(f"Failed to parse GraphQL variables: {e}")
            return {}

    if not isinstance(parsed, dict):
        logger.warning(f"GraphQL variables must be an object, got {type(parsed).__name__}")
        return {}
    return parsed


def _to_month(value: MonthBoundary) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    text = str(value).strip()
    # "2024-01" -> "2024-01-01"
    if len(text) == 7:
        text = f"{text}-01"
    return date.fromisoformat(text[:10])


def month_range_variables(time_range: Optional[Sequence[MonthBoundary]]) -> dict[str, str]:
    """
    Derive startDate/endDate from a pair of month boundaries.

    startDate is the first day of the earliest month, endDate the last
    calendar day of the latest month. Boundaries may come in any order.

    Examples:
        (date(2024, 1, 15), date(2024, 1, 3)) -> {"startDate": "2024-01-01", "endDate": "2024-01-31"}
        ("2024-03", "2023-12") -> {"startDate": "2023-12-01", "endDate": "2024-03-31"}
    """
    if not time_range or len(time_range) != 2:
        return {}

    first, second = time_range
    if not first or not second:
        return {}

    try:
        start, end = sorted([_to_month(first), _to_month(second)])
    except (TypeError, ValueError) as e:
        logger.warning(f"Ignoring invalid month range {time_range!r}: {e}")
        return {}

    last_day = calendar.monthrange(end.year, end.month)[1]
    return {
        "startDate": date(start.year, start.month, 1).isoformat(),
        "endDate": date(end.year, end.month, last_day).isoformat(),
    }


def merge_variables(
    declared: Optional[dict[str, Any]] = None,
    overrides: Optional[dict[str, Any]] = None,
    time_range: Optional[Sequence[MonthBoundary]] = None,
) -> dict[str, Any]:
    """Shallow-merge variables in precedence order (later wins)."""
    merged: dict[str, Any] = {}
    merged.update(declared or {})
    merged.update(overrides or {})
    merged.update(month_range_variables(time_range))
    return merged
