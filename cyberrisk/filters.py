#!/usr/bin/env python3
"""
Cyber Risk Register - Filter / Query Engine
Pure predicate evaluation over a collection of risks.
"""

from dataclasses import dataclass, field, fields
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional, Union

try:
    from .models import Category, Risk, Severity, Status, utcnow
except ImportError:
    from models import Category, Risk, Severity, Status, utcnow


ALL = 'All'

# Exact-match value naming no status/severity/category; matches nothing
NO_MATCH = object()

DATE_RANGES: Dict[str, Optional[int]] = {
    'All': None,
    'Last 7 days': 7,
    'Last 30 days': 30,
    'Last 90 days': 90,
}


@dataclass
class RiskFilter:
    """Filter options. "All" (or empty) disables an exact-match option."""
    status: str = ALL
    severity: str = ALL
    category: str = ALL
    owner: str = ALL
    assignee: str = ALL
    search: str = ''
    tags: List[str] = field(default_factory=list)
    date_range: str = ALL

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> 'RiskFilter':
        """Build from a dict; unknown keys raise ValueError."""
        data = dict(data or {})
        if 'dateRange' in data:
            data['date_range'] = data.pop('dateRange')
        known = {f.name for f in fields(cls)}
        unknown = set(data) - known
        if unknown:
            raise ValueError(f"Unknown filter option(s): {', '.join(sorted(unknown))}")
        return cls(**data)

    def window_days(self) -> Optional[int]:
        if self.date_range in (None, '') or self.date_range == ALL:
            return None
        if isinstance(self.date_range, int):
            return self.date_range
        if self.date_range not in DATE_RANGES:
            raise ValueError(f"Unknown date range: {self.date_range!r}")
        return DATE_RANGES[self.date_range]


FilterLike = Union[RiskFilter, Dict[str, Any], None]


def _is_all(value: Any) -> bool:
    return value is None or value == '' or value == ALL


def _search_text(risk: Risk) -> str:
    return ' '.join(
        [risk.title, risk.description, risk.owner, risk.assignee, *sorted(risk.tags)]
    ).lower()


def _exact(enum_cls, value):
    """None for "All"; NO_MATCH for a value that names no member."""
    if _is_all(value):
        return None
    try:
        return enum_cls.parse(value)
    except ValueError:
        return NO_MATCH


def _predicate(options: RiskFilter, now: datetime):
    status = _exact(Status, options.status)
    severity = _exact(Severity, options.severity)
    category = _exact(Category, options.category)
    search = (options.search or '').strip().lower()
    wanted_tags = set(options.tags or ())
    window = options.window_days()

    def matches(risk: Risk) -> bool:
        if status is not None and risk.status is not status:
            return False
        if severity is not None and risk.severity is not severity:
            return False
        if category is not None and risk.category is not category:
            return False
        if not _is_all(options.owner) and risk.owner != options.owner:
            return False
        if not _is_all(options.assignee) and risk.assignee != options.assignee:
            return False
        if search and search not in _search_text(risk):
            return False
        if wanted_tags and not (wanted_tags & risk.tags):
            return False
        if window is not None:
            if risk.created_date is None:
                return False
            age_days = (now - risk.created_date).total_seconds() / 86400
            if age_days > window:
                return False
        return True

    return matches


def query(risks: Iterable[Risk], risk_filter: FilterLike = None,
          now: Optional[datetime] = None) -> List[Risk]:
    """Return the risks matching *risk_filter*, preserving input order."""
    if not isinstance(risk_filter, RiskFilter):
        risk_filter = RiskFilter.from_dict(risk_filter)
    matches = _predicate(risk_filter, now or utcnow())
    return [r for r in risks if matches(r)]
