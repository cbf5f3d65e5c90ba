#!/usr/bin/env python3
"""
Cyber Risk Register - Threat Intelligence Integration
Converts threat records into risk creation requests and runs threat-feed
searches with cooperative cancellation: a newer search supersedes an older
one, and a superseded search's results are discarded rather than applied.
"""

import threading
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, Iterable, List, Optional

try:
    from .config import config
    from .logger import get_logger
    from .models import Category, Severity, utcnow
except ImportError:
    from config import config
    from logger import get_logger
    from models import Category, Severity, utcnow

logger = get_logger('threats')

THREAT_SOURCE = 'Threat Intelligence'


def _percentage(value: Any, name: str) -> Optional[float]:
    """0-100 score from a number or numeric string; None when absent."""
    if value is None or value == '':
        return None
    if isinstance(value, bool):
        raise ValueError(f"{name} must be a number, not {value!r}")
    if isinstance(value, (int, float)):
        return value
    if isinstance(value, str):
        try:
            return float(value.strip())
        except ValueError:
            raise ValueError(f"{name} must be a number, not {value!r}") from None
    raise ValueError(f"{name} must be a number, not {value!r}")


def _tag_list(value: Any) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    if isinstance(value, (list, tuple, set, frozenset)):
        return [str(t) for t in value]
    raise ValueError(f"tags must be a list of strings, not {value!r}")


@dataclass
class Threat:
    """An externally supplied threat-intelligence record (not owned)."""
    id: str
    title: str
    description: str = ''
    severity: Optional[str] = None
    likelihood: Optional[float] = None  # 0-100
    impact: Optional[float] = None      # 0-100
    estimated_impact: Optional[str] = None
    tags: List[str] = field(default_factory=list)
    type: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Threat':
        return cls(
            id=str(data['id']),
            title=str(data.get('title', '')),
            description=str(data.get('description', '') or ''),
            severity=data.get('severity'),
            likelihood=_percentage(data.get('likelihood'), 'likelihood'),
            impact=_percentage(data.get('impact'), 'impact'),
            estimated_impact=data.get('estimated_impact', data.get('estimatedImpact')),
            tags=_tag_list(data.get('tags')),
            type=data.get('type'),
        )


def _as_threat(threat: Any) -> Threat:
    return threat if isinstance(threat, Threat) else Threat.from_dict(threat)


# ---------------------------------------------------------------------------
# Threat -> risk mapping
# ---------------------------------------------------------------------------

def probability_from_likelihood(likelihood: Optional[float]) -> str:
    value = likelihood or 0
    if value > 70:
        return 'High'
    if value > 40:
        return 'Medium'
    return 'Low'


def impact_from_score(impact: Optional[float]) -> str:
    value = impact or 0
    if value > 80:
        return 'Very High'
    if value > 60:
        return 'High'
    if value > 40:
        return 'Medium'
    return 'Low'


def category_from_type(threat_type: Optional[str]) -> str:
    """Threat types naming a register category map onto it; others are cyber."""
    if threat_type:
        try:
            return Category.parse(threat_type).value
        except ValueError:
            logger.debug(f"Threat type {threat_type!r} is not a risk category")
    return Category.CYBERSECURITY.value


def risk_request_from_threat(threat: Any, now: Optional[datetime] = None) -> Dict[str, Any]:
    """
    Build the create_risk() payload for a threat. The payload still goes
    through normal validation; nothing here bypasses it.
    """
    threat = _as_threat(threat)
    now = now or utcnow()
    return {
        'title': f"Risk from {threat.title}",
        'description': (
            f"Potential risk identified from threat intelligence: {threat.description}"
        ),
        'severity': threat.severity or Severity.MEDIUM.value,
        'probability': probability_from_likelihood(threat.likelihood),
        'impact': impact_from_score(threat.impact),
        'category': category_from_type(threat.type),
        'source': THREAT_SOURCE,
        'threat_id': threat.id,
        'owner': config.get('threats.default_owner', 'Security Team'),
        'assignee': config.get('threats.default_assignee', 'To Be Assigned'),
        'due_date': (now + timedelta(days=config.get_threat_due_days())).date(),
        'estimated_cost': threat.estimated_impact or '£0',
        'likelihood': threat.likelihood if threat.likelihood is not None else 50,
        'business_impact': threat.impact if threat.impact is not None else 50,
        'tags': list(threat.tags),
        'mitigation': 'To be determined',
        'treatment_plan': 'Under assessment',
    }


# ---------------------------------------------------------------------------
# Cancellable threat search
# ---------------------------------------------------------------------------

class SearchCancelled(Exception):
    """Raised inside a feed when its cancellation token fires."""


class CancellationToken:
    """Caller-supplied cancellation flag for one search."""

    def __init__(self):
        self._event = threading.Event()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self):
        self._event.set()

    def wait(self, timeout: float) -> bool:
        """Sleep up to *timeout* seconds; True if cancelled meanwhile."""
        return self._event.wait(timeout)

    def raise_if_cancelled(self):
        if self.cancelled:
            raise SearchCancelled()


class StaticThreatFeed:
    """In-memory threat feed with simulated network latency."""

    def __init__(self, threats: Iterable[Any] = (), latency: float = 0.0):
        self.threats = [_as_threat(t) for t in threats]
        self.latency = latency

    def search(self, criteria: Dict[str, Any], token: CancellationToken) -> List[Threat]:
        if self.latency and token.wait(self.latency):
            raise SearchCancelled()
        token.raise_if_cancelled()

        text = str(criteria.get('search', '') or '').lower()
        severity = criteria.get('severity')
        threat_type = criteria.get('type')
        min_likelihood = criteria.get('min_likelihood')

        results = []
        for t in self.threats:
            if text:
                haystack = ' '.join([t.title, t.description, *t.tags]).lower()
                if text not in haystack:
                    continue
            if severity and (t.severity or '').lower() != str(severity).lower():
                continue
            if threat_type and (t.type or '').lower() != str(threat_type).lower():
                continue
            if min_likelihood is not None and (t.likelihood or 0) < min_likelihood:
                continue
            results.append(t)
        return results


class ThreatSearchCoordinator:
    """Runs feed searches so that the last request wins."""

    def __init__(self, feed: Any):
        self._feed = feed
        self._lock = threading.RLock()
        self._generation = 0
        self._token: Optional[CancellationToken] = None
        self.latest: Optional[List[Threat]] = None
        self.on_results: Optional[Callable[[List[Threat]], None]] = None

    def cancel(self):
        """Abandon the in-flight search, if any."""
        with self._lock:
            if self._token is not None:
                self._token.cancel()
                self._token = None
            self._generation += 1

    def search(self, criteria: Optional[Dict[str, Any]] = None) -> Optional[List[Threat]]:
        """
        Search the feed. Returns the threats found, or None when this search
        was cancelled or superseded before it finished.
        """
        with self._lock:
            if self._token is not None:
                self._token.cancel()
            self._generation += 1
            generation = self._generation
            token = CancellationToken()
            self._token = token

        try:
            threats = self._feed.search(dict(criteria or {}), token)
        except SearchCancelled:
            logger.debug(f"Threat search #{generation} cancelled")
            return None

        with self._lock:
            if token.cancelled or generation != self._generation:
                logger.debug(f"Discarding superseded threat search #{generation}")
                return None
            self._token = None
            self.latest = threats
            # Applied under the lock so a newer search cannot finish in between
            if self.on_results is not None:
                self.on_results(threats)
        return threats
