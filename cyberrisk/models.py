#!/usr/bin/env python3
"""
Cyber Risk Register - Data Model
Risk and AuditEntry records, their enums, and the result objects returned by
register operations.
"""

import re
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Set, Tuple

try:
    from .errors import PersistenceWarning, RiskRegisterError
except ImportError:
    from errors import PersistenceWarning, RiskRegisterError


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------

def _compact(text: str) -> str:
    return re.sub(r'[\s_\-]+', '', text).lower()


class LabeledEnum(Enum):
    """Enum whose values are display labels ("In Progress")."""

    @classmethod
    def parse(cls, value: Any) -> 'LabeledEnum':
        """Accept a member, its label, its compact label or its name."""
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            key = _compact(value)
            for member in cls:
                if key in (_compact(member.value), _compact(member.name)):
                    return member
        raise ValueError(f"Invalid {cls.__name__.lower()}: {value!r}")

    @classmethod
    def labels(cls) -> List[str]:
        return [m.value for m in cls]

    def __str__(self) -> str:
        return self.value


class Status(LabeledEnum):
    OPEN = 'Open'
    IN_PROGRESS = 'In Progress'
    ISSUE = 'Issue'
    CLOSED = 'Closed'


class Severity(LabeledEnum):
    LOW = 'Low'
    MEDIUM = 'Medium'
    HIGH = 'High'
    CRITICAL = 'Critical'


class Level(LabeledEnum):
    """Qualitative scale shared by probability and impact."""
    VERY_LOW = 'Very Low'
    LOW = 'Low'
    MEDIUM = 'Medium'
    HIGH = 'High'
    VERY_HIGH = 'Very High'


class Category(LabeledEnum):
    CYBERSECURITY = 'Cybersecurity'
    OPERATIONAL = 'Operational'
    FINANCIAL = 'Financial'
    REGULATORY = 'Regulatory'
    SUPPLY_CHAIN = 'Supply Chain'
    ENVIRONMENTAL = 'Environmental'
    REPUTATIONAL = 'Reputational'
    STRATEGIC = 'Strategic'


# Display metadata only
CATEGORY_METADATA: Dict[Category, Dict[str, Any]] = {
    Category.CYBERSECURITY: {'color': 'red', 'priority': 4},
    Category.OPERATIONAL: {'color': 'orange', 'priority': 3},
    Category.FINANCIAL: {'color': 'yellow', 'priority': 2},
    Category.REGULATORY: {'color': 'blue', 'priority': 3},
    Category.SUPPLY_CHAIN: {'color': 'purple', 'priority': 2},
    Category.ENVIRONMENTAL: {'color': 'green', 'priority': 1},
    Category.REPUTATIONAL: {'color': 'pink', 'priority': 2},
    Category.STRATEGIC: {'color': 'indigo', 'priority': 3},
}

SEVERITY_VALUES: Dict[Severity, int] = {
    Severity.LOW: 1,
    Severity.MEDIUM: 2,
    Severity.HIGH: 3,
    Severity.CRITICAL: 4,
}


# ---------------------------------------------------------------------------
# Date helpers
# ---------------------------------------------------------------------------

def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def parse_date(value: Any) -> Optional[date]:
    """Parse a date from a date, datetime or ISO string ('' and None -> None)."""
    if value is None or value == '':
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        return date.fromisoformat(value.strip()[:10])
    raise ValueError(f"Not a date: {value!r}")


def parse_datetime(value: Any) -> Optional[datetime]:
    """Parse a timezone-aware UTC datetime. Naive values are taken as UTC."""
    if value is None or value == '':
        return None
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, date):
        dt = datetime(value.year, value.month, value.day)
    elif isinstance(value, str):
        text = value.strip()
        if text.endswith('Z'):
            text = text[:-1] + '+00:00'
        dt = datetime.fromisoformat(text)
    else:
        raise ValueError(f"Not a datetime: {value!r}")
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def to_plain(value: Any) -> Any:
    """Convert enums, dates and sets into JSON-friendly values."""
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, (set, frozenset)):
        return sorted(to_plain(v) for v in value)
    if isinstance(value, (list, tuple)):
        return [to_plain(v) for v in value]
    if isinstance(value, dict):
        return {k: to_plain(v) for k, v in value.items()}
    return value


# ---------------------------------------------------------------------------
# Records
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class AuditEntry:
    """One immutable change record in a risk's audit trail."""
    id: str
    timestamp: datetime
    sequence: int
    user: str
    action: str
    details: str = ''
    previous_value: Optional[Dict[str, Any]] = None
    new_value: Optional[Dict[str, Any]] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'timestamp': self.timestamp.isoformat(),
            'sequence': self.sequence,
            'user': self.user,
            'action': self.action,
            'details': self.details,
            'previous_value': self.previous_value,
            'new_value': self.new_value,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'AuditEntry':
        timestamp = parse_datetime(data.get('timestamp') or data.get('date'))
        if timestamp is None:
            raise ValueError(f"Audit entry {data.get('id')} has no timestamp")
        return cls(
            id=str(data['id']),
            timestamp=timestamp,
            sequence=int(data.get('sequence', 0)),
            user=str(data.get('user', '')),
            action=str(data.get('action', '')),
            details=str(data.get('details', '') or ''),
            previous_value=data.get('previous_value'),
            new_value=data.get('new_value'),
        )


# Fields a caller may never set directly
PROTECTED_FIELDS = frozenset({
    'id', 'risk_score', 'escalation_required', 'audit_trail',
    'created_date', 'last_updated',
})


@dataclass
class Risk:
    """A tracked risk record. Owned and mutated only by RiskRegister."""
    id: str
    title: str
    description: str
    owner: str
    severity: Severity
    category: Category
    status: Status = Status.OPEN
    probability: Level = Level.MEDIUM
    impact: Level = Level.MEDIUM
    risk_score: int = 0
    source: str = 'Manual Entry'
    threat_id: Optional[str] = None
    assignee: str = ''
    due_date: Optional[date] = None
    created_date: Optional[datetime] = None
    last_updated: Optional[datetime] = None
    review_date: Optional[date] = None
    estimated_cost: str = ''
    likelihood: int = 0
    business_impact: int = 0
    tags: Set[str] = field(default_factory=set)
    mitigation: str = ''
    treatment_plan: str = ''
    residual_risk: Optional[float] = None
    escalation_required: bool = False
    related_capabilities: List[str] = field(default_factory=list)
    audit_trail: Tuple[AuditEntry, ...] = ()

    @property
    def is_closed(self) -> bool:
        return self.status is Status.CLOSED

    def is_overdue(self, today: date) -> bool:
        return (not self.is_closed and self.due_date is not None
                and self.due_date < today)

    def to_dict(self, include_audit: bool = True) -> Dict[str, Any]:
        d = {
            'id': self.id,
            'title': self.title,
            'description': self.description,
            'status': self.status.value,
            'severity': self.severity.value,
            'probability': self.probability.value,
            'impact': self.impact.value,
            'risk_score': self.risk_score,
            'category': self.category.value,
            'source': self.source,
            'threat_id': self.threat_id,
            'owner': self.owner,
            'assignee': self.assignee,
            'due_date': to_plain(self.due_date),
            'created_date': to_plain(self.created_date),
            'last_updated': to_plain(self.last_updated),
            'review_date': to_plain(self.review_date),
            'estimated_cost': self.estimated_cost,
            'likelihood': self.likelihood,
            'business_impact': self.business_impact,
            'tags': sorted(self.tags),
            'mitigation': self.mitigation,
            'treatment_plan': self.treatment_plan,
            'residual_risk': self.residual_risk,
            'escalation_required': self.escalation_required,
            'related_capabilities': list(self.related_capabilities),
        }
        if include_audit:
            d['audit_trail'] = [e.to_dict() for e in self.audit_trail]
        return d

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Risk':
        """Rebuild a stored record. Derived fields are taken as stored."""
        return cls(
            id=str(data['id']),
            title=str(data['title']),
            description=str(data.get('description', '')),
            owner=str(data.get('owner', '')),
            severity=Severity.parse(data['severity']),
            category=Category.parse(data['category']),
            status=Status.parse(data.get('status', Status.OPEN)),
            probability=Level.parse(data.get('probability', Level.MEDIUM)),
            impact=Level.parse(data.get('impact', Level.MEDIUM)),
            risk_score=int(data.get('risk_score', 0)),
            source=str(data.get('source', '') or ''),
            threat_id=data.get('threat_id'),
            assignee=str(data.get('assignee', '') or ''),
            due_date=parse_date(data.get('due_date')),
            created_date=parse_datetime(data.get('created_date')),
            last_updated=parse_datetime(data.get('last_updated')),
            review_date=parse_date(data.get('review_date')),
            estimated_cost=str(data.get('estimated_cost', '') or ''),
            likelihood=int(data.get('likelihood', 0) or 0),
            business_impact=int(data.get('business_impact', 0) or 0),
            tags=set(data.get('tags') or ()),
            mitigation=str(data.get('mitigation', '') or ''),
            treatment_plan=str(data.get('treatment_plan', '') or ''),
            residual_risk=data.get('residual_risk'),
            escalation_required=bool(data.get('escalation_required', False)),
            related_capabilities=list(data.get('related_capabilities') or ()),
            audit_trail=tuple(
                AuditEntry.from_dict(e) for e in data.get('audit_trail') or ()
            ),
        )


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------

@dataclass
class OperationResult:
    """Outcome of a single register command."""
    success: bool
    risk: Optional[Risk] = None
    error: Optional[RiskRegisterError] = None
    warnings: List[PersistenceWarning] = field(default_factory=list)
    risk_id: Optional[str] = None

    @classmethod
    def ok(cls, risk: Optional[Risk] = None, risk_id: Optional[str] = None,
           warnings: Optional[List[PersistenceWarning]] = None) -> 'OperationResult':
        return cls(True, risk=risk, risk_id=risk_id or (risk.id if risk else None),
                   warnings=list(warnings or []))

    @classmethod
    def fail(cls, error: RiskRegisterError,
             risk_id: Optional[str] = None) -> 'OperationResult':
        return cls(False, error=error, risk_id=risk_id)

    def to_dict(self) -> Dict[str, Any]:
        d: Dict[str, Any] = {'success': self.success, 'risk_id': self.risk_id}
        if self.risk is not None:
            d['risk'] = self.risk.to_dict()
        if self.error is not None:
            d['error'] = self.error.to_dict()
        if self.warnings:
            d['warnings'] = [w.to_dict() for w in self.warnings]
        return d


@dataclass
class BulkResult:
    """Per-item outcomes of a bulk update, in request order."""
    results: List[OperationResult] = field(default_factory=list)

    @property
    def success_count(self) -> int:
        return sum(1 for r in self.results if r.success)

    @property
    def failure_count(self) -> int:
        return sum(1 for r in self.results if not r.success)

    @property
    def success(self) -> bool:
        return self.failure_count == 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            'success': self.success,
            'success_count': self.success_count,
            'failure_count': self.failure_count,
            'results': [r.to_dict() for r in self.results],
        }
