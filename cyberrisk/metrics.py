#!/usr/bin/env python3
"""
Cyber Risk Register - Metrics Aggregator
Dashboard-ready counts, distributions and trends, derived on demand from the
full collection.
"""

from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional, Tuple

try:
    from .models import AuditEntry, Category, Level, Risk, Severity, Status, utcnow
except ImportError:
    from models import AuditEntry, Category, Level, Risk, Severity, Status, utcnow


def _shift_month(year: int, month: int, delta: int) -> Tuple[int, int]:
    index = year * 12 + (month - 1) + delta
    return index // 12, index % 12 + 1


def trailing_months(now: datetime, months: int) -> List[str]:
    """YYYY-MM keys for the last *months* months, oldest first."""
    keys = []
    for back in range(months - 1, -1, -1):
        y, m = _shift_month(now.year, now.month, -back)
        keys.append(f"{y:04d}-{m:02d}")
    return keys


def is_closing_entry(entry: AuditEntry) -> bool:
    """An entry that moved the risk to Closed."""
    if isinstance(entry.new_value, dict) and entry.new_value.get('status') == Status.CLOSED.value:
        return True
    return 'closed' in entry.action.lower()


def monthly_trends(risks: List[Risk], now: datetime, months: int = 6) -> List[Dict[str, Any]]:
    """Risks created vs. risks closed per month over the trailing window."""
    keys = trailing_months(now, months)
    created = dict.fromkeys(keys, 0)
    closed = dict.fromkeys(keys, 0)

    for risk in risks:
        if risk.created_date is not None:
            key = risk.created_date.strftime('%Y-%m')
            if key in created:
                created[key] += 1
        closed_months = {
            e.timestamp.strftime('%Y-%m') for e in risk.audit_trail if is_closing_entry(e)
        }
        for key in closed_months:
            if key in closed:
                closed[key] += 1

    return [{'month': k, 'created': created[k], 'closed': closed[k]} for k in keys]


def risk_matrix(risks: Iterable[Risk]) -> List[List[int]]:
    """
    5x5 matrix of open risks. Rows run probability Very High (top) down to
    Very Low; columns run impact Very Low..Very High.
    """
    levels = list(Level)
    matrix = [[0] * len(levels) for _ in levels]
    for r in risks:
        if r.is_closed:
            continue
        row = len(levels) - 1 - levels.index(r.probability)
        col = levels.index(r.impact)
        matrix[row][col] += 1
    return matrix


def compute_metrics(risks: Iterable[Risk], now: Optional[datetime] = None,
                    months: int = 6, top_n: int = 10) -> Dict[str, Any]:
    """Aggregate statistics over every risk in *risks*."""
    risks = list(risks)
    now = now or utcnow()
    today = now.date()

    by_status = {s.value: 0 for s in Status}
    by_severity = {s.value: 0 for s in Severity}
    by_category = {c.value: 0 for c in Category}
    for r in risks:
        by_status[r.status.value] += 1
        by_severity[r.severity.value] += 1
        by_category[r.category.value] += 1

    open_risks = [r for r in risks if not r.is_closed]
    overdue = sum(1 for r in risks if r.is_overdue(today))
    overdue_review = sum(
        1 for r in open_risks if r.review_date is not None and r.review_date < today
    )
    escalations = sum(1 for r in open_risks if r.escalation_required)
    avg_score = sum(r.risk_score for r in risks) / len(risks) if risks else 0.0

    top = sorted(open_risks, key=lambda r: r.risk_score, reverse=True)[:top_n]

    return {
        'total': len(risks),
        'by_status': by_status,
        'by_severity': by_severity,
        'overdue': overdue,
        'overdue_for_review': overdue_review,
        'escalation_required': escalations,
        'avg_risk_score': round(avg_score, 2),
        'category_distribution': by_category,
        'monthly_trends': monthly_trends(risks, now, months),
        'top_risks': [
            {'id': r.id, 'title': r.title, 'score': r.risk_score,
             'category': r.category.value}
            for r in top
        ],
        'risk_matrix': risk_matrix(risks),
    }
