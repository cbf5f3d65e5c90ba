"""
Shared test bootstrap: isolates CYBER_RISK_HOME in a temp directory before
any cyberrisk module is imported, and provides a controllable clock.
"""

import os
import sys
import tempfile
from datetime import date, datetime, timedelta, timezone
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parent.parent
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))
os.environ.setdefault('CYBER_RISK_HOME', tempfile.mkdtemp(prefix='cyberrisk-test-'))

from cyberrisk.register import RiskRegister  # noqa: E402

NOW = datetime(2026, 3, 15, 12, 0, 0, tzinfo=timezone.utc)


class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, start: datetime = NOW):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs):
        self.now = self.now + timedelta(**kwargs)

    def set(self, when: datetime):
        self.now = when


def future(days: int = 30, clock: FakeClock = None) -> date:
    base = clock.now if clock is not None else NOW
    return (base + timedelta(days=days)).date()


def risk_data(**overrides):
    """A valid create_risk() payload."""
    data = {
        'title': 'Ransomware attack on OT systems',
        'description': 'Ransomware targeting operational technology',
        'owner': 'John Smith',
        'assignee': 'Security Team',
        'severity': 'High',
        'probability': 'Medium',
        'impact': 'High',
        'category': 'Cybersecurity',
        'due_date': future(30),
        'tags': ['OT', 'Ransomware'],
    }
    data.update(overrides)
    return data


def make_register(clock: FakeClock = None, storage=None, **kwargs) -> RiskRegister:
    return RiskRegister(storage=storage, clock=clock or FakeClock(),
                        actor='Test User', escalation_threshold=20,
                        review_days=90, **kwargs)
