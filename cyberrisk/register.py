#!/usr/bin/env python3
"""
Cyber Risk Register - Risk Store
Owns the canonical collection of risks and arbitrates every mutation:
validation, score/escalation derivation, status transitions, audit trail,
and persistence. Commands return OperationResult objects; validation,
not-found, transition and persistence problems never escape as exceptions.
"""

import copy
import math
import re
import threading
from dataclasses import fields, replace
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple

try:
    from .audit import AuditRecorder
    from .config import config
    from .errors import (InvalidTransitionError, NotFoundError,
                         PersistenceWarning, ValidationError)
    from .export import export_risks, write_export
    from .filters import FilterLike, query
    from .logger import get_logger
    from .metrics import compute_metrics
    from .models import (PROTECTED_FIELDS, BulkResult, Category, Level,
                         OperationResult, Risk, Severity, Status, parse_date,
                         utcnow)
    from .scoring import calculate_risk_score, requires_escalation
    from .threats import THREAT_SOURCE, Threat, risk_request_from_threat
    from .workflow import check_transition, transition_action
except ImportError:
    from audit import AuditRecorder
    from config import config
    from errors import (InvalidTransitionError, NotFoundError,
                        PersistenceWarning, ValidationError)
    from export import export_risks, write_export
    from filters import FilterLike, query
    from logger import get_logger
    from metrics import compute_metrics
    from models import (PROTECTED_FIELDS, BulkResult, Category, Level,
                        OperationResult, Risk, Severity, Status, parse_date,
                        utcnow)
    from scoring import calculate_risk_score, requires_escalation
    from threats import THREAT_SOURCE, Threat, risk_request_from_threat
    from workflow import check_transition, transition_action

logger = get_logger('register')


RISK_FIELDS = frozenset(f.name for f in fields(Risk))
EDITABLE_FIELDS = RISK_FIELDS - PROTECTED_FIELDS

TEXT_FIELDS = ('title', 'description', 'owner', 'assignee', 'source',
               'estimated_cost', 'mitigation', 'treatment_plan')

REQUIRED_TEXT = (
    ('title', 'Title is required'),
    ('description', 'Description is required'),
    ('owner', 'Risk owner is required'),
)

ENUM_FIELDS = {
    'status': (Status, 'Invalid status'),
    'severity': (Severity, 'Invalid severity level'),
    'category': (Category, 'Invalid risk category'),
    'probability': (Level, 'Invalid probability level'),
    'impact': (Level, 'Invalid impact level'),
}

_ID_PATTERN = re.compile(r'^RSK-(\d+)$')


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


class RiskRegister:
    """In-memory risk register with optional load/save persistence."""

    def __init__(
        self,
        storage=None,
        clock: Optional[Callable[[], datetime]] = None,
        actor: Optional[str] = None,
        escalation_threshold: Optional[int] = None,
        review_days: Optional[int] = None,
    ):
        self._storage = storage
        self._clock = clock or utcnow
        self.default_actor = actor or config.get_default_actor()
        self.escalation_threshold = (
            escalation_threshold if escalation_threshold is not None
            else config.get_escalation_threshold()
        )
        self.review_days = review_days if review_days is not None else config.get_review_days()
        self.residual_factor = float(config.get('register.residual_factor', 0.3))

        self._risks: Dict[str, Risk] = {}
        self._next_number = 1
        self._lock = threading.RLock()
        self._audit = AuditRecorder(clock=self._clock)
        self.load_warning: Optional[PersistenceWarning] = None

        if storage is not None:
            self._load()

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------
    def _load(self):
        """Populate the collection from storage. Failures leave it empty."""
        try:
            records = self._storage.load()
        except Exception as e:
            logger.warning(f"Failed to load risks from storage: {e}")
            self.load_warning = PersistenceWarning('load', e)
            return

        for record in records or ():
            try:
                risk = Risk.from_dict(record)
            except (AttributeError, KeyError, TypeError, ValueError) as e:
                logger.warning(f"Skipping unreadable stored risk: {e}")
                continue
            if risk.id in self._risks:
                logger.warning(f"Skipping duplicate stored risk {risk.id}")
                continue
            self._risks[risk.id] = risk
            self._audit.seed(risk.audit_trail)
            m = _ID_PATTERN.match(risk.id)
            if m:
                self._next_number = max(self._next_number, int(m.group(1)) + 1)

        logger.info(f"Loaded {len(self._risks)} risks from storage")

    def _persist(self) -> List[PersistenceWarning]:
        """Save the committed collection; a failure is reported, not raised."""
        if self._storage is None:
            return []
        try:
            self._storage.save([r.to_dict() for r in self._risks.values()])
        except Exception as e:
            logger.warning(f"Failed to save risks: {e}")
            return [PersistenceWarning('save', e)]
        return []

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------
    def _now(self) -> datetime:
        return self._clock()

    def _allocate_id(self) -> str:
        risk_id = f"RSK-{self._next_number:03d}"
        self._next_number += 1
        return risk_id

    def _coerce(self, data: Dict[str, Any]) -> Tuple[Dict[str, Any], Dict[str, str]]:
        """Convert caller input into typed field values, collecting errors."""
        values: Dict[str, Any] = {}
        errors: Dict[str, str] = {}

        for key, value in data.items():
            if key in PROTECTED_FIELDS:
                errors[key] = f"{key} cannot be set directly"
            elif key not in RISK_FIELDS:
                errors[key] = f"Unknown field: {key}"
            elif key in ENUM_FIELDS:
                enum_cls, message = ENUM_FIELDS[key]
                try:
                    values[key] = enum_cls.parse(value)
                except ValueError:
                    errors[key] = message
            elif key in ('due_date', 'review_date'):
                try:
                    values[key] = parse_date(value)
                except (TypeError, ValueError):
                    errors[key] = f"Invalid {key.replace('_', ' ')}"
            elif key in TEXT_FIELDS:
                if value is None:
                    values[key] = ''
                elif isinstance(value, str):
                    values[key] = value
                else:
                    errors[key] = f"{key} must be text"
            elif key == 'threat_id':
                values[key] = None if value in (None, '') else str(value)
            elif key in ('likelihood', 'business_impact'):
                if isinstance(value, bool) or not isinstance(value, (int, float)) \
                        or not 0 <= value <= 100:
                    errors[key] = f"{key} must be a number between 0 and 100"
                else:
                    values[key] = _round_half_up(value)
            elif key == 'residual_risk':
                if value is not None and (isinstance(value, bool)
                                          or not isinstance(value, (int, float))):
                    errors[key] = "residual_risk must be numeric"
                else:
                    values[key] = value
            elif key == 'tags':
                if not isinstance(value, (list, tuple, set, frozenset)):
                    errors[key] = "tags must be a collection of strings"
                else:
                    values[key] = {str(t) for t in value}
            elif key == 'related_capabilities':
                if not isinstance(value, (list, tuple, set, frozenset)):
                    errors[key] = "related_capabilities must be a list of strings"
                else:
                    values[key] = [str(c) for c in value]
        return values, errors

    def _check_record(self, record: Dict[str, Any], check_due: bool) -> Dict[str, str]:
        """Record-level rules: required text, required enums, due date."""
        errors: Dict[str, str] = {}
        for key, message in REQUIRED_TEXT:
            value = record.get(key)
            if not isinstance(value, str) or not value.strip():
                errors[key] = message
        if record.get('severity') is None:
            errors['severity'] = ENUM_FIELDS['severity'][1]
        if record.get('category') is None:
            errors['category'] = ENUM_FIELDS['category'][1]
        due = record.get('due_date')
        if check_due and due is not None and due < self._now().date():
            errors['due_date'] = 'Due date cannot be in the past'
        return errors

    def _escalates(self, severity: Severity, score: int) -> bool:
        return requires_escalation(severity, score, self.escalation_threshold)

    def _actor(self, actor: Optional[str]) -> str:
        return actor or self.default_actor

    def _commit(self, risk: Risk, warnings_out: List[PersistenceWarning]) -> Risk:
        self._risks[risk.id] = risk
        warnings_out.extend(self._persist())
        return copy.deepcopy(risk)

    # ------------------------------------------------------------------
    # CRUD
    # ------------------------------------------------------------------
    def create_risk(self, data: Dict[str, Any], actor: Optional[str] = None) -> OperationResult:
        """Validate and register a new risk."""
        with self._lock:
            values, errors = self._coerce(dict(data or {}))
            # Field-level errors take precedence over record-level ones
            record_errors = self._check_record(values, check_due=True)
            for key, message in record_errors.items():
                errors.setdefault(key, message)
            if errors:
                logger.info(f"Rejected risk creation: {errors}")
                return OperationResult.fail(ValidationError(errors))

            now = self._now()
            risk_id = self._allocate_id()
            values.setdefault('status', Status.OPEN)
            values.setdefault('probability', Level.MEDIUM)
            values.setdefault('impact', Level.MEDIUM)
            score = calculate_risk_score(values['probability'], values['impact'])
            if values.get('review_date') is None:
                values['review_date'] = (now + timedelta(days=self.review_days)).date()
            if values.get('residual_risk') is None:
                values['residual_risk'] = max(1, _round_half_up(score * self.residual_factor))

            if values.get('source') == THREAT_SOURCE:
                details = f"Auto-generated from threat {values.get('threat_id')}"
            else:
                details = 'Manual risk entry'

            trail = self._audit.record(
                (), 'Risk created', details, self._actor(actor),
                previous_value=None,
                new_value={'status': values['status'], 'severity': values['severity']},
            )
            risk = Risk(
                id=risk_id,
                risk_score=score,
                escalation_required=self._escalates(values['severity'], score),
                created_date=now,
                last_updated=now,
                audit_trail=trail,
                **values,
            )

            warnings: List[PersistenceWarning] = []
            result = self._commit(risk, warnings)

        logger.info(f"Created risk {risk_id}: {risk.title} (score={score})")
        return OperationResult.ok(result, warnings=warnings)

    def update_risk(self, risk_id: str, partial: Dict[str, Any],
                    actor: Optional[str] = None) -> OperationResult:
        """Merge *partial* into an existing risk and re-validate."""
        with self._lock:
            current = self._risks.get(risk_id)
            if current is None:
                return OperationResult.fail(NotFoundError(risk_id), risk_id=risk_id)

            values, errors = self._coerce(dict(partial or {}))
            if errors:
                return OperationResult.fail(ValidationError(errors), risk_id=risk_id)

            merged = replace(current, **values)
            record = {k: getattr(merged, k) for k in
                      ('title', 'description', 'owner', 'severity', 'category', 'due_date')}
            # An untouched due date may legitimately have passed
            errors = self._check_record(record, check_due='due_date' in values
                                        and values['due_date'] != current.due_date)
            if errors:
                return OperationResult.fail(ValidationError(errors), risk_id=risk_id)

            if 'status' in values and values['status'] is not current.status:
                try:
                    check_transition(current.status, values['status'])
                except InvalidTransitionError as e:
                    return OperationResult.fail(e, risk_id=risk_id)

            if merged.probability != current.probability or merged.impact != current.impact:
                merged.risk_score = calculate_risk_score(merged.probability, merged.impact)
            merged.escalation_required = self._escalates(merged.severity, merged.risk_score)

            changed = [k for k in sorted(EDITABLE_FIELDS | {'risk_score', 'escalation_required'})
                       if getattr(merged, k) != getattr(current, k)]
            now = self._now()
            merged.last_updated = now
            merged.audit_trail = self._audit.record(
                current.audit_trail,
                'Risk updated',
                f"Updated fields: {', '.join(changed)}" if changed else 'Risk details modified',
                self._actor(actor),
                previous_value={k: getattr(current, k) for k in changed},
                new_value={k: getattr(merged, k) for k in changed},
            )

            warnings: List[PersistenceWarning] = []
            result = self._commit(merged, warnings)

        logger.info(f"Updated risk {risk_id}: {changed}")
        return OperationResult.ok(result, warnings=warnings)

    def delete_risk(self, risk_id: str) -> OperationResult:
        """Hard delete. The risk's audit trail goes with it."""
        with self._lock:
            if risk_id not in self._risks:
                return OperationResult.fail(NotFoundError(risk_id), risk_id=risk_id)
            del self._risks[risk_id]
            warnings = self._persist()

        logger.info(f"Deleted risk {risk_id}")
        return OperationResult.ok(risk_id=risk_id, warnings=warnings)

    # ------------------------------------------------------------------
    # Status management
    # ------------------------------------------------------------------
    def change_status(self, risk_id: str, new_status: Any, comment: Optional[str] = None,
                      actor: Optional[str] = None) -> OperationResult:
        """Move a risk along a permitted lifecycle edge."""
        with self._lock:
            current = self._risks.get(risk_id)
            if current is None:
                return OperationResult.fail(NotFoundError(risk_id), risk_id=risk_id)

            try:
                target = check_transition(current.status, new_status)
            except InvalidTransitionError as e:
                logger.info(f"Rejected transition for {risk_id}: {e}")
                return OperationResult.fail(e, risk_id=risk_id)
            except ValueError:
                return OperationResult.fail(
                    ValidationError({'status': ENUM_FIELDS['status'][1]}), risk_id=risk_id
                )

            trail = self._audit.record(
                current.audit_trail,
                transition_action(target),
                comment or f"Risk status updated from {current.status.value} to {target.value}",
                self._actor(actor),
                previous_value={'status': current.status},
                new_value={'status': target},
            )
            updated = replace(current, status=target, last_updated=self._now(),
                              audit_trail=trail)

            warnings: List[PersistenceWarning] = []
            result = self._commit(updated, warnings)

        logger.info(f"Risk {risk_id} status {current.status.value} -> {target.value}")
        return OperationResult.ok(result, warnings=warnings)

    # ------------------------------------------------------------------
    # Bulk operations
    # ------------------------------------------------------------------
    def bulk_update(self, risk_ids: Iterable[str], partial: Dict[str, Any],
                    actor: Optional[str] = None) -> BulkResult:
        """Apply the same update to each id in turn; failures don't stop the batch."""
        bulk = BulkResult()
        for risk_id in risk_ids:
            bulk.results.append(self.update_risk(risk_id, partial, actor=actor))
        logger.info(
            f"Bulk update: {bulk.success_count} succeeded, {bulk.failure_count} failed"
        )
        return bulk

    # ------------------------------------------------------------------
    # Threat integration
    # ------------------------------------------------------------------
    def create_risk_from_threat(self, threat: Any, actor: Optional[str] = None) -> OperationResult:
        """Convert a threat record and register it through create_risk()."""
        try:
            if not isinstance(threat, Threat):
                threat = Threat.from_dict(threat)
            request = risk_request_from_threat(threat, now=self._now())
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            return OperationResult.fail(ValidationError({'threat': f"Invalid threat record: {e}"}))
        return self.create_risk(request, actor=actor)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------
    def __len__(self) -> int:
        return len(self._risks)

    def __contains__(self, risk_id: str) -> bool:
        return risk_id in self._risks

    def _snapshot(self) -> List[Risk]:
        with self._lock:
            return list(self._risks.values())

    def get_risk(self, risk_id: str) -> Optional[Risk]:
        risk = self._risks.get(risk_id)
        return copy.deepcopy(risk) if risk is not None else None

    def list_risks(self) -> List[Risk]:
        return copy.deepcopy(self._snapshot())

    def query(self, risk_filter: FilterLike = None) -> List[Risk]:
        """Risks matching *risk_filter* (see cyberrisk.filters.RiskFilter)."""
        return copy.deepcopy(query(self._snapshot(), risk_filter, now=self._now()))

    def get_risks_by_threat(self, threat_id: str) -> List[Risk]:
        return copy.deepcopy([r for r in self._snapshot() if r.threat_id == threat_id])

    def get_risks_by_category(self, category: Any) -> List[Risk]:
        category = Category.parse(category)
        return copy.deepcopy([r for r in self._snapshot() if r.category is category])

    def get_overdue_risks(self) -> List[Risk]:
        today = self._now().date()
        return copy.deepcopy([r for r in self._snapshot() if r.is_overdue(today)])

    def get_high_priority_risks(self) -> List[Risk]:
        return copy.deepcopy([
            r for r in self._snapshot()
            if r.severity in (Severity.CRITICAL, Severity.HIGH) and not r.is_closed
        ])

    # ------------------------------------------------------------------
    # Analytics / export
    # ------------------------------------------------------------------
    def metrics(self) -> Dict[str, Any]:
        """Dashboard metrics over the whole collection."""
        return compute_metrics(
            self._snapshot(),
            now=self._now(),
            months=int(config.get('metrics.trend_months', 6)),
            top_n=int(config.get('metrics.top_risks', 10)),
        )

    def export_risks(self, fmt: str = 'json', risk_filter: FilterLike = None) -> str:
        """JSON or CSV export of the (optionally filtered) collection."""
        return export_risks(query(self._snapshot(), risk_filter, now=self._now()), fmt)

    def write_export(self, filepath, fmt: str = 'json', risk_filter: FilterLike = None):
        return write_export(filepath, query(self._snapshot(), risk_filter, now=self._now()), fmt)


# ======================================================================
# Singleton accessor
# ======================================================================
_risk_register: Optional[RiskRegister] = None


def get_risk_register() -> RiskRegister:
    """Get the RiskRegister singleton, backed by the configured storage."""
    global _risk_register
    if _risk_register is None:
        try:
            from .paths import paths
            from .storage import storage_from_config
        except ImportError:
            from paths import paths
            from storage import storage_from_config
        paths.ensure_directories()
        _risk_register = RiskRegister(storage=storage_from_config())
    return _risk_register
