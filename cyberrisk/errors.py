#!/usr/bin/env python3
"""
Cyber Risk Register - Error Kinds
Errors are returned to callers inside results rather than raised across the
register's public boundary. Each kind still subclasses Exception so internal
helpers can raise them and the boundary can catch by type.
"""

from typing import Any, Dict, Optional


class RiskRegisterError(Exception):
    """Base class for every error the register reports."""

    kind = 'error'

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> Dict[str, Any]:
        return {'kind': self.kind, 'message': self.message}


class ValidationError(RiskRegisterError):
    """One or more fields failed validation. No mutation was applied."""

    kind = 'validation'

    def __init__(self, errors: Dict[str, str]):
        self.errors = dict(errors)
        details = ', '.join(self.errors.values())
        super().__init__(f"Validation failed: {details}")

    def to_dict(self) -> Dict[str, Any]:
        d = super().to_dict()
        d['errors'] = dict(self.errors)
        return d


class NotFoundError(RiskRegisterError):
    """The requested risk id does not exist."""

    kind = 'not_found'

    def __init__(self, risk_id: str):
        self.risk_id = risk_id
        super().__init__(f"Risk not found: {risk_id}")

    def to_dict(self) -> Dict[str, Any]:
        d = super().to_dict()
        d['risk_id'] = self.risk_id
        return d


class InvalidTransitionError(RiskRegisterError):
    """The requested status edge is not in the transition table."""

    kind = 'invalid_transition'

    def __init__(self, current: Any, requested: Any):
        self.current = current
        self.requested = requested
        super().__init__(
            f"Invalid status transition from {_label(current)} to {_label(requested)}"
        )

    def to_dict(self) -> Dict[str, Any]:
        d = super().to_dict()
        d['from'] = _label(self.current)
        d['to'] = _label(self.requested)
        return d


class PersistenceWarning(RiskRegisterError):
    """Saving or loading failed. In-memory state is unaffected."""

    kind = 'persistence'

    def __init__(self, operation: str, cause: Optional[BaseException] = None):
        self.operation = operation
        self.cause = cause
        reason = f": {cause}" if cause is not None else ''
        super().__init__(f"Persistence {operation} failed{reason}")

    def to_dict(self) -> Dict[str, Any]:
        d = super().to_dict()
        d['operation'] = self.operation
        return d


def _label(value: Any) -> str:
    return str(getattr(value, 'value', value))
