"""
Cyber Risk Register - Shared Library
"""

from .paths import paths, get_paths
from .config import config, get_config, load_config
from .errors import (RiskRegisterError, ValidationError, NotFoundError,
                     InvalidTransitionError, PersistenceWarning)
from .models import (Status, Severity, Level, Category, Risk, AuditEntry,
                     OperationResult, BulkResult)
from .filters import RiskFilter, query
from .register import RiskRegister, get_risk_register
from .threats import Threat, risk_request_from_threat

__version__ = '1.0.0'

__all__ = [
    'paths', 'get_paths',
    'config', 'get_config', 'load_config',
    'RiskRegisterError', 'ValidationError', 'NotFoundError',
    'InvalidTransitionError', 'PersistenceWarning',
    'Status', 'Severity', 'Level', 'Category', 'Risk', 'AuditEntry',
    'OperationResult', 'BulkResult',
    'RiskFilter', 'query',
    'RiskRegister', 'get_risk_register',
    'Threat', 'risk_request_from_threat',
]
