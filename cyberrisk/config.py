#!/usr/bin/env python3
"""
Cyber Risk Register - Configuration
YAML settings at <home>/config/active/config.yaml layered over built-in
defaults. Keys are addressed with dots: config.get('register.review_days').
"""

import copy
import sys
from typing import Any, Dict, Optional

import yaml

try:
    from .paths import paths
except ImportError:
    from paths import paths


def _merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """Recursively overlay *override* on *base*; returns a new dict."""
    merged = dict(base)
    for key, value in override.items():
        current = merged.get(key)
        if isinstance(current, dict) and isinstance(value, dict):
            merged[key] = _merge(current, value)
        else:
            merged[key] = value
    return merged


class Config:
    """Register settings. One instance per process."""

    _instance: Optional['Config'] = None

    DEFAULTS = {
        'version': '1.0.0',
        'register': {
            'default_actor': 'System',
            'review_days': 90,
            'residual_factor': 0.3,  # assumes 70% mitigation effectiveness
        },
        'scoring': {
            'escalation_threshold': 20,
        },
        'threats': {
            'due_days': 30,
            'default_owner': 'Security Team',
            'default_assignee': 'To Be Assigned',
        },
        'metrics': {
            'trend_months': 6,
            'top_risks': 10,
        },
        'storage': {
            'backend': 'sqlite',  # sqlite | json | memory
            'path': '',           # empty = data/risk_register.{db,json}
        },
        'logging': {
            'level': 'INFO',
            'console_level': 'WARNING',
            'max_bytes': 10 * 1024 * 1024,
            'backup_count': 30,
        },
    }

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
            cls._instance._initialized = False
        return cls._instance

    def __init__(self):
        if self._initialized:
            return
        self._initialized = True
        self._settings: Dict[str, Any] = copy.deepcopy(self.DEFAULTS)
        self._load()

    # ------------------------------------------------------------------
    # File handling
    # ------------------------------------------------------------------
    def _load(self):
        """Overlay the YAML file on the defaults, writing it if missing."""
        settings_file = paths.config_active
        if not settings_file.exists():
            try:
                self.save()
            except OSError as e:
                print(f"Warning: Could not write default config: {e}", file=sys.stderr)
            return

        try:
            with open(settings_file, 'r', encoding='utf-8') as f:
                overrides = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            print(f"Warning: Failed to load config, using defaults: {e}", file=sys.stderr)
            return

        if not isinstance(overrides, dict):
            print(f"Warning: Ignoring {settings_file}: expected a mapping", file=sys.stderr)
            return
        self._settings = _merge(self._settings, overrides)

    def save(self):
        """Write the current settings to the active config file."""
        settings_file = paths.config_active
        settings_file.parent.mkdir(parents=True, exist_ok=True)
        with open(settings_file, 'w', encoding='utf-8') as f:
            yaml.safe_dump(self._settings, f, default_flow_style=False, sort_keys=False)

    def reload(self):
        """Drop in-memory changes and re-read the file."""
        self._initialized = False
        self.__init__()

    # ------------------------------------------------------------------
    # Access
    # ------------------------------------------------------------------
    def get(self, key: str, default: Any = None) -> Any:
        node: Any = self._settings
        for part in key.split('.'):
            if not isinstance(node, dict) or part not in node:
                return default
            node = node[part]
        return node

    def set(self, key: str, value: Any):
        """Set a value in memory; call save() to persist it."""
        *parents, leaf = key.split('.')
        node = self._settings
        for part in parents:
            node = node.setdefault(part, {})
        node[leaf] = value

    def get_default_actor(self) -> str:
        """Actor recorded in audit entries when the caller names none."""
        return self.get('register.default_actor', 'System')

    def get_review_days(self) -> int:
        return int(self.get('register.review_days', 90))

    def get_escalation_threshold(self) -> int:
        return int(self.get('scoring.escalation_threshold', 20))

    def get_threat_due_days(self) -> int:
        return int(self.get('threats.due_days', 30))

    def get_storage_backend(self) -> str:
        return str(self.get('storage.backend', 'sqlite')).lower()

    def to_dict(self) -> Dict[str, Any]:
        return copy.deepcopy(self._settings)


config = Config()


def get_config() -> Config:
    """Get the singleton config instance."""
    return config


def load_config() -> Dict[str, Any]:
    """Current settings as a plain dict."""
    return config.to_dict()
