#!/usr/bin/env python3
"""
Cyber Risk Register - Paths
Every file the register touches lives under one home directory: the value
of CYBER_RISK_HOME, or the checkout root when that is unset.

    <home>/config/active/config.yaml
    <home>/data/risk_register.db | risk_register.json
    <home>/data/logs/<component>.log
    <home>/data/exports/
"""

import os
from pathlib import Path
from typing import Optional

HOME_ENV = 'CYBER_RISK_HOME'


class PortablePaths:
    """Resolves register locations relative to the home directory."""

    _instance: Optional['PortablePaths'] = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
            cls._instance._initialized = False
        return cls._instance

    def __init__(self):
        if self._initialized:
            return
        self._initialized = True
        self.home = self._default_home()

    @staticmethod
    def _default_home() -> Path:
        override = os.environ.get(HOME_ENV)
        if override:
            return Path(override).expanduser().resolve()
        # cyberrisk/paths.py -> checkout root
        return Path(__file__).resolve().parent.parent

    def _under(self, *parts: str) -> Path:
        return self.home.joinpath(*parts)

    @property
    def config(self) -> Path:
        return self._under('config')

    @property
    def config_active(self) -> Path:
        """YAML settings read by cyberrisk.config."""
        return self._under('config', 'active', 'config.yaml')

    @property
    def data(self) -> Path:
        return self._under('data')

    @property
    def logs(self) -> Path:
        """One rotating log per component."""
        return self._under('data', 'logs')

    @property
    def exports(self) -> Path:
        return self._under('data', 'exports')

    @property
    def risk_db(self) -> Path:
        """Default SQLite register."""
        return self._under('data', 'risk_register.db')

    @property
    def risk_json(self) -> Path:
        """Default JSON register document."""
        return self._under('data', 'risk_register.json')

    def export_file(self, name: str, ext: str = 'json') -> Path:
        """Path for an export named *name*, creating the exports directory."""
        self.exports.mkdir(parents=True, exist_ok=True)
        return self.exports / f"{name}.{ext}"

    def ensure_directories(self):
        for directory in (self.config_active.parent, self.logs, self.exports):
            directory.mkdir(parents=True, exist_ok=True)

    def __repr__(self) -> str:
        return f"PortablePaths(home={self.home})"


paths = PortablePaths()


def get_paths() -> PortablePaths:
    return paths
