#!/usr/bin/env python3
"""
Cyber Risk Register - Storage Backends
Load/save collaborators for RiskRegister. The register hands over plain
dicts (Risk.to_dict()) and expects the same shape back from load().
Backends raise on failure; the register turns failures into warnings.
"""

import json
import os
import sqlite3
import tempfile
from pathlib import Path
from typing import Any, Dict, List, Optional

try:
    from .config import config
    from .logger import get_logger
    from .models import utcnow
    from .paths import paths
except ImportError:
    from config import config
    from logger import get_logger
    from models import utcnow
    from paths import paths

logger = get_logger('storage')


class RiskStorage:
    """Persistence contract expected by RiskRegister."""

    def load(self) -> Optional[List[Dict[str, Any]]]:
        """Return stored records, or None when nothing has been saved yet."""
        raise NotImplementedError

    def save(self, records: List[Dict[str, Any]]):
        """Replace the stored collection with *records*."""
        raise NotImplementedError


class SqliteRiskStorage(RiskStorage):
    """One row per risk; the record itself is kept as a JSON document."""

    def __init__(self, db_path=None):
        self.db_path = Path(db_path) if db_path else paths.risk_db
        self._ensure_db()

    # ------------------------------------------------------------------
    # Database bootstrap
    # ------------------------------------------------------------------
    def _ensure_db(self):
        """Create database and tables if they don't exist."""
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

        with sqlite3.connect(str(self.db_path)) as conn:
            conn.executescript('''
                CREATE TABLE IF NOT EXISTS risks (
                    position    INTEGER NOT NULL,
                    risk_id     TEXT PRIMARY KEY,
                    status      TEXT,
                    severity    TEXT,
                    category    TEXT,
                    risk_score  INTEGER,
                    data        TEXT NOT NULL,
                    saved_at    TEXT NOT NULL
                );

                CREATE INDEX IF NOT EXISTS idx_risks_position ON risks(position);
                CREATE INDEX IF NOT EXISTS idx_risks_status ON risks(status);
                CREATE INDEX IF NOT EXISTS idx_risks_category ON risks(category);
            ''')

    def _conn(self) -> sqlite3.Connection:
        conn = sqlite3.connect(str(self.db_path))
        conn.row_factory = sqlite3.Row
        return conn

    def load(self) -> Optional[List[Dict[str, Any]]]:
        with self._conn() as conn:
            rows = conn.execute(
                "SELECT data FROM risks ORDER BY position ASC"
            ).fetchall()
        if not rows:
            return None
        return [json.loads(r['data']) for r in rows]

    def save(self, records: List[Dict[str, Any]]):
        now = utcnow().isoformat()
        with self._conn() as conn:
            conn.execute("DELETE FROM risks")
            conn.executemany(
                "INSERT INTO risks "
                "(position, risk_id, status, severity, category, risk_score, data, saved_at) "
                "VALUES (?, ?, ?, ?, ?, ?, ?, ?)",
                [
                    (
                        i, rec['id'], rec.get('status'), rec.get('severity'),
                        rec.get('category'), rec.get('risk_score'),
                        json.dumps(rec, ensure_ascii=False), now,
                    )
                    for i, rec in enumerate(records)
                ],
            )
        logger.debug(f"Saved {len(records)} risks to {self.db_path}")


class JsonFileRiskStorage(RiskStorage):
    """Whole collection in one JSON document, replaced atomically."""

    def __init__(self, path=None):
        self.path = Path(path) if path else paths.risk_json

    def load(self) -> Optional[List[Dict[str, Any]]]:
        if not self.path.exists():
            return None
        with open(self.path, 'r', encoding='utf-8') as f:
            document = json.load(f)
        return document.get('risks')

    def save(self, records: List[Dict[str, Any]]):
        self.path.parent.mkdir(parents=True, exist_ok=True)
        document = {'_saved_at': utcnow().isoformat(), 'risks': records}
        fd, tmp = tempfile.mkstemp(dir=str(self.path.parent), suffix='.tmp')
        try:
            with os.fdopen(fd, 'w', encoding='utf-8') as f:
                json.dump(document, f, indent=2, ensure_ascii=False)
            os.replace(tmp, self.path)
        except BaseException:
            if os.path.exists(tmp):
                os.unlink(tmp)
            raise
        logger.debug(f"Saved {len(records)} risks to {self.path}")


def storage_from_config() -> Optional[RiskStorage]:
    """Build the backend named by storage.backend (None = in-memory)."""
    backend = config.get_storage_backend()
    location = config.get('storage.path') or None
    if backend == 'sqlite':
        return SqliteRiskStorage(location)
    if backend == 'json':
        return JsonFileRiskStorage(location)
    if backend == 'memory':
        return None
    raise ValueError(f"Unknown storage backend: {backend!r}")
