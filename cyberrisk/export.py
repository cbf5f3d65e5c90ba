#!/usr/bin/env python3
"""
Cyber Risk Register - Export Module
Renders risks as JSON or CSV for spreadsheets and GRC tooling.
"""

import csv
import io
import json
from pathlib import Path
from typing import Any, Dict, Iterable, List

try:
    from .logger import get_logger
    from .models import Risk, to_plain
except ImportError:
    from logger import get_logger
    from models import Risk, to_plain

logger = get_logger('export')

EXPORT_FORMATS = ('json', 'csv')

EXPORT_COLUMNS = [
    'id', 'title', 'description', 'status', 'severity', 'category',
    'owner', 'assignee', 'due_date', 'risk_score', 'estimated_cost',
    'tags', 'created_date', 'last_updated',
]


def export_row(risk: Risk) -> Dict[str, Any]:
    """Flatten a risk into the exported columns."""
    return {
        'id': risk.id,
        'title': risk.title,
        'description': risk.description,
        'status': risk.status.value,
        'severity': risk.severity.value,
        'category': risk.category.value,
        'owner': risk.owner,
        'assignee': risk.assignee,
        'due_date': to_plain(risk.due_date),
        'risk_score': risk.risk_score,
        'estimated_cost': risk.estimated_cost,
        'tags': ', '.join(sorted(risk.tags)),
        'created_date': to_plain(risk.created_date),
        'last_updated': to_plain(risk.last_updated),
    }


def export_risks(risks: Iterable[Risk], fmt: str = 'json') -> str:
    """Render *risks* as a JSON array or a fully quoted CSV document."""
    fmt = (fmt or '').lower()
    if fmt not in EXPORT_FORMATS:
        raise ValueError(
            f"Unsupported export format '{fmt}'. Must be one of: {', '.join(EXPORT_FORMATS)}"
        )

    rows: List[Dict[str, Any]] = [export_row(r) for r in risks]

    if fmt == 'json':
        return json.dumps(rows, indent=2, ensure_ascii=False)

    buf = io.StringIO()
    writer = csv.DictWriter(buf, fieldnames=EXPORT_COLUMNS,
                            quoting=csv.QUOTE_ALL, lineterminator='\n')
    writer.writeheader()
    for row in rows:
        writer.writerow({k: '' if v is None else v for k, v in row.items()})
    return buf.getvalue()


def write_export(filepath, risks: Iterable[Risk], fmt: str = 'json') -> Path:
    """Export *risks* to *filepath*, creating parent directories."""
    content = export_risks(risks, fmt)
    filepath = Path(filepath)
    filepath.parent.mkdir(parents=True, exist_ok=True)
    with open(filepath, 'w', newline='', encoding='utf-8') as fh:
        fh.write(content)
    logger.info(f"Exported risks to {filepath} ({fmt})")
    return filepath
