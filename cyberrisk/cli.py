#!/usr/bin/env python3
"""
Cyber Risk Register - Command Line Interface

Usage:
    cyberrisk list [--status S] [--severity S] [--category C] [--search TEXT] [--tag T ...]
    cyberrisk show RISK_ID
    cyberrisk create --title T --description D --owner O --severity S --category C [...]
    cyberrisk update RISK_ID --set field=value [--set field=value ...]
    cyberrisk status RISK_ID NEW_STATUS [--comment TEXT]
    cyberrisk delete RISK_ID
    cyberrisk metrics
    cyberrisk export [--format json|csv] [--output FILE | --save]
    cyberrisk from-threat THREAT.json
"""

import argparse
import json
import logging
import sys
from datetime import datetime
from typing import Any, Dict, List, Optional

try:
    from .export import EXPORT_FORMATS
    from .logger import RiskLogger
    from .models import Category, Level, Severity, Status
    from .paths import paths
    from .register import get_risk_register
except ImportError:
    from export import EXPORT_FORMATS
    from logger import RiskLogger
    from models import Category, Level, Severity, Status
    from paths import paths
    from register import get_risk_register


def _print_json(data: Any):
    print(json.dumps(data, indent=2, default=str, ensure_ascii=False))


def _emit(result) -> int:
    """Print an OperationResult/BulkResult and map it to an exit code."""
    _print_json(result.to_dict())
    for w in getattr(result, 'warnings', []):
        print(f"Warning: {w.message}", file=sys.stderr)
    return 0 if result.success else 1


def _parse_assignments(pairs: List[str]) -> Dict[str, Any]:
    """field=value pairs; values are parsed as JSON when possible."""
    data: Dict[str, Any] = {}
    for pair in pairs:
        if '=' not in pair:
            raise argparse.ArgumentTypeError(f"Expected field=value, got {pair!r}")
        key, raw = pair.split('=', 1)
        try:
            data[key.strip()] = json.loads(raw)
        except json.JSONDecodeError:
            data[key.strip()] = raw
    return data


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog='cyberrisk', description='Cyber risk register')
    parser.add_argument('--actor', help='Name recorded in the audit trail')
    parser.add_argument('-v', '--verbose', action='store_true',
                        help='Debug-level logging to data/logs')
    sub = parser.add_subparsers(dest='command')

    p = sub.add_parser('list', help='List risks, optionally filtered')
    p.add_argument('--status', default='All')
    p.add_argument('--severity', default='All')
    p.add_argument('--category', default='All')
    p.add_argument('--owner', default='All')
    p.add_argument('--assignee', default='All')
    p.add_argument('--search', default='')
    p.add_argument('--tag', dest='tags', action='append', default=[])
    p.add_argument('--date-range', default='All',
                   choices=['All', 'Last 7 days', 'Last 30 days', 'Last 90 days'])

    p = sub.add_parser('show', help='Show one risk with its audit trail')
    p.add_argument('risk_id')

    p = sub.add_parser('create', help='Create a risk')
    p.add_argument('--title', required=True)
    p.add_argument('--description', required=True)
    p.add_argument('--owner', required=True)
    p.add_argument('--severity', required=True, choices=Severity.labels())
    p.add_argument('--category', required=True, choices=Category.labels())
    p.add_argument('--probability', default=Level.MEDIUM.value, choices=Level.labels())
    p.add_argument('--impact', default=Level.MEDIUM.value, choices=Level.labels())
    p.add_argument('--status', default=Status.OPEN.value, choices=Status.labels())
    p.add_argument('--assignee', default='')
    p.add_argument('--due-date', help='YYYY-MM-DD')
    p.add_argument('--tag', dest='tags', action='append', default=[])
    p.add_argument('--source', default='Manual Entry')

    p = sub.add_parser('update', help='Update fields of a risk')
    p.add_argument('risk_id')
    p.add_argument('--set', dest='assignments', action='append', default=[],
                   metavar='FIELD=VALUE', required=True)

    p = sub.add_parser('status', help='Change the status of a risk')
    p.add_argument('risk_id')
    p.add_argument('new_status', choices=Status.labels())
    p.add_argument('--comment')

    p = sub.add_parser('delete', help='Delete a risk permanently')
    p.add_argument('risk_id')

    sub.add_parser('metrics', help='Show register metrics')

    p = sub.add_parser('export', help='Export risks')
    p.add_argument('-f', '--format', default='json', choices=EXPORT_FORMATS)
    group = p.add_mutually_exclusive_group()
    group.add_argument('-o', '--output', help='Write to file instead of stdout')
    group.add_argument('--save', action='store_true',
                       help='Write a timestamped file under data/exports')

    p = sub.add_parser('from-threat', help='Create a risk from a threat JSON file')
    p.add_argument('threat_file')

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 2

    if args.verbose:
        RiskLogger.set_level(logging.DEBUG)

    register = get_risk_register()
    if register.load_warning is not None:
        print(f"Warning: {register.load_warning.message}", file=sys.stderr)

    if args.command == 'list':
        risks = register.query({
            'status': args.status, 'severity': args.severity,
            'category': args.category, 'owner': args.owner,
            'assignee': args.assignee, 'search': args.search,
            'tags': args.tags, 'date_range': args.date_range,
        })
        _print_json([r.to_dict(include_audit=False) for r in risks])
        return 0

    if args.command == 'show':
        risk = register.get_risk(args.risk_id)
        if risk is None:
            print(f"Risk not found: {args.risk_id}", file=sys.stderr)
            return 1
        _print_json(risk.to_dict())
        return 0

    if args.command == 'create':
        data = {
            'title': args.title, 'description': args.description,
            'owner': args.owner, 'severity': args.severity,
            'category': args.category, 'probability': args.probability,
            'impact': args.impact, 'status': args.status,
            'assignee': args.assignee, 'tags': args.tags, 'source': args.source,
        }
        if args.due_date:
            data['due_date'] = args.due_date
        return _emit(register.create_risk(data, actor=args.actor))

    if args.command == 'update':
        try:
            partial = _parse_assignments(args.assignments)
        except argparse.ArgumentTypeError as e:
            parser.error(str(e))
        return _emit(register.update_risk(args.risk_id, partial, actor=args.actor))

    if args.command == 'status':
        return _emit(register.change_status(args.risk_id, args.new_status,
                                            comment=args.comment, actor=args.actor))

    if args.command == 'delete':
        return _emit(register.delete_risk(args.risk_id))

    if args.command == 'metrics':
        _print_json(register.metrics())
        return 0

    if args.command == 'export':
        output = args.output
        if output is None and args.save:
            stamp = datetime.now().strftime('%Y%m%d_%H%M%S')
            output = paths.export_file(f"risk_register_{stamp}", args.format)
        if output:
            path = register.write_export(output, args.format)
            print(f"Exported {len(register)} risks to {path}")
        else:
            print(register.export_risks(args.format))
        return 0

    if args.command == 'from-threat':
        try:
            with open(args.threat_file, 'r', encoding='utf-8') as f:
                threat = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            print(f"Cannot read threat file: {e}", file=sys.stderr)
            return 1
        return _emit(register.create_risk_from_threat(threat, actor=args.actor))

    parser.print_help()
    return 2


if __name__ == '__main__':
    sys.exit(main())
