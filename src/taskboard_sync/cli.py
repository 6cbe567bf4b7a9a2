from __future__ import annotations

import argparse
import asyncio
import json
import sys
from dataclasses import asdict
from pathlib import Path
from typing import Any, Optional

from rich.console import Console
from rich.markup import escape
from rich.table import Table

from .board import BoardController
from .client.api import TasksAPI
from .config import ClientConfig, load_client_config
from .constants import COLUMN_IDS, HISTORY_FILTER_ALL
from .logging_utils import configure_logging, summarize_outcome
from .sync_engine.bulk import BulkEditForm
from .sync_engine.history import describe_entry, filter_options
from .sync_engine.model import TaskPriority, TaskStatus


def _load_config(args: argparse.Namespace) -> ClientConfig:
    project_dir = Path(args.project_dir).expanduser().resolve() if args.project_dir else None
    config_file = Path(args.config).expanduser() if args.config else None
    config, err = load_client_config(project_dir, path=config_file)
    if err:
        sys.stderr.write(f"Ignoring config: {err}\n")
    if args.api_url:
        config.api_url = args.api_url
    if args.token:
        config.token = args.token
    return config


def _make_api(config: ClientConfig) -> TasksAPI:
    return TasksAPI(config.api_url, token=config.token, timeout=config.timeout, messages=config.messages)


def _write_json(payload: Any) -> None:
    sys.stdout.write(json.dumps(payload, indent=2, default=str) + '\n')


async def _board(args: argparse.Namespace, config: ClientConfig) -> int:
    async with _make_api(config) as api:
        board = BoardController(api, args.project_id, config=config)
        outcome = await board.load()
    if not outcome.ok:
        sys.stderr.write(f"{outcome.message}\n")
        return 1
    columns = board.tasks.columns()
    if args.json:
        _write_json({col: [t.to_dict() for t in tasks] for col, tasks in columns.items()})
        return 0
    table = Table(title=f"Project {args.project_id}")
    for col in COLUMN_IDS:
        table.add_column(f"{col} ({len(columns[col])})")
    depth = max((len(tasks) for tasks in columns.values()), default=0)
    for row in range(depth):
        cells = []
        for col in COLUMN_IDS:
            tasks = columns[col]
            cells.append(f"{escape(tasks[row].title)} ({tasks[row].priority.value.lower()})" if row < len(tasks) else "")
        table.add_row(*cells)
    Console().print(table)
    return 0


async def _move(args: argparse.Namespace, config: ClientConfig) -> int:
    async with _make_api(config) as api:
        board = BoardController(api, args.project_id, config=config)
        loaded = await board.load()
        if not loaded.ok:
            sys.stderr.write(f"{loaded.message}\n")
            return 1
        outcome = await board.move_task(args.task_id, args.drop_target)
    _write_json(summarize_outcome(outcome))
    return 0 if outcome.ok else 1


def _parse_field(raw: str) -> tuple[str, str]:
    key, sep, value = raw.partition('=')
    if not sep or not key.strip() or not value.strip():
        raise argparse.ArgumentTypeError(f"Expected KEY=VALUE, got {raw!r}")
    return key.strip(), value.strip()


async def _bulk_update(args: argparse.Namespace, config: ClientConfig) -> int:
    form = BulkEditForm()
    if args.status:
        form.set_field('status', args.status)
    if args.priority:
        form.set_field('priority', args.priority)
    if args.unassign:
        form.set_field('assignee_id', None)
    elif args.assignee:
        form.set_field('assignee_id', args.assignee)
    for tag in args.tag or []:
        form.pending_tag = tag
        form.add_tag()
    for key, value in args.field or []:
        form.pending_field_key, form.pending_field_value = key, value
        form.add_custom_field()

    async with _make_api(config) as api:
        board = BoardController(api, args.project_id, config=config)
        loaded = await board.load()
        if not loaded.ok:
            sys.stderr.write(f"{loaded.message}\n")
            return 1
        outcome = await board.bulk_update(args.task_ids, form.to_patch())
    _write_json(summarize_outcome(outcome, max_failures=len(args.task_ids)))
    return 0 if outcome.ok else 1


async def _history(args: argparse.Namespace, config: ClientConfig) -> int:
    async with _make_api(config) as api:
        board = BoardController(api, project_id='', config=config)
        outcome = await board.fetch_history(args.task_id, args.type)
    if not outcome.ok:
        sys.stderr.write(f"{outcome.message}\n")
        return 1
    if args.json:
        _write_json({'history': [asdict(entry) for entry in outcome.history]})
        return 0
    if not outcome.history:
        sys.stdout.write('No history' + ('' if args.type == HISTORY_FILTER_ALL else ' matching the filter') + '\n')
        return 0
    for entry in outcome.history:
        sys.stdout.write('\n'.join(describe_entry(entry)) + '\n\n')
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description='Task board client: move, bulk-edit and inspect tasks')
    parser.add_argument('--project-dir', default=None, help='Directory holding .taskboard/config.yaml')
    parser.add_argument('--config', default=None, help='Explicit config file')
    parser.add_argument('--api-url', default=None, help='Task service root URL')
    parser.add_argument('--token', default=None, help='Bearer token')
    parser.add_argument('--log-level', default='WARNING')
    sub = parser.add_subparsers(dest='command', required=True)

    board = sub.add_parser('board', help='Show a project board')
    board.add_argument('project_id')
    board.add_argument('--json', action='store_true')
    board.set_defaults(func=_board)

    move = sub.add_parser('move', help='Drop a task onto a column or another task')
    move.add_argument('project_id')
    move.add_argument('task_id')
    move.add_argument('drop_target', help='Column (TODO, IN_PROGRESS, DONE) or task id')
    move.set_defaults(func=_move)

    bulk = sub.add_parser('bulk-update', help='Apply one change to many tasks')
    bulk.add_argument('project_id')
    bulk.add_argument('task_ids', nargs='+')
    bulk.add_argument('--status', choices=[s.value for s in TaskStatus])
    bulk.add_argument('--priority', choices=[p.value for p in TaskPriority])
    bulk.add_argument('--assignee')
    bulk.add_argument('--unassign', action='store_true')
    bulk.add_argument('--tag', action='append', help='Replace tags with the given list (repeatable)')
    bulk.add_argument('--field', action='append', type=_parse_field, help='Custom field KEY=VALUE (repeatable)')
    bulk.set_defaults(func=_bulk_update)

    history = sub.add_parser('history', help='Show a task\'s change history')
    history.add_argument('task_id')
    history.add_argument('--type', default=HISTORY_FILTER_ALL, choices=filter_options())
    history.add_argument('--json', action='store_true')
    history.set_defaults(func=_history)
    return parser


def main(argv: Optional[list[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    configure_logging(args.log_level)
    config = _load_config(args)
    return asyncio.run(args.func(args, config))


if __name__ == '__main__':
    raise SystemExit(main())
