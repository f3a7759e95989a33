from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path
from typing import Any, Optional

from rich.console import Console
from rich.table import Table

from .board.engine import BoardEngine, ReferenceInUseError
from .board.model import PRIORITY_ORDER, STATUSES, Filters, Priority, Status, Task, TaskDraft
from .board.ordering import append_order
from .constants import NOTE_COLORS
from .server import create_app
from .storage.container import BoardContainer
from .storage.file_repos import CorruptCollectionError

STATUS_CHOICES = [s.value for s in STATUSES]
PRIORITY_CHOICES = [p.value for p in PRIORITY_ORDER]


def _resolve_project_dir(project_dir: Optional[str]) -> Path:
    return Path(project_dir).expanduser().resolve() if project_dir else Path.cwd().resolve()


def _emit(payload: Any) -> None:
    sys.stdout.write(json.dumps(payload, indent=2) + '\n')


def _run(args: argparse.Namespace, action) -> int:
    """Open the board, run *action*, and flush pending writes on the way out."""
    container = BoardContainer(_resolve_project_dir(args.project_dir))
    try:
        engine = container.open()
        return action(engine)
    except (ValueError, CorruptCollectionError) as exc:
        sys.stderr.write(str(exc) + '\n')
        return 1
    finally:
        container.close()


def _filters(args: argparse.Namespace) -> Filters:
    return Filters(
        assignees=list(args.assignee or []),
        tags=list(args.tag or []),
        priorities=[Priority(p) for p in args.priority or []],
        query=args.query or '',
    )


def _task_create(args: argparse.Namespace) -> int:
    def action(engine: BoardEngine) -> int:
        task = engine.create_task(
            TaskDraft(
                title=args.title,
                description=args.description,
                status=args.status,
                priority=args.priority,
                tags=list(args.tag or []),
                assignee_id=args.assignee,
                due_date=args.due,
            )
        )
        _emit({'task': task.to_dict()})
        return 0

    return _run(args, action)


def _task_list(args: argparse.Namespace) -> int:
    def action(engine: BoardEngine) -> int:
        tasks = engine.filtered_tasks(_filters(args))
        if args.status:
            tasks = [task for task in tasks if task.status.value == args.status]
        _emit({'tasks': [task.to_dict() for task in tasks]})
        return 0

    return _run(args, action)


def _task_update(args: argparse.Namespace) -> int:
    def action(engine: BoardEngine) -> int:
        changes: dict[str, Any] = {}
        for key in ('title', 'description', 'priority', 'due_date'):
            value = getattr(args, key)
            if value is not None:
                changes[key] = value
        if args.tag is not None:
            changes['tags'] = list(args.tag)
        if args.assignee is not None:
            changes['assignee_id'] = args.assignee or None
        task = engine.update_task(args.task_id, changes)
        if task is None:
            sys.stderr.write(f"Task {args.task_id} not found\n")
            return 1
        _emit({'task': task.to_dict()})
        return 0

    return _run(args, action)


def _task_move(args: argparse.Namespace) -> int:
    def action(engine: BoardEngine) -> int:
        order = args.order
        if order is None:
            order = append_order(engine.view()[Status(args.status)], engine.config.order_gap)
        task = engine.move_task(args.task_id, args.status, order)
        if task is None:
            sys.stderr.write(f"Task {args.task_id} not found\n")
            return 1
        _emit({'task': task.to_dict()})
        return 0

    return _run(args, action)


def _task_delete(args: argparse.Namespace) -> int:
    def action(engine: BoardEngine) -> int:
        task = engine.delete_task(args.task_id)
        if task is None:
            sys.stderr.write(f"Task {args.task_id} not found\n")
            return 1
        _emit({'deleted': task.id})
        return 0

    return _run(args, action)


def _task_comment(args: argparse.Namespace) -> int:
    def action(engine: BoardEngine) -> int:
        activity = engine.add_comment(args.task_id, args.message, user_id=args.user)
        if activity is None:
            sys.stderr.write(f"Task {args.task_id} not found\n")
            return 1
        _emit({'activity': activity.to_dict()})
        return 0

    return _run(args, action)


def _print_board_table(columns: dict[Status, list[Task]]) -> None:
    table = Table(title='Board', show_header=True)
    table.add_column('Status', style='bold')
    table.add_column('Order', justify='right')
    table.add_column('Task', style='cyan')
    table.add_column('Priority')
    table.add_column('Tags', style='dim')
    for status, bucket in columns.items():
        for task in bucket:
            table.add_row(status.label, f'{task.order:g}', task.title, task.priority.value, ', '.join(task.tags))
    Console().print(table)


def _board(args: argparse.Namespace) -> int:
    def action(engine: BoardEngine) -> int:
        columns = engine.view(_filters(args))
        if args.table:
            _print_board_table(columns)
            return 0
        _emit({'columns': {status.value: [t.to_dict() for t in bucket] for status, bucket in columns.items()}})
        return 0

    return _run(args, action)


def _drop(args: argparse.Namespace) -> int:
    def action(engine: BoardEngine) -> int:
        resolution = engine.handle_drag_end(args.active_id, args.over_id, _filters(args))
        _emit({
            'moves': [
                {'task_id': m.task_id, 'status': m.status.value, 'order': m.order}
                for m in resolution.moves
            ],
            'rebalanced': resolution.rebalanced,
        })
        return 0

    return _run(args, action)


def _activity(args: argparse.Namespace) -> int:
    def action(engine: BoardEngine) -> int:
        entries = engine.activities(task_id=args.task_id, limit=args.limit)
        _emit({'activities': [a.to_dict() for a in entries]})
        return 0

    return _run(args, action)


def _analytics(args: argparse.Namespace) -> int:
    def action(engine: BoardEngine) -> int:
        _emit(engine.analytics(args.days))
        return 0

    return _run(args, action)


def _stats(args: argparse.Namespace) -> int:
    def action(engine: BoardEngine) -> int:
        _emit(engine.stats())
        return 0

    return _run(args, action)


def _reset(args: argparse.Namespace) -> int:
    if not args.yes:
        sys.stderr.write("Refusing to reset without --yes\n")
        return 1

    def action(engine: BoardEngine) -> int:
        engine.reset()
        _emit(engine.stats())
        return 0

    return _run(args, action)


def _user_list(args: argparse.Namespace) -> int:
    def action(engine: BoardEngine) -> int:
        _emit({'users': [u.to_dict() for u in engine.users.users]})
        return 0

    return _run(args, action)


def _user_add(args: argparse.Namespace) -> int:
    def action(engine: BoardEngine) -> int:
        user = engine.users.add_user(args.name, role=args.role, avatar=args.avatar)
        _emit({'user': user.to_dict()})
        return 0

    return _run(args, action)


def _user_delete(args: argparse.Namespace) -> int:
    def action(engine: BoardEngine) -> int:
        try:
            user = engine.delete_user(args.user_id, force=args.force)
        except ReferenceInUseError as exc:
            sys.stderr.write(str(exc) + ' (use --force to delete anyway)\n')
            return 1
        if user is None:
            sys.stderr.write(f"User {args.user_id} not found\n")
            return 1
        _emit({'deleted': user.id})
        return 0

    return _run(args, action)


def _tag_list(args: argparse.Namespace) -> int:
    def action(engine: BoardEngine) -> int:
        _emit({'tags': [t.to_dict() for t in engine.tags.tags]})
        return 0

    return _run(args, action)


def _tag_add(args: argparse.Namespace) -> int:
    def action(engine: BoardEngine) -> int:
        tag = engine.tags.add(args.name, args.color)
        _emit({'tag': tag.to_dict()})
        return 0

    return _run(args, action)


def _tag_delete(args: argparse.Namespace) -> int:
    def action(engine: BoardEngine) -> int:
        try:
            tag = engine.delete_tag(args.tag_id, force=args.force)
        except ReferenceInUseError as exc:
            sys.stderr.write(str(exc) + ' (use --force to delete anyway)\n')
            return 1
        if tag is None:
            sys.stderr.write(f"Tag {args.tag_id} not found\n")
            return 1
        _emit({'deleted': tag.id})
        return 0

    return _run(args, action)


def _note_list(args: argparse.Namespace) -> int:
    def action(engine: BoardEngine) -> int:
        _emit({'notes': [n.to_dict() for n in engine.notes.notes]})
        return 0

    return _run(args, action)


def _note_add(args: argparse.Namespace) -> int:
    def action(engine: BoardEngine) -> int:
        note = engine.notes.add_note(args.content, NOTE_COLORS.get(args.color, args.color))
        _emit({'note': note.to_dict()})
        return 0

    return _run(args, action)


def _note_update(args: argparse.Namespace) -> int:
    def action(engine: BoardEngine) -> int:
        note = engine.notes.update_note(args.note_id, args.content, NOTE_COLORS.get(args.color, args.color))
        if note is None:
            sys.stderr.write(f"Note {args.note_id} not found\n")
            return 1
        _emit({'note': note.to_dict()})
        return 0

    return _run(args, action)


def _note_delete(args: argparse.Namespace) -> int:
    def action(engine: BoardEngine) -> int:
        note = engine.notes.delete_note(args.note_id)
        if note is None:
            sys.stderr.write(f"Note {args.note_id} not found\n")
            return 1
        _emit({'deleted': note.id})
        return 0

    return _run(args, action)


def _server(args: argparse.Namespace) -> int:
    try:
        import uvicorn
    except ImportError:
        sys.stderr.write("Install server extras: pip install 'taskflow-board[server]'\n")
        return 1

    app = create_app(project_dir=_resolve_project_dir(args.project_dir))
    uvicorn.run(app, host=args.host, port=args.port)
    return 0


def _add_filter_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument('--assignee', action='append', default=None, help='Assignee id (repeatable)')
    parser.add_argument('--tag', action='append', default=None, help='Tag name (repeatable)')
    parser.add_argument('--priority', action='append', default=None, choices=PRIORITY_CHOICES)
    parser.add_argument('--query', default=None, help='Text search over title, description and tags')


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description='Taskflow personal task board')
    parser.add_argument('--project-dir', default=None, help='Directory holding the .taskflow/ state (default: current working directory)')
    subparsers = parser.add_subparsers(dest='command', required=True)

    server = subparsers.add_parser('server', help='Start the board web server')
    server.add_argument('--host', default='127.0.0.1')
    server.add_argument('--port', default=8000, type=int)
    server.set_defaults(func=_server)

    task = subparsers.add_parser('task', help='Manage tasks')
    task_sub = task.add_subparsers(dest='task_cmd', required=True)
    tcreate = task_sub.add_parser('create', help='Create a task')
    tcreate.add_argument('title')
    tcreate.add_argument('--description', default='')
    tcreate.add_argument('--status', default='todo', choices=STATUS_CHOICES)
    tcreate.add_argument('--priority', default='medium', choices=PRIORITY_CHOICES)
    tcreate.add_argument('--tag', action='append', default=None)
    tcreate.add_argument('--assignee', default=None)
    tcreate.add_argument('--due', default=None, help='Due date (YYYY-MM-DD)')
    tcreate.set_defaults(func=_task_create)
    tlist = task_sub.add_parser('list', help='List tasks')
    tlist.add_argument('--status', default=None, choices=STATUS_CHOICES)
    _add_filter_args(tlist)
    tlist.set_defaults(func=_task_list)
    tupdate = task_sub.add_parser('update', help='Update task fields')
    tupdate.add_argument('task_id')
    tupdate.add_argument('--title', default=None)
    tupdate.add_argument('--description', default=None)
    tupdate.add_argument('--priority', default=None, choices=PRIORITY_CHOICES)
    tupdate.add_argument('--tag', action='append', default=None)
    tupdate.add_argument('--assignee', default=None, help="Assignee id ('' to unassign)")
    tupdate.add_argument('--due', dest='due_date', default=None)
    tupdate.set_defaults(func=_task_update)
    tmove = task_sub.add_parser('move', help='Move a task to a column')
    tmove.add_argument('task_id')
    tmove.add_argument('status', choices=STATUS_CHOICES)
    tmove.add_argument('--order', type=float, default=None, help='Explicit order key (default: end of column)')
    tmove.set_defaults(func=_task_move)
    tdelete = task_sub.add_parser('delete', help='Delete a task')
    tdelete.add_argument('task_id')
    tdelete.set_defaults(func=_task_delete)
    tcomment = task_sub.add_parser('comment', help='Comment on a task')
    tcomment.add_argument('task_id')
    tcomment.add_argument('message')
    tcomment.add_argument('--user', default=None)
    tcomment.set_defaults(func=_task_comment)

    board = subparsers.add_parser('board', help='Show the grouped board')
    board.add_argument('--table', action='store_true', help='Render a table instead of JSON')
    _add_filter_args(board)
    board.set_defaults(func=_board)

    drop = subparsers.add_parser('drop', help='Drop a task onto another task or a column id')
    drop.add_argument('active_id')
    drop.add_argument('over_id')
    _add_filter_args(drop)
    drop.set_defaults(func=_drop)

    activity = subparsers.add_parser('activity', help='Show recent activity')
    activity.add_argument('--task-id', default=None)
    activity.add_argument('--limit', type=int, default=None)
    activity.set_defaults(func=_activity)

    analytics = subparsers.add_parser('analytics', help='Show dashboard analytics')
    analytics.add_argument('--days', type=int, default=30, choices=[7, 30, 90])
    analytics.set_defaults(func=_analytics)

    stats = subparsers.add_parser('stats', help='Show collection counts')
    stats.set_defaults(func=_stats)

    reset = subparsers.add_parser('reset', help='Delete all board data and reseed defaults')
    reset.add_argument('--yes', action='store_true')
    reset.set_defaults(func=_reset)

    user = subparsers.add_parser('user', help='Manage users')
    user_sub = user.add_subparsers(dest='user_cmd', required=True)
    ulist = user_sub.add_parser('list', help='List users')
    ulist.set_defaults(func=_user_list)
    uadd = user_sub.add_parser('add', help='Add a user')
    uadd.add_argument('name')
    uadd.add_argument('--role', default=None)
    uadd.add_argument('--avatar', default=None)
    uadd.set_defaults(func=_user_add)
    udelete = user_sub.add_parser('delete', help='Delete a user')
    udelete.add_argument('user_id')
    udelete.add_argument('--force', action='store_true')
    udelete.set_defaults(func=_user_delete)

    tag = subparsers.add_parser('tag', help='Manage tags')
    tag_sub = tag.add_subparsers(dest='tag_cmd', required=True)
    glist = tag_sub.add_parser('list', help='List tags')
    glist.set_defaults(func=_tag_list)
    gadd = tag_sub.add_parser('add', help='Add a tag')
    gadd.add_argument('name')
    gadd.add_argument('--color', default=None)
    gadd.set_defaults(func=_tag_add)
    gdelete = tag_sub.add_parser('delete', help='Delete a tag')
    gdelete.add_argument('tag_id')
    gdelete.add_argument('--force', action='store_true')
    gdelete.set_defaults(func=_tag_delete)

    note = subparsers.add_parser('note', help='Manage sticky notes')
    note_sub = note.add_subparsers(dest='note_cmd', required=True)
    nlist = note_sub.add_parser('list', help='List notes')
    nlist.set_defaults(func=_note_list)
    nadd = note_sub.add_parser('add', help='Add a note')
    nadd.add_argument('content')
    nadd.add_argument('--color', default=None, help='Colour name (yellow, pink, ...) or hex value')
    nadd.set_defaults(func=_note_add)
    nupdate = note_sub.add_parser('update', help='Edit a note')
    nupdate.add_argument('note_id')
    nupdate.add_argument('--content', default=None)
    nupdate.add_argument('--color', default=None)
    nupdate.set_defaults(func=_note_update)
    ndelete = note_sub.add_parser('delete', help='Delete a note')
    ndelete.add_argument('note_id')
    ndelete.set_defaults(func=_note_delete)

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    handler = getattr(args, 'func', None)
    if handler is None:
        parser.print_help()
        return 1
    return int(handler(args) or 0)


if __name__ == '__main__':
    sys.exit(main())
