from __future__ import annotations

import json
from pathlib import Path

import pytest

from taskflow_board.cli import main


def _json(capsys: pytest.CaptureFixture[str]) -> dict:
    return json.loads(capsys.readouterr().out)


def test_task_create_list_and_move(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    rc = main(['--project-dir', str(tmp_path), 'task', 'create', 'CLI Task', '--priority', 'high', '--tag', 'api'])
    assert rc == 0
    task_id = _json(capsys)['task']['id']

    assert main(['--project-dir', str(tmp_path), 'task', 'list', '--priority', 'high']) == 0
    assert [t['id'] for t in _json(capsys)['tasks']] == [task_id]

    assert main(['--project-dir', str(tmp_path), 'task', 'move', task_id, 'done']) == 0
    moved = _json(capsys)['task']
    assert moved['status'] == 'done'
    assert moved['order'] == 1000


def test_drop_and_board(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    ids = []
    for title in ('A', 'B'):
        main(['--project-dir', str(tmp_path), 'task', 'create', title])
        task_id = _json(capsys)['task']['id']
        main(['--project-dir', str(tmp_path), 'task', 'move', task_id, 'todo', '--order', str(1000 * (len(ids) + 1))])
        capsys.readouterr()
        ids.append(task_id)

    assert main(['--project-dir', str(tmp_path), 'drop', ids[0], ids[1]]) == 0
    assert _json(capsys)['rebalanced'] is False

    assert main(['--project-dir', str(tmp_path), 'board']) == 0
    todo = _json(capsys)['columns']['todo']
    assert [t['title'] for t in todo] == ['B', 'A']


def test_comment_and_activity(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    main(['--project-dir', str(tmp_path), 'task', 'create', 'x'])
    task_id = _json(capsys)['task']['id']
    assert main(['--project-dir', str(tmp_path), 'task', 'comment', task_id, 'ship it']) == 0
    capsys.readouterr()
    assert main(['--project-dir', str(tmp_path), 'activity', '--task-id', task_id, '--limit', '1']) == 0
    assert _json(capsys)['activities'][0]['message'] == 'ship it'


def test_unknown_task_fails(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    assert main(['--project-dir', str(tmp_path), 'task', 'delete', 'ghost']) == 1
    assert 'not found' in capsys.readouterr().err


def test_user_delete_guard(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    main(['--project-dir', str(tmp_path), 'user', 'add', 'Bo'])
    user_id = _json(capsys)['user']['id']
    main(['--project-dir', str(tmp_path), 'task', 'create', 'x', '--assignee', user_id])
    capsys.readouterr()

    assert main(['--project-dir', str(tmp_path), 'user', 'delete', user_id]) == 1
    assert '--force' in capsys.readouterr().err
    assert main(['--project-dir', str(tmp_path), 'user', 'delete', user_id, '--force']) == 0


def test_tags_stats_and_reset(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    assert main(['--project-dir', str(tmp_path), 'tag', 'add', 'Urgent', '--color', '#ff0000']) == 0
    assert _json(capsys)['tag']['name'] == 'urgent'

    assert main(['--project-dir', str(tmp_path), 'stats']) == 0
    assert _json(capsys)['tags'] == 12

    assert main(['--project-dir', str(tmp_path), 'reset']) == 1
    capsys.readouterr()
    assert main(['--project-dir', str(tmp_path), 'reset', '--yes']) == 0
    assert _json(capsys) == {'tasks': 0, 'users': 1, 'tags': 11, 'activities': 0, 'notes': 0}


def test_analytics(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    assert main(['--project-dir', str(tmp_path), 'analytics', '--days', '7']) == 0
    assert _json(capsys)['timeframe'] == 7


def test_board_table(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    main(['--project-dir', str(tmp_path), 'task', 'create', 'Write docs'])
    capsys.readouterr()
    assert main(['--project-dir', str(tmp_path), 'board', '--table']) == 0
    assert 'Write docs' in capsys.readouterr().out


def test_notes(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    assert main(['--project-dir', str(tmp_path), 'note', 'add', 'Ship on Monday', '--color', 'pink']) == 0
    note = _json(capsys)['note']
    assert note['color'] == '#fda4af'

    assert main(['--project-dir', str(tmp_path), 'note', 'update', note['id'], '--color', '#123456']) == 0
    assert _json(capsys)['note']['color'] == '#123456'

    assert main(['--project-dir', str(tmp_path), 'reset', '--yes']) == 0
    assert _json(capsys)['notes'] == 1

    assert main(['--project-dir', str(tmp_path), 'note', 'list']) == 0
    assert [n['content'] for n in _json(capsys)['notes']] == ['Ship on Monday']

    assert main(['--project-dir', str(tmp_path), 'note', 'delete', note['id']]) == 0
    assert _json(capsys) == {'deleted': note['id']}
    assert main(['--project-dir', str(tmp_path), 'note', 'delete', note['id']]) == 1
    assert 'not found' in capsys.readouterr().err


def test_blank_note_fails(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    assert main(['--project-dir', str(tmp_path), 'note', 'add', '   ']) == 1
    assert 'must not be empty' in capsys.readouterr().err


def test_corrupt_storage_fails(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    (tmp_path / '.taskflow').mkdir()
    (tmp_path / '.taskflow' / 'tasks.yaml').write_text('tasks: [1, 2\n', encoding='utf-8')
    assert main(['--project-dir', str(tmp_path), 'stats']) == 1
    assert capsys.readouterr().err
