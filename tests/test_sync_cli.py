"""Tests for the sync CLI entry point."""

import json
from unittest.mock import patch

import pytest

import sync
from daycare_sync import database


def _run(argv: list[str]) -> None:
    args = sync.build_parser().parse_args(argv)
    args.func(args)


def test_add_child_and_provider(tmp_path, capsys):
    db_path = tmp_path / "test.db"
    with patch.object(sync, "db_path", return_value=db_path):
        _run(["add-child", "alex", "Emma", "--last-name", "Smith"])
        _run(["add-provider", "alex", "@tadpoles.com", "--name", "Goddard School"])

    assert "Added Emma Smith" in capsys.readouterr().out
    assert database.list_children("alex", db_path=db_path)[0].first_name == "Emma"
    binding = database.list_provider_bindings("alex", db_path=db_path)[0]
    assert binding.provider_name == "Goddard School"
    assert binding.strategy_id is None


def test_add_provider_rejects_unknown_strategy():
    with pytest.raises(SystemExit):
        sync.build_parser().parse_args(["add-provider", "alex", "@x.com", "--strategy", "bogus"])


def test_stats_prints_summary(tmp_path, capsys):
    db_path = tmp_path / "test.db"
    child = database.add_child("alex", "Emma", db_path=db_path)
    database.save_report({
        "child_id": child.id, "report_date": "2025-03-03", "teacher_notes": "",
        "parent_notes": None, "raw_email_id": "m1",
        "naps_data": [{"start_time": None, "end_time": None, "duration_text": "1 hr 30 mins"}],
        "meals_data": [], "bathroom_events_data": [], "activities_data": [], "photos_data": [],
    }, db_path=db_path)

    with patch.object(sync, "db_path", return_value=db_path):
        _run(["stats", "alex", "emma"])

    summary = json.loads(capsys.readouterr().out)
    assert summary["sleep"] == [{"date": "2025-03-03", "total_minutes": 90}]


def test_sync_unknown_user_exits_nonzero():
    with patch.object(sync, "users", {}):
        with pytest.raises(SystemExit) as exc:
            _run(["sync", "--user", "nobody"])
    assert exc.value.code == 1


def test_runs_shows_one_run_in_detail(tmp_path, capsys):
    db_path = tmp_path / "test.db"
    database.start_run("run-1", "alex", db_path=db_path)
    database.finish_run(
        "run-1", "success", {"imported": 1}, [{"message_id": "m1", "outcome": "SUCCESS"}],
        db_path=db_path,
    )

    with patch.object(sync, "db_path", return_value=db_path):
        _run(["runs", "run-1"])

    run = json.loads(capsys.readouterr().out)
    assert run["status"] == "success"
    assert run["outcomes"] == [{"message_id": "m1", "outcome": "SUCCESS"}]


def test_runs_unknown_run_exits_nonzero(tmp_path):
    with patch.object(sync, "db_path", return_value=tmp_path / "test.db"):
        with pytest.raises(SystemExit) as exc:
            _run(["runs", "missing"])
    assert exc.value.code == 1
