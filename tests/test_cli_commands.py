"""Tests for CLI commands and shared argument helpers."""

import argparse
import json
from unittest.mock import Mock, patch

import pytest

from src.argparse_shared import (
    add_dry_run_argument,
    add_plan_argument,
    add_user_id_argument,
    get_base_parser,
)
from src.cli.commands import (
    _load_event,
    backfill_counters,
    create_parser,
    init_db,
    main,
    show_project,
)
from src.db.factory import create_repository


class TestSharedArguments:
    """Tests for argparse_shared helpers."""

    def test_base_parser_env_file(self):
        parser = get_base_parser()
        assert parser.parse_args(["-e", "/path/.env"]).env_file == "/path/.env"
        assert parser.parse_args([]).env_file is None

    def test_dry_run_defaults_to_false(self):
        parser = argparse.ArgumentParser()
        add_dry_run_argument(parser)
        assert parser.parse_args([]).dry_run is False
        assert parser.parse_args(["--dry-run"]).dry_run is True

    def test_user_id_required(self):
        parser = argparse.ArgumentParser()
        add_user_id_argument(parser)
        with pytest.raises(SystemExit):
            parser.parse_args([])

    def test_plan_choices(self):
        parser = argparse.ArgumentParser()
        add_plan_argument(parser)
        assert parser.parse_args([]).plan == "free"
        assert parser.parse_args(["--plan", "ultra"]).plan == "ultra"
        with pytest.raises(SystemExit):
            parser.parse_args(["--plan", "gold"])


class TestCreateParser:
    """Tests for subcommand parsing."""

    def test_process_subcommand(self):
        args = create_parser().parse_args(["process", "event.json", "--event-id", "evt-1"])
        assert args.command == "process"
        assert args.event == "event.json"
        assert args.event_id == "evt-1"

    def test_retry_job_subcommand(self):
        args = create_parser().parse_args(
            ["retry-job", "p-1", "keyMoments", "-u", "user-1", "--plan", "ultra"]
        )
        assert args.project_id == "p-1"
        assert args.job == "keyMoments"
        assert args.user_id == "user-1"
        assert args.plan == "ultra"

    def test_retry_job_rejects_summary(self):
        with pytest.raises(SystemExit):
            create_parser().parse_args(["retry-job", "p-1", "summary", "-u", "user-1"])

    def test_show_subcommand(self):
        args = create_parser().parse_args(["show", "p-1", "--user-id", "user-1"])
        assert args.command == "show"
        assert args.user_id == "user-1"

    def test_backfill_subcommand(self):
        args = create_parser().parse_args(["backfill-counters", "--dry-run"])
        assert args.dry_run is True

    def test_main_without_command_exits(self):
        with pytest.raises(SystemExit):
            main([])


class TestLoadEvent:
    """Tests for reading event payloads."""

    def test_inline_json(self):
        assert _load_event('{"projectId": "p"}') == {"projectId": "p"}

    def test_file(self, tmp_path):
        path = tmp_path / "event.json"
        path.write_text(json.dumps({"projectId": "p"}), encoding="utf-8")
        assert _load_event(str(path)) == {"projectId": "p"}

    def test_invalid(self):
        with pytest.raises(ValueError):
            _load_event("{not json")


class TestCommands:
    """Tests for commands against a temporary database."""

    @pytest.fixture
    def config(self, tmp_path):
        config = Mock()
        config.DATABASE_URL = f"sqlite:///{tmp_path / 'cli.db'}"
        config.DB_POOL_SIZE = 5
        config.DB_MAX_OVERFLOW = 10
        config.DB_ECHO = False
        return config

    def test_init_db_then_show(self, config, capsys):
        init_db(argparse.Namespace(), config)

        repo = create_repository(config.DATABASE_URL)
        project = repo.create_project(
            user_id="user-1",
            input_url="https://b/a.mp3",
            file_name="a.mp3",
            file_size=1,
            file_format="mp3",
            mime_type="audio/mpeg",
        )
        repo.record_error(project.id, "user-1", "boom", step="generate-transcription")
        repo.close()

        show_project(argparse.Namespace(project_id=project.id, user_id="user-1"), config)

        out = capsys.readouterr().out
        assert "Status: failed" in out
        assert "Error in generate-transcription: boom" in out

    def test_show_missing_project_exits(self, config):
        init_db(argparse.Namespace(), config)

        with pytest.raises(SystemExit) as exc_info:
            show_project(argparse.Namespace(project_id="missing", user_id="user-1"), config)
        assert exc_info.value.code == 1

    def test_backfill_counters(self, config, capsys):
        init_db(argparse.Namespace(), config)

        backfill_counters(argparse.Namespace(dry_run=False), config)

        assert "Backfilled project counters for 0 users" in capsys.readouterr().out

    def test_main_routes_to_command(self):
        with patch("src.cli.commands.Config") as mock_config, patch(
            "src.cli.commands.backfill_counters"
        ) as mock_backfill:
            main(["backfill-counters", "--dry-run"])

        mock_config.assert_called_once_with(env_file=None)
        mock_backfill.assert_called_once()
