"""Unit tests for the task commands."""

import json
from datetime import date
from unittest.mock import patch

import pytest
from typer.testing import CliRunner

from taskmate.errors import QueryError
from taskmate.main import app
from taskmate.services.sync_service import TaskSyncService
from taskmate.utils.exit_codes import (
    ERROR_INVALID_ARGS,
    ERROR_NETWORK,
    ERROR_NOT_CONFIGURED,
    ERROR_NOT_FOUND,
    SUCCESS,
)
from taskmate.utils.ui.console import get_console

runner = CliRunner()


@pytest.fixture
def wired(fake_repo, tmp_config):
    """Route every command to the in-memory repository."""

    def build(criteria=None, *, realtime=False, config=None):
        return TaskSyncService(fake_repo, criteria, realtime=realtime)

    with patch("taskmate.commands.tasks.build_sync_service", side_effect=build):
        yield fake_repo


class TestListCommand:
    def test_list_table(self, wired):
        result = runner.invoke(app, ["list"])
        assert result.exit_code == SUCCESS
        assert "Write report" in result.output
        assert "Ship release" in result.output
        assert wired.closed

    def test_list_json_with_filters(self, wired):
        result = runner.invoke(
            app, ["list", "--status", "todo", "--search", "report", "-o", "json"]
        )
        assert result.exit_code == SUCCESS
        data = json.loads(result.output)
        assert [t["id"] for t in data["tasks"]] == [1]
        assert data["tasks"][0]["status"] == "todo"

    def test_list_sorted_ascending(self, wired):
        result = runner.invoke(app, ["list", "--sort", "title", "--asc", "-o", "json"])
        assert result.exit_code == SUCCESS
        titles = [t["title"] for t in json.loads(result.output)["tasks"]]
        assert titles == sorted(titles)

    def test_list_invalid_sort(self, wired):
        result = runner.invoke(app, ["list", "--sort", "priority"])
        assert result.exit_code == ERROR_INVALID_ARGS
        assert "Invalid options" in result.output

    def test_list_store_failure(self, wired):
        wired.list_error = QueryError("Failed to list tasks: offline")
        result = runner.invoke(app, ["list"])
        assert result.exit_code == ERROR_NETWORK
        assert "offline" in result.output

    def test_list_not_configured(self, tmp_config):
        result = runner.invoke(app, ["list"])
        assert result.exit_code == ERROR_NOT_CONFIGURED
        assert "not configured" in result.output


class TestMutationCommands:
    def test_add(self, wired):
        result = runner.invoke(
            app, ["add", "Write spec", "--due", "2024-07-01", "-d", "draft"]
        )
        assert result.exit_code == SUCCESS
        assert "Task created" in result.output
        created = wired.rows[101]
        assert created.title == "Write spec"
        assert created.due_date == date(2024, 7, 1)
        assert created.description == "draft"

    def test_add_invalid_status(self, wired):
        result = runner.invoke(app, ["add", "Write spec", "--status", "later"])
        assert result.exit_code == ERROR_INVALID_ARGS
        assert 101 not in wired.rows

    def test_add_json_output(self, wired):
        result = runner.invoke(app, ["add", "Write spec", "-o", "json"])
        assert result.exit_code == SUCCESS
        assert json.loads(result.output)["title"] == "Write spec"

    def test_edit_clear_due(self, wired):
        result = runner.invoke(app, ["edit", "1", "--clear-due"])
        assert result.exit_code == SUCCESS
        assert wired.rows[1].due_date is None

    def test_edit_conflicting_due_options(self, wired):
        result = runner.invoke(
            app, ["edit", "1", "--due", "2024-07-01", "--clear-due"]
        )
        assert result.exit_code == ERROR_INVALID_ARGS

    def test_edit_without_changes(self, wired):
        result = runner.invoke(app, ["edit", "1"])
        assert result.exit_code == ERROR_INVALID_ARGS
        assert "at least one field" in result.output

    def test_edit_unknown_task(self, wired):
        result = runner.invoke(app, ["edit", "99", "--title", "x"])
        assert result.exit_code == ERROR_NOT_FOUND

    def test_status(self, wired):
        result = runner.invoke(app, ["status", "2", "done"])
        assert result.exit_code == SUCCESS
        assert wired.rows[2].status.value == "completed"
        assert "completed" in result.output

    def test_delete_with_yes(self, wired):
        result = runner.invoke(app, ["delete", "3", "--yes"])
        assert result.exit_code == SUCCESS
        assert 3 not in wired.rows

    def test_delete_cancelled(self, wired):
        result = runner.invoke(app, ["delete", "3"], input="n\n")
        assert result.exit_code == SUCCESS
        assert "Cancelled" in result.output
        assert 3 in wired.rows


class TestReadCommands:
    def test_show(self, wired):
        result = runner.invoke(app, ["show", "2", "-o", "json"])
        assert result.exit_code == SUCCESS
        assert json.loads(result.output)["title"] == "Review budget"

    def test_show_missing(self, wired):
        result = runner.invoke(app, ["show", "42"])
        assert result.exit_code == ERROR_NOT_FOUND
        assert "Task not found" in result.output

    def test_metrics_json(self, wired):
        result = runner.invoke(app, ["metrics", "-o", "json"])
        assert result.exit_code == SUCCESS
        data = json.loads(result.output)
        assert data["status_counts"] == {"todo": 1, "in_progress": 1, "completed": 1}
        assert set(data) == {"status_counts", "due_today", "overdue"}

    def test_metrics_table(self, wired):
        result = runner.invoke(app, ["metrics"])
        assert result.exit_code == SUCCESS
        assert "Overdue" in result.output


def test_unknown_command_suggests():
    result = runner.invoke(app, ["lst"])
    assert result.exit_code == 1
    assert "Did you mean" in result.output
    assert "list" in result.output


def test_version(tmp_config):
    result = runner.invoke(app, ["version"])
    assert result.exit_code == SUCCESS
    assert "TaskMate" in result.output
    assert "Store not configured" in result.output


class TestOutputSettings:
    def test_configured_format_is_the_default(self, wired, tmp_config):
        tmp_config.set("output.format", "json")

        result = runner.invoke(app, ["metrics"])

        assert result.exit_code == SUCCESS
        assert set(json.loads(result.output)) == {"status_counts", "due_today", "overdue"}

    def test_output_option_overrides_config(self, wired, tmp_config):
        tmp_config.set("output.format", "json")

        result = runner.invoke(app, ["list", "-o", "table"])

        assert result.exit_code == SUCCESS
        assert "Write report" in result.output
        assert not result.output.lstrip().startswith("{")

    def test_color_setting_reaches_console(self, tmp_config):
        console = get_console()
        previous = console.no_color
        tmp_config.set("output.color", False)
        try:
            result = runner.invoke(app, ["version"])
            assert result.exit_code == SUCCESS
            assert console.no_color is True
        finally:
            console.no_color = previous
