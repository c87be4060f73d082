"""
Tests for the management CLI.
Runs against the application engine, which the test environment points at
an in-memory SQLite database.
"""

import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from linktrack import cli_tools


def test_create_project_and_add_link(capsys):
    assert cli_tools.main(["create-project", "cli-user", "CLI project", "--slug", "cli-proj"]) == 0
    out = capsys.readouterr().out
    assert "PROJECT CREATED" in out
    assert "cli-proj" in out

    project_id = int(out.split("ID:")[1].split()[0])
    assert cli_tools.main(["add-link", str(project_id), "https://example.com/cli", "--title", "CLI"]) == 0
    out = capsys.readouterr().out
    assert "LINK ADDED" in out
    assert "sub1" in out
    assert "/cli-proj/" in out

    assert cli_tools.main(["add-link", str(project_id), "https://example.com/cli", "--title", "Again"]) == 1
    assert "already tracked" in capsys.readouterr().out

    assert cli_tools.main(["delete-project", str(project_id)]) == 0
    assert "deleted" in capsys.readouterr().out


def test_invalid_destination(capsys):
    assert cli_tools.main(["add-link", "1", "javascript:alert(1)", "--title", "Bad"]) == 1
    assert "Invalid link" in capsys.readouterr().out


def test_reserved_slug(capsys):
    assert cli_tools.main(["create-project", "cli-user", "Reserved", "--slug", "api"]) == 1
    assert "reserved" in capsys.readouterr().out


def test_set_active_missing_link(capsys):
    assert cli_tools.main(["set-active", "987654", "off"]) == 1
    assert "not found" in capsys.readouterr().out


def test_delete_missing_project(capsys):
    assert cli_tools.main(["delete-project", "987654"]) == 1
