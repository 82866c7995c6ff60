"""Tests for the command line interface."""

from uuid import uuid4

import pytest

from payroll_lifecycle.cli import main
from payroll_lifecycle.security import decode_token


def test_issue_token_prints_decodable_token(capsys):
    user_id = uuid4()

    exit_code = main(["issue-token", "--user-id", str(user_id), "--role", "department_head"])

    assert exit_code == 0
    payload = decode_token(capsys.readouterr().out.strip())
    assert payload["sub"] == str(user_id)
    assert payload["role"] == "department_head"


def test_issue_token_rejects_bad_uuid(capsys):
    with pytest.raises(SystemExit):
        main(["issue-token", "--user-id", "nope"])


def test_no_command_prints_help(capsys):
    assert main([]) == 1
    assert "usage" in capsys.readouterr().out.lower()
