"""Tests for the directory command group."""

from __future__ import annotations

import json

import pytest
from click.testing import CliRunner

from sharegraph.cli import cli
from tests.conftest import invoke_json, seed_cli_users


@pytest.mark.usefixtures("_isolated_root")
class TestDirectoryCommand:
    def test_add_user(self, cli_runner: CliRunner) -> None:
        payload = invoke_json(
            cli_runner, "directory", "add-user", "Ann@Example.com", "--name", "Ann"
        )
        assert payload["op"] == "add_user"
        assert payload["data"]["email"] == "ann@example.com"
        assert payload["data"]["id"].startswith("usr_")

    def test_duplicate_email(self, cli_runner: CliRunner) -> None:
        seed_cli_users(cli_runner, "ann")
        result = cli_runner.invoke(cli, ["--json", "directory", "add-user", "ann@example.com"])
        assert result.exit_code == 1
        assert json.loads(result.stderr)["error"]["code"] == "CONFLICT"

    def test_add_document_resolves_owner(self, cli_runner: CliRunner) -> None:
        seed_cli_users(cli_runner, "ann")
        payload = invoke_json(
            cli_runner,
            "directory",
            "add-document",
            "ann@example.com",
            "Lease",
            "--category",
            "housing",
            "--expires",
            "2027-05-01",
        )
        assert payload["data"]["owner_id"] == "usr_ann"
        assert payload["data"]["name"] == "Lease"

    def test_transfer(self, cli_runner: CliRunner) -> None:
        seed_cli_users(cli_runner, "ann", "bob")
        invoke_json(
            cli_runner, "directory", "add-document", "usr_ann", "Deed", "--id", "doc_deed"
        )
        payload = invoke_json(cli_runner, "directory", "transfer", "doc_deed", "bob@example.com")
        assert payload["op"] == "transfer_document"
        assert payload["data"]["owner_id"] == "usr_bob"

        perm = invoke_json(
            cli_runner, "--as", "bob@example.com", "share", "permission", "doc_deed"
        )
        assert perm["data"]["permission"] == "owner"
