"""Tests for the temple seeding CLI."""
import json

from click.testing import CliRunner

import cli
from cli import DEFAULT_TEMPLES, insert_temples


def test_insert_temples_skips_existing_names(db):
    assert insert_temples(db, DEFAULT_TEMPLES) == (len(DEFAULT_TEMPLES), 0)
    assert insert_temples(db, DEFAULT_TEMPLES) == (0, len(DEFAULT_TEMPLES))
    assert db["temple"].count_documents({}) == len(DEFAULT_TEMPLES)


def test_seed_temples_from_file(db, monkeypatch, tmp_path):
    monkeypatch.setattr(cli, "_open_db", lambda: db)
    path = tmp_path / "temples.json"
    path.write_text(json.dumps([{"name": "Kedarnath", "location": "Uttarakhand", "estimatedWaitTime": 40}]))

    result = CliRunner().invoke(cli.cli, ["seed-temples", "--file", str(path)])

    assert result.exit_code == 0, result.output
    assert "Created 1 temple(s)" in result.output
    temple = db["temple"].find_one({"name": "Kedarnath"})
    assert temple["estimatedWaitTime"] == 40
    assert temple["currentCrowdLevel"] == "Low"


def test_seed_temples_rejects_invalid_entry(db, monkeypatch, tmp_path):
    monkeypatch.setattr(cli, "_open_db", lambda: db)
    path = tmp_path / "temples.json"
    path.write_text(json.dumps([{"name": "Nowhere"}]))

    result = CliRunner().invoke(cli.cli, ["seed-temples", "--file", str(path)])

    assert result.exit_code != 0
    assert "Invalid temple entry" in result.output
    assert db["temple"].count_documents({}) == 0


def test_add_temple(db, monkeypatch):
    monkeypatch.setattr(cli, "_open_db", lambda: db)

    result = CliRunner().invoke(
        cli.cli,
        ["add-temple", "--name", "Jagannath", "--location", "Puri", "--crowd-level", "Very High"],
    )

    assert result.exit_code == 0, result.output
    assert db["temple"].find_one({"name": "Jagannath"})["currentCrowdLevel"] == "Very High"
