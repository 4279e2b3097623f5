"""Tests for the optruth CLI."""

from __future__ import annotations

import json

import pytest
from typer.testing import CliRunner

from optruth.cli import app

runner = CliRunner()


@pytest.fixture
def project_file(tmp_path):
    path = tmp_path / "project.json"
    path.write_text(
        json.dumps(
            {
                "project_id": "proj-cli",
                "work_type": "plumbing",
                "line_items": [
                    {
                        "id": "mat-paint",
                        "name": "Paint",
                        "quantity": "4",
                        "unit": "gal",
                        "unit_price": "60",
                        "source": "manual_override",
                    }
                ],
            }
        )
    )
    return path


def test_catalog_lists_work_types():
    result = runner.invoke(app, ["catalog"])

    assert result.exit_code == 0
    assert "flooring" in result.stdout
    assert "Work Types" in result.stdout


def test_catalog_shows_template():
    result = runner.invoke(app, ["catalog", "demolition"])

    assert result.exit_code == 0
    assert "1315.50" in result.stdout


def test_catalog_unknown_work_type():
    result = runner.invoke(app, ["catalog", "landscaping"])

    assert result.exit_code == 1


def test_summary_from_file(project_file):
    result = runner.invoke(app, ["summary", str(project_file)])

    assert result.exit_code == 0
    assert "proj-cli" in result.stdout
    # 240 materials + 1020 backfilled plumbing labor, 13% HST
    assert "1423.80" in result.stdout


def test_summary_requires_one_source(project_file):
    assert runner.invoke(app, ["summary"]).exit_code == 2
    assert runner.invoke(app, ["summary", str(project_file), "--project", "p"]).exit_code == 2


def test_summary_unreadable_file(tmp_path):
    result = runner.invoke(app, ["summary", str(tmp_path / "missing.json")])

    assert result.exit_code == 1
