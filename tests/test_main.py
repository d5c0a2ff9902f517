"""Tests for the command-line entry point."""

import json

import pytest

from promocards import main as cli
from promocards.config import settings


@pytest.fixture
def isolated_settings(tmp_path, monkeypatch):
    monkeypatch.setattr(settings, "output_dir", tmp_path / "output")
    monkeypatch.setattr(settings, "temp_dir", tmp_path / "temp")
    monkeypatch.setattr(settings, "gcp_project_id", None)
    return settings


def test_list_templates(isolated_settings, monkeypatch, capsys):
    monkeypatch.setattr(isolated_settings, "template_table", {"default": "1:14", "sale": "7:1"})

    assert cli.main(["--list-templates"]) == 0

    assert json.loads(capsys.readouterr().out) == {"default": "1:14", "sale": "7:1"}


def test_list_templates_without_default(isolated_settings, monkeypatch, capsys):
    monkeypatch.setattr(isolated_settings, "template_table", {"sale": "7:1"})

    assert cli.main(["--list-templates"]) == 1
    assert capsys.readouterr().out == ""
