"""
Test cases for the zkface command-line interface.
"""

import json

import pytest

from zkface.cli import EXIT_OK, ZkFaceCLI


def test_config_command_prints_summary(capsys):
    exit_code = ZkFaceCLI().run_from_args(["config"])

    assert exit_code == EXIT_OK
    summary = json.loads(capsys.readouterr().out)
    assert "circuits" in summary


def test_command_is_required():
    with pytest.raises(SystemExit):
        ZkFaceCLI().run_from_args([])


def test_match_command_reports_missing_image(tmp_path, capsys):
    pytest.importorskip("face_recognition")

    exit_code = ZkFaceCLI().run_from_args(
        ["match", str(tmp_path / "missing.jpg"), str(tmp_path / "other.jpg")]
    )

    assert exit_code == 1
    assert "Image file not found" in capsys.readouterr().err
