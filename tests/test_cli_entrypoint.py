from __future__ import annotations

import importlib

import pytest


def test_console_entrypoint_exposes_app() -> None:
    pytest.importorskip("typer")

    module = importlib.import_module("mc_ai_bridge.main")

    assert hasattr(module, "app")
    assert module.app is not None


def test_chunk_command_previews_frames() -> None:
    typer_testing = pytest.importorskip("typer.testing")
    from mc_ai_bridge.main import app

    result = typer_testing.CliRunner().invoke(app, ["chunk", "hello " * 200])

    assert result.exit_code == 0
    assert "frame_bytes" in result.stdout


def test_chunk_command_rejects_tiny_budget() -> None:
    typer_testing = pytest.importorskip("typer.testing")
    from mc_ai_bridge.main import app

    result = typer_testing.CliRunner().invoke(app, ["chunk", "hello", "--max-bytes", "10"])

    assert result.exit_code == 1
    assert "error" in result.stdout
