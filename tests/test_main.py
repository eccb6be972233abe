"""Tests for the entry point wiring."""

import json

import pytest

from main import App, parse_args


def test_parse_args_defaults():
    args = parse_args([])
    assert args.settings is None
    assert args.host is None
    assert args.port is None
    assert args.log_level == "INFO"


def test_parse_args_overrides():
    args = parse_args(["--settings", "s.json", "--host", "127.0.0.1", "--port", "9000", "--log-level", "debug"])
    assert (args.settings, args.host, args.port, args.log_level) == ("s.json", "127.0.0.1", 9000, "debug")


@pytest.mark.asyncio
async def test_app_uses_settings(tmp_path):
    path = tmp_path / "settings.json"
    path.write_text(json.dumps({"tick_interval": 1.5, "progress_step": 20}))

    app = App(str(path))
    assert await app._main("127.0.0.1", 0)
    try:
        assert app.ws_server.actual_port > 0
        assert app.intake.driver.interval == 1.5
        assert app.intake.driver.step == 20
    finally:
        await app._unload()
    assert app.ws_server.server is None
