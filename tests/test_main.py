# tests/test_main.py
from pathlib import Path

import pytest

import config as config_package
import main
from connectors.errors import ConfigurationError, LaunchError, ServerPilotError

CONFIG_DIR = str(Path(config_package.__file__).parent)


@pytest.fixture(autouse=True)
def quiet_logging(monkeypatch):
    monkeypatch.setattr(main, "configure_root_logger", lambda: None)


def test_no_command_prints_help(capsys):
    assert main.main([]) == 0
    assert "usage" in capsys.readouterr().out


def test_start_applies_command_line_overrides(monkeypatch):
    captured = {}

    class FakeRun:
        def __init__(self, config):
            captured["config"] = config

        def execute(self):
            return 0

    monkeypatch.setattr(main, "ServerRun", FakeRun)
    code = main.main(["start", "--config-dir", CONFIG_DIR, "--remote", "--daemon", "--trim-log", "--no-browser"])

    config = captured["config"]
    assert code == 0
    assert config.server.topology == "remote"
    assert config.run.daemon and config.run.trim_log
    assert not config.run.auto_deploy
    assert config.run.browser is False


@pytest.mark.parametrize("error, expected", [
    (ConfigurationError("no server"), 2),
    (LaunchError("server died", exit_code=3), 3),
    (LaunchError("not running"), 1),
    (ServerPilotError("other"), 1),
])
def test_errors_map_to_exit_codes(monkeypatch, capsys, error, expected):
    def fail(config):
        raise error

    monkeypatch.setattr(main, "run_status", fail)
    assert main.main(["status", "--config-dir", CONFIG_DIR]) == expected
    assert str(error) in capsys.readouterr().err


def test_missing_environment_is_a_configuration_error(capsys):
    assert main.main(["deploy", "--config-dir", CONFIG_DIR, "-e", "nowhere"]) == 2


def test_envs_lists_environment_directories(tmp_path, capsys):
    for name in ("staging", "dev"):
        (tmp_path / name).mkdir()
        (tmp_path / name / f"{name}.yaml").write_text("server: {}\n", encoding="utf-8")
    (tmp_path / "notes").mkdir()

    assert main.main(["envs", "--config-dir", str(tmp_path)]) == 0
    assert capsys.readouterr().out.splitlines() == ["dev", "staging"]


def test_envs_with_empty_directory(tmp_path, capsys):
    assert main.main(["envs", "--config-dir", str(tmp_path)]) == 0
    assert "No environments" in capsys.readouterr().out
