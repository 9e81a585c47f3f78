# tests/test_config.py
from pathlib import Path

import pytest
import yaml

import config as config_package
from config.config_loader import ConfigLoader
from config.run_config import RunConfig
from connectors.errors import ConfigurationError

PACKAGED_CONFIG = Path(config_package.__file__).parent


@pytest.fixture
def config_dir(tmp_path):
    (tmp_path / "defaults.yaml").write_text(yaml.safe_dump({
        "server": {"host": "localhost", "admin_port": 4848, "connect_timeout": 3000},
        "run": {"daemon": False},
    }), encoding="utf-8")
    (tmp_path / "qa").mkdir()
    (tmp_path / "qa" / "qa.yaml").write_text(yaml.safe_dump({
        "server": {"host": "qa.example.com"},
        "application": {"path": "target/shop.war"},
    }), encoding="utf-8")
    return tmp_path


def test_environment_is_deep_merged_over_defaults(config_dir):
    data = ConfigLoader(config_dir).load("qa", environ={})
    assert data["server"] == {"host": "qa.example.com", "admin_port": 4848, "connect_timeout": 3000}
    assert data["application"]["path"] == "target/shop.war"


def test_explicit_file(config_dir, tmp_path):
    explicit = tmp_path / "custom.yaml"
    explicit.write_text("run:\n  daemon: true\n", encoding="utf-8")
    data = ConfigLoader(config_dir).load("ignored", explicit_path=str(explicit), environ={})
    assert data["run"]["daemon"] is True


def test_env_overrides(config_dir):
    data = ConfigLoader(config_dir).load(environ={
        "SERVERPILOT_ASSISTANT_KEY": "sk-test",
        "SERVERPILOT_ADMIN_PASSWORD": "env:PAYARA_PW",
    })
    assert data["assistant"] == {"api_key": "sk-test"}
    assert data["server"]["admin_password"] == "env:PAYARA_PW"
    assert data["server"]["host"] == "localhost"


def test_missing_environment(config_dir):
    with pytest.raises(ConfigurationError):
        ConfigLoader(config_dir).load("prod", environ={})


def test_invalid_yaml(config_dir):
    (config_dir / "bad").mkdir()
    (config_dir / "bad" / "bad.yaml").write_text("server: [unclosed\n", encoding="utf-8")
    with pytest.raises(ConfigurationError):
        ConfigLoader(config_dir).load("bad", environ={})


def test_list_environments(config_dir):
    assert ConfigLoader(config_dir).list_environments() == ["qa"]


def test_packaged_defaults_build_a_run_config():
    data = ConfigLoader(PACKAGED_CONFIG).load(environ={})
    config = RunConfig.from_dict(data)
    assert config.descriptor.timeouts == (3.0, 3.0)
    assert config.server.is_local
    assert config.server.source["version"]
    assert config.markers.ready == "startup time :"
    assert config.max_child_depth == 8
    assert config.run.ready_timeout == 300.0


def test_remote_flag_wins():
    config = RunConfig.from_dict({"server": {"topology": "local"}}, remote=True)
    assert config.server.topology == "remote"
    assert not config.server.is_local


@pytest.mark.parametrize("server", [
    {"topology": "cluster"},
    {"debug": "maybe"},
    {"debug_port": "x"},
    {"connect_timeout": 0},
    {"read_timeout": "soon"},
])
def test_invalid_server_settings(server):
    with pytest.raises(ConfigurationError):
        RunConfig.from_dict({"server": server})


def test_application_name_from_artifact_stem():
    config = RunConfig.from_dict({"application": {"path": "target/shop-1.0.war", "exploded": "true"}})
    assert config.require_application().name == "shop-1.0"
    assert config.application.exploded is True


def test_application_path_required():
    with pytest.raises(ConfigurationError):
        RunConfig.from_dict({}).require_application()


def test_local_server_info():
    config = RunConfig.from_dict({"server": {"domain": "dev", "java_home": "/opt/jdk"}})
    info = config.local_server("/opt/payara6")
    assert info.domain_name == "dev"
    assert info.java_home == "/opt/jdk"
