from __future__ import annotations

import json
from pathlib import Path

import pytest

from catchpoint_bridge.errors import ConfigurationError
from catchpoint_bridge.settings import BridgeSettings, load_settings


LEGACY_CONFIG = {
    "listener_port": 9090,
    "authorized_ips": "64.79.149.6,64.79.149.7",
    "max_procs": 4,
    "endpoints": [{"uri_path": "/catchpoint/alerts", "plugin_name": "catchpoint_alerts"}],
    "emitter": [{"uri_path": "/catchpoint/checks"}],
    "nsca": {"enabled": True, "server": "nagios.local"},
}


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in (
        "BRIDGE_CONFIG",
        "BRIDGE_LISTENER_IP",
        "BRIDGE_LISTENER_PORT",
        "BRIDGE_AUTHORIZED_IPS",
        "BRIDGE_LOG_LEVEL",
        "BRIDGE_LOG_FILE",
        "BRIDGE_DUMP_REQUESTS_DIR",
        "BRIDGE_NSCA_ENABLED",
    ):
        monkeypatch.delenv(name, raising=False)


def test_defaults() -> None:
    s = BridgeSettings()
    assert s.listener_ip == "127.0.0.1"
    assert s.listener_port == 8080
    assert s.authorized_ips == ""
    assert s.nsca.enabled is False
    assert s.nsca.os_command_path == "/usr/sbin/send_nsca"
    assert s.nsca.config_file == "/etc/send_nsca.cfg"
    assert s.nsca.client_host


def test_load_legacy_json_config(tmp_path: Path) -> None:
    path = tmp_path / "receiver.cfg.json"
    path.write_text(json.dumps(LEGACY_CONFIG), encoding="utf-8")

    s = load_settings(str(path))
    assert s.listener_ip == "127.0.0.1"
    assert s.listener_port == 9090
    assert s.endpoints[0].plugin_name == "catchpoint_alerts"
    assert s.endpoints[0].host == "localhost"
    assert s.emitter[0].uri_path == "/catchpoint/checks"
    assert s.emitter[0].template is None
    assert s.nsca.enabled is True
    assert s.nsca.server == "nagios.local"


def test_load_yaml_config(tmp_path: Path) -> None:
    path = tmp_path / "bridge.yaml"
    path.write_text(
        "listener_ip: 0.0.0.0\nendpoints:\n  - uri_path: /cp\n    plugin_name: catchpoint_alerts\n    host: cp\n",
        encoding="utf-8",
    )
    s = load_settings(str(path))
    assert s.listener_ip == "0.0.0.0"
    assert s.endpoints[0].host == "cp"


def test_env_overrides(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    path = tmp_path / "receiver.cfg.json"
    path.write_text(json.dumps(LEGACY_CONFIG), encoding="utf-8")
    monkeypatch.setenv("BRIDGE_LISTENER_PORT", "8181")
    monkeypatch.setenv("BRIDGE_AUTHORIZED_IPS", "10.0.0.1")
    monkeypatch.setenv("BRIDGE_NSCA_ENABLED", "false")

    s = load_settings(str(path))
    assert s.listener_port == 8181
    assert s.authorized_ips == "10.0.0.1"
    assert s.nsca.enabled is False
    assert s.nsca.server == "nagios.local"


def test_config_path_from_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    path = tmp_path / "other.json"
    path.write_text("{}", encoding="utf-8")
    monkeypatch.setenv("BRIDGE_CONFIG", str(path))
    assert load_settings().listener_port == 8080


def test_missing_file_raises(tmp_path: Path) -> None:
    with pytest.raises(ConfigurationError, match="Unable to read"):
        load_settings(str(tmp_path / "missing.json"))


def test_invalid_json_raises(tmp_path: Path) -> None:
    path = tmp_path / "bad.json"
    path.write_text("{not json", encoding="utf-8")
    with pytest.raises(ConfigurationError, match="Unable to parse"):
        load_settings(str(path))


def test_invalid_values_raise(tmp_path: Path) -> None:
    path = tmp_path / "bad.json"
    path.write_text(json.dumps({"listener_port": 700000}), encoding="utf-8")
    with pytest.raises(ConfigurationError, match="Invalid configuration"):
        load_settings(str(path))


def test_non_mapping_raises(tmp_path: Path) -> None:
    path = tmp_path / "list.yaml"
    path.write_text("- a\n- b\n", encoding="utf-8")
    with pytest.raises(ConfigurationError, match="must be a mapping"):
        load_settings(str(path))
