from __future__ import annotations

from pathlib import Path

import pytest

from settings import ConfigurationError, ServerSettings, Settings, load_settings


def _config(tmp_path: Path, text: str) -> Path:
    path = tmp_path / "config.yaml"
    path.write_text(text)
    return path


def test_load_settings_reads_all_sections(tmp_path) -> None:
    path = _config(
        tmp_path,
        """
server:
  listenAddr: "0.0.0.0:8081"
influxdb:
  address: https://influx.local:8086
  username: collector
  password: hunter2
  measurementPrefix: home_
  database: telemetry
  retentionPolicy: autogen
  organization: home
  skipVerifySsl: true
  flushInterval: 10
""",
    )

    settings = load_settings(path)

    assert settings.server.listen_addr == "0.0.0.0:8081"
    assert settings.influxdb.address == "https://influx.local:8086"
    assert settings.influxdb.username == "collector"
    assert settings.influxdb.password == "hunter2"
    assert settings.influxdb.measurement_prefix == "home_"
    assert settings.influxdb.database == "telemetry"
    assert settings.influxdb.retention_policy == "autogen"
    assert settings.influxdb.organization == "home"
    assert settings.influxdb.skip_verify_ssl is True
    assert settings.influxdb.flush_interval == 10
    assert settings.influxdb.bucket == ""
    assert settings.queue_size == 1
    assert settings.log_level == "INFO"


@pytest.mark.parametrize("key", ["retention_policy", "retentionPolicy", "RetentionPolicy", "retentionpolicy"])
def test_keys_match_regardless_of_case_and_underscores(tmp_path, key) -> None:
    path = _config(tmp_path, f"influxdb:\n  {key}: weekly\n")

    assert load_settings(path).influxdb.retention_policy == "weekly"


def test_empty_file_uses_defaults(tmp_path) -> None:
    settings = load_settings(_config(tmp_path, ""))

    assert settings == Settings()


def test_numeric_password_is_read_as_text(tmp_path) -> None:
    settings = load_settings(_config(tmp_path, "influxdb:\n  password: 1234\n"))

    assert settings.influxdb.password == "1234"


def test_missing_file_is_a_configuration_error(tmp_path) -> None:
    with pytest.raises(ConfigurationError) as excinfo:
        load_settings(tmp_path / "absent.yaml")

    assert "error reading config file" in str(excinfo.value)


@pytest.mark.parametrize(
    "text",
    [
        "influxdb: [unclosed",
        "- just\n- a list\n",
        "influxdb: a string\n",
        "influxdb:\n  flushInterval: soon\n",
        "influxdb:\n  skipVerifySsl: maybe\n",
        "queueSize: 0\n",
    ],
)
def test_invalid_content_is_a_configuration_error(tmp_path, text) -> None:
    with pytest.raises(ConfigurationError):
        load_settings(_config(tmp_path, text))


@pytest.mark.parametrize(
    ("listen_addr", "host", "port"),
    [
        (":8080", "0.0.0.0", 8080),
        ("127.0.0.1:9000", "127.0.0.1", 9000),
        ("[::1]:7000", "::1", 7000),
    ],
)
def test_listen_address_split(listen_addr, host, port) -> None:
    server = ServerSettings(listen_addr=listen_addr)

    assert server.host == host
    assert server.port == port


def test_listen_address_without_port_is_rejected() -> None:
    with pytest.raises(ConfigurationError):
        ServerSettings(listen_addr="localhost").port
