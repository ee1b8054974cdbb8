from pathlib import Path

import pytest

from config.config import (
    DEFAULT_CONFIG_FILE,
    ENV_OVERRIDES,
    ClientConfig,
    _deep_merge,
    _expand_env_vars,
    get_config,
    load_config,
    load_yaml,
    reset_config,
    set_config,
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for env_var in ENV_OVERRIDES.values():
        monkeypatch.delenv(env_var, raising=False)
    reset_config()
    yield
    reset_config()


def _write_config(tmp_path: Path, text: str) -> Path:
    config_file = tmp_path / "config.yaml"
    config_file.write_text(text)
    return config_file


# =========================================================================
# load_yaml
# =========================================================================


class TestLoadYaml:
    def test_returns_empty_dict_for_nonexistent_file(self):
        assert load_yaml(Path("/nonexistent/path/config.yaml")) == {}

    def test_loads_yaml_file(self, tmp_path):
        config_file = _write_config(tmp_path, "key: value\nnested:\n  a: 1\n")
        assert load_yaml(config_file) == {"key": "value", "nested": {"a": 1}}

    def test_empty_file_returns_empty_dict(self, tmp_path):
        assert load_yaml(_write_config(tmp_path, "")) == {}


# =========================================================================
# _expand_env_vars
# =========================================================================


class TestExpandEnvVars:
    def test_expands_set_variable(self, monkeypatch):
        monkeypatch.setenv("CSREST_TEST_HOST", "ts.local")
        assert _expand_env_vars("${CSREST_TEST_HOST}") == "ts.local"

    def test_default_used_when_unset(self, monkeypatch):
        monkeypatch.delenv("CSREST_TEST_MISSING", raising=False)
        assert _expand_env_vars("${CSREST_TEST_MISSING:-50443}") == "50443"

    def test_empty_default(self, monkeypatch):
        monkeypatch.delenv("CSREST_TEST_MISSING", raising=False)
        assert _expand_env_vars("${CSREST_TEST_MISSING:-}") == ""

    def test_unset_without_default_is_left_alone(self, monkeypatch):
        monkeypatch.delenv("CSREST_TEST_MISSING", raising=False)
        assert _expand_env_vars("${CSREST_TEST_MISSING}") == "${CSREST_TEST_MISSING}"

    def test_recurses_into_dicts_and_lists(self, monkeypatch):
        monkeypatch.setenv("CSREST_TEST_USER", "operator")
        data = {"a": ["${CSREST_TEST_USER}"], "b": {"c": "${CSREST_TEST_USER}"}, "d": 3}
        assert _expand_env_vars(data) == {"a": ["operator"], "b": {"c": "operator"}, "d": 3}


class TestDeepMerge:
    def test_nested_merge(self):
        base = {"a": {"x": 1, "y": 2}, "b": 1}
        assert _deep_merge(base, {"a": {"y": 3}}) == {"a": {"x": 1, "y": 3}, "b": 1}
        assert base == {"a": {"x": 1, "y": 2}, "b": 1}


# =========================================================================
# ClientConfig
# =========================================================================


class TestClientConfig:
    def test_defaults(self):
        config = ClientConfig(host="ts")
        assert config.port == 50443
        assert config.verify_ssl is True
        assert config.max_retries == 3
        assert config.retry_delay_seconds == 2.0
        assert config.poll_interval_seconds == 2.0
        assert config.task_timeout_seconds == 300.0
        assert config.duration_ms is None

    def test_type_conversion_from_strings(self):
        config = ClientConfig(
            host="ts",
            port="8443",
            verify_ssl="false",
            timeout_seconds="10",
            max_retries="5",
            retry_delay_seconds="0.5",
            duration_ms="3600000",
            ca_bundle="",
        )
        assert config.port == 8443
        assert config.verify_ssl is False
        assert config.timeout_seconds == 10.0
        assert config.max_retries == 5
        assert config.retry_delay_seconds == 0.5
        assert config.duration_ms == 3600000
        assert config.ca_bundle is None

    def test_base_url(self):
        assert ClientConfig(host="ts.local", port=50443).base_url == "https://ts.local:50443"

    def test_validate_accepts_valid_config(self):
        ClientConfig(host="ts", username="operator").validate()

    def test_validate_collects_all_errors(self):
        config = ClientConfig(host="", port=0, max_retries=-1, poll_interval_seconds=0)
        with pytest.raises(ValueError) as exc_info:
            config.validate()

        message = str(exc_info.value)
        assert "csrest.host is required" in message
        assert "csrest.username is required" in message
        assert "csrest.port" in message
        assert "max_retries" in message
        assert "poll_interval_seconds" in message

    def test_validate_missing_ca_bundle(self, tmp_path):
        config = ClientConfig(host="ts", username="operator", ca_bundle=str(tmp_path / "missing.pem"))
        with pytest.raises(ValueError, match="ca_bundle not found"):
            config.validate()


# =========================================================================
# load_config
# =========================================================================


class TestLoadConfig:
    def test_loads_nested_sections(self, tmp_path):
        config_file = _write_config(
            tmp_path,
            """
csrest:
  host: ts.local
  port: 8443
  username: operator
  password: secret
  verify_ssl: false
  retry:
    max_retries: 1
    retry_delay_seconds: 0.5
  tasks:
    poll_interval_seconds: 1
    timeout_seconds: 60
""",
        )
        config = load_config(config_file)

        assert config.host == "ts.local"
        assert config.port == 8443
        assert config.username == "operator"
        assert config.verify_ssl is False
        assert config.max_retries == 1
        assert config.retry_delay_seconds == 0.5
        assert config.poll_interval_seconds == 1.0
        assert config.task_timeout_seconds == 60.0

    def test_env_var_expansion_in_yaml(self, tmp_path, monkeypatch):
        monkeypatch.setenv("TS_PASSWORD_FOR_TEST", "from-env")
        config_file = _write_config(
            tmp_path, "csrest:\n  host: ts\n  username: op\n  password: ${TS_PASSWORD_FOR_TEST}\n"
        )
        assert load_config(config_file).password == "from-env"

    def test_csrest_env_overrides_yaml(self, tmp_path, monkeypatch):
        monkeypatch.setenv("CSREST_HOST", "env-host")
        monkeypatch.setenv("CSREST_MAX_RETRIES", "7")
        config_file = _write_config(tmp_path, "csrest:\n  host: yaml-host\n  username: op\n")

        config = load_config(config_file)
        assert config.host == "env-host"
        assert config.max_retries == 7

    def test_overrides_win_over_env(self, tmp_path, monkeypatch):
        monkeypatch.setenv("CSREST_HOST", "env-host")
        config_file = _write_config(tmp_path, "csrest:\n  host: yaml-host\n  username: op\n")

        config = load_config(config_file, overrides={"host": "cli-host", "verify_ssl": False})
        assert config.host == "cli-host"
        assert config.verify_ssl is False

    def test_missing_explicit_file_raises(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_config(tmp_path / "nope.yaml")

    def test_missing_section_raises(self, tmp_path):
        config_file = _write_config(tmp_path, "other:\n  host: ts\n")
        with pytest.raises(ValueError, match="missing 'csrest:' section"):
            load_config(config_file)

    def test_invalid_values_raise(self, tmp_path):
        config_file = _write_config(tmp_path, "csrest:\n  host: ts\n  port: 70000\n")
        with pytest.raises(ValueError, match="csrest.port"):
            load_config(config_file)

    def test_default_file_with_env(self, monkeypatch):
        assert DEFAULT_CONFIG_FILE.exists()
        monkeypatch.setenv("CSREST_HOST", "ts.example")
        monkeypatch.setenv("CSREST_PORT", "50443")
        monkeypatch.setenv("CSREST_USERNAME", "operator")

        config = load_config()
        assert config.base_url == "https://ts.example:50443"
        assert config.max_retries == 3
        assert config.task_timeout_seconds == 300.0

    def test_default_file_without_host_is_invalid(self):
        with pytest.raises(ValueError, match="csrest.host is required"):
            load_config()

    def test_missing_username_is_invalid(self, tmp_path):
        config_file = _write_config(tmp_path, "csrest:\n  host: ts\n  password: pw\n")
        with pytest.raises(ValueError, match="csrest.username is required"):
            load_config(config_file)


class TestConfigSingleton:
    def test_set_and_get(self):
        config = ClientConfig(host="ts")
        set_config(config)
        assert get_config() is config

    def test_reset_reloads(self, monkeypatch):
        set_config(ClientConfig(host="first"))
        reset_config()
        monkeypatch.setenv("CSREST_HOST", "second")
        monkeypatch.setenv("CSREST_USERNAME", "operator")
        assert get_config().host == "second"
