import os

import pytest

from suplo.config_service import DEFAULT_PLACEHOLDERS, ConfigService

ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))


def test_example_config_parses():
    cfg = ConfigService(os.path.join(ROOT, "config.example.yaml"))
    assert cfg.bot_method() == "SOCKET"
    assert list(cfg.backends()) == ["openai", "deepseek"]
    assert cfg.backends()["deepseek"].api_key_env == "DEEPSEEK_API_KEY"
    p = cfg.pipeline()
    assert p.default_backend == "openai"
    assert p.window_size == 10
    assert p.placeholder_messages == DEFAULT_PLACEHOLDERS
    assert cfg.preferences_path() is None
    assert "who are you" in cfg.identity_triggers()


def test_defaults_from_empty_config():
    cfg = ConfigService.from_dict({})
    p = cfg.pipeline()
    assert p.default_backend == "openai"
    assert p.temperature == 0.7
    assert cfg.persona_name() == "suplo"
    assert cfg.http_port() == 3000


def test_pipeline_variants():
    cfg = ConfigService.from_dict({"pipeline": {"window_size": 0, "temperature": None, "documents_enabled": False}})
    p = cfg.pipeline()
    assert p.window_size is None
    assert p.temperature is None
    assert p.documents_enabled is False


def test_unknown_default_backend_rejected():
    cfg = ConfigService.from_dict({"llm": {"default_backend": "gemini", "backends": {"openai": {"model": "gpt-4o-mini"}}}})
    with pytest.raises(ValueError):
        cfg.pipeline()


def test_unsafe_persona_name_ignored():
    assert ConfigService.from_dict({"persona": "../etc"}).persona_name() == "suplo"


def test_bad_bot_method_defaults_to_socket():
    assert ConfigService.from_dict({"bot": {"method": "carrier-pigeon"}}).bot_method() == "SOCKET"
    assert ConfigService.from_dict({"bot": {"method": "http"}}).bot_method() == "HTTP"


def test_env_overrides(monkeypatch):
    monkeypatch.setenv("SLACK_TIMESHEET_CHANNEL", "CENV")
    monkeypatch.setenv("SALESFORCE_URL", "https://crm.example.test/")
    monkeypatch.setenv("SALESFORCE_USER_NAME", "bot")
    cfg = ConfigService.from_dict({"slack": {"approval_channel": "CFILE"}})
    assert cfg.approval_channel() == "CENV"
    sf = cfg.salesforce()
    assert sf.instance_url == "https://crm.example.test"
    assert sf.username == "bot"


def test_hot_reload(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text("logging:\n  level: INFO\n", encoding="utf-8")
    cfg = ConfigService(path)
    assert cfg.log_level() == "INFO"
    path.write_text("logging:\n  level: debug\n", encoding="utf-8")
    st = path.stat()
    os.utime(path, ns=(st.st_atime_ns, st.st_mtime_ns + 1_000_000_000))
    assert cfg.log_level() == "DEBUG"


def test_reload_keeps_previous_on_yaml_error(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text("persona: suplo\n", encoding="utf-8")
    cfg = ConfigService(path)
    path.write_text("persona: [unclosed\n", encoding="utf-8")
    st = path.stat()
    os.utime(path, ns=(st.st_atime_ns, st.st_mtime_ns + 1_000_000_000))
    assert cfg.persona_name() == "suplo"
