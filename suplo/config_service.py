from __future__ import annotations

from dataclasses import dataclass
import os
from pathlib import Path
import re
import yaml


DEFAULT_PLACEHOLDERS = ("Hi, sorry Suplo lagi ngehang....", "Hi, how can Suplo help?")
DEFAULT_IDENTITY_TRIGGERS = ("who are you", "siapa kamu", "what is your name", "what is your identity", "what are you?")
DEFAULT_SUMMARY_KEYWORDS = ("summarize", "summary")


@dataclass
class Config:
    raw: dict


@dataclass(frozen=True)
class BackendConfig:
    """One OpenAI-compatible completion backend."""

    name: str
    base_url: str
    model: str
    api_key_env: str
    timeout: float = 60.0
    concurrency: int = 4

    def api_key(self) -> str | None:
        return os.getenv(self.api_key_env)


@dataclass(frozen=True)
class PipelineConfig:
    """Settings that distinguished the old copy-pasted bot variants.

    window_size=None keeps the whole thread; temperature=None lets the
    backend apply its own default.
    """

    default_backend: str = "openai"
    window_size: int | None = 10
    temperature: float | None = 0.7
    documents_enabled: bool = True
    document_max_tokens: int = 12000
    summary_history_limit: int = 50
    placeholder_messages: tuple[str, ...] = DEFAULT_PLACEHOLDERS
    typing_status: str = "is typing..."


@dataclass(frozen=True)
class SalesforceConfig:
    instance_url: str
    client_id: str | None
    client_secret: str | None
    username: str | None
    password: str | None
    timezone: str = "Asia/Jakarta"
    timesheet_path: str = "/services/apexrest/time-sheet/v1.0/Submit"
    leave_request_path: str = "/services/apexrest/leave-request/v1.0/Submit"
    timeout: float = 30.0


class ConfigService:
    def __init__(self, path: str | Path):
        self._path = Path(path)
        with self._path.open("r", encoding="utf-8") as f:
            self._cfg = Config(raw=yaml.safe_load(f) or {})
        try:
            self._mtime_ns = self._path.stat().st_mtime_ns
        except OSError:
            self._mtime_ns = 0

    @classmethod
    def from_dict(cls, raw: dict) -> "ConfigService":
        """Build a service around an in-memory mapping (no file, no reload)."""
        inst = cls.__new__(cls)
        inst._path = None
        inst._cfg = Config(raw=dict(raw or {}))
        inst._mtime_ns = 0
        return inst

    def _maybe_reload(self) -> None:
        if self._path is None:
            return
        try:
            m = self._path.stat().st_mtime_ns
        except OSError:
            return
        if m != getattr(self, "_mtime_ns", 0):
            try:
                with self._path.open("r", encoding="utf-8") as f:
                    self._cfg = Config(raw=yaml.safe_load(f) or {})
                self._mtime_ns = m
            except (OSError, yaml.YAMLError):
                # On read error, keep previous config
                pass

    def _section(self, name: str) -> dict:
        self._maybe_reload()
        v = self._cfg.raw.get(name)
        return v if isinstance(v, dict) else {}

    # ---------- bot / transport ----------
    def bot_method(self) -> str:
        m = str(self._section("bot").get("method", "SOCKET")).upper()
        return m if m in ("SOCKET", "HTTP") else "SOCKET"

    def http_host(self) -> str:
        return str(self._section("http").get("host", "0.0.0.0"))

    def http_port(self) -> int:
        try:
            return int(self._section("http").get("port", 3000))
        except (TypeError, ValueError):
            return 3000

    def approval_channel(self) -> str | None:
        return os.getenv("SLACK_TIMESHEET_CHANNEL") or self._section("slack").get("approval_channel")

    # ---------- logging ----------
    def log_level(self) -> str:
        return str(self._section("logging").get("level", "INFO")).upper()

    def lib_log_level(self) -> str | None:
        v = self._section("logging").get("lib_log_level")
        return str(v).upper() if v else None

    def log_timezone(self) -> str | None:
        return self._section("logging").get("timezone")

    def log_console(self) -> bool:
        return bool(self._section("logging").get("console_to_file", False))

    def log_errors(self) -> bool:
        return bool(self._section("logging").get("error_file", False))

    # ---------- persona ----------
    def persona_name(self) -> str:
        """Selected persona folder under personas/, restricted to safe names."""
        self._maybe_reload()
        name = self._cfg.raw.get("persona")
        if not isinstance(name, str) or not re.match(r"^[A-Za-z0-9_-]+$", name.strip()):
            return "suplo"
        return name.strip()

    def persona_path(self) -> str:
        root = Path("personas") / self.persona_name()
        for cand in (root / "persona.md", Path("personas") / f"{self.persona_name()}.md"):
            if cand.exists():
                return str(cand)
        return str(root / "persona.md")

    # ---------- llm ----------
    def backends(self) -> dict[str, BackendConfig]:
        """Configured backends in declaration order."""
        out: dict[str, BackendConfig] = {}
        for name, b in (self._section("llm").get("backends") or {}).items():
            if not isinstance(b, dict):
                continue
            key = str(name).strip().lower()
            out[key] = BackendConfig(
                name=key,
                base_url=str(b.get("base_url", "https://api.openai.com/v1")),
                model=str(b.get("model", "gpt-4o-mini")),
                api_key_env=str(b.get("api_key_env", f"{key.upper()}_API_KEY")),
                timeout=float(b.get("timeout", 60.0)),
                concurrency=int(b.get("concurrency", 4)),
            )
        return out

    def pipeline(self) -> PipelineConfig:
        llm = self._section("llm")
        p = self._section("pipeline")
        backends = self.backends()
        default_backend = str(llm.get("default_backend", "openai")).strip().lower()
        if backends and default_backend not in backends:
            raise ValueError(
                f"llm.default_backend '{default_backend}' is not one of the configured backends: {', '.join(backends)}"
            )
        window = p.get("window_size", 10)
        try:
            window = int(window) if window else None
        except (TypeError, ValueError):
            window = 10
        temperature = p.get("temperature", 0.7)
        placeholders = p.get("placeholder_messages")
        return PipelineConfig(
            default_backend=default_backend,
            window_size=window if window and window > 0 else None,
            temperature=float(temperature) if temperature is not None else None,
            documents_enabled=bool(p.get("documents_enabled", True)),
            document_max_tokens=int(p.get("document_max_tokens", 12000)),
            summary_history_limit=int(p.get("summary_history_limit", 50)),
            placeholder_messages=tuple(str(s) for s in placeholders) if isinstance(placeholders, list) else DEFAULT_PLACEHOLDERS,
            typing_status=str(p.get("typing_status", "is typing...")),
        )

    # ---------- shortcuts ----------
    def identity_triggers(self) -> tuple[str, ...]:
        v = self._section("shortcuts").get("identity_triggers")
        if isinstance(v, list) and v:
            return tuple(str(s).lower() for s in v if str(s).strip())
        return DEFAULT_IDENTITY_TRIGGERS

    def summary_keywords(self) -> tuple[str, ...]:
        v = self._section("shortcuts").get("summary_keywords")
        if isinstance(v, list) and v:
            return tuple(str(s).lower() for s in v if str(s).strip())
        return DEFAULT_SUMMARY_KEYWORDS

    # ---------- preferences ----------
    def preferences_path(self) -> str | None:
        v = self._section("preferences").get("path")
        return str(v) if v else None

    # ---------- salesforce ----------
    def salesforce(self) -> SalesforceConfig:
        sf = self._section("salesforce")
        return SalesforceConfig(
            instance_url=(os.getenv("SALESFORCE_URL") or str(sf.get("instance_url", ""))).rstrip("/"),
            client_id=os.getenv("SALESFORCE_CLIENT_ID"),
            client_secret=os.getenv("SALESFORCE_CLIENT_SECRET"),
            username=os.getenv("SALESFORCE_USER_NAME"),
            password=os.getenv("SALESFORCE_USER_PASS"),
            timezone=str(sf.get("timezone", "Asia/Jakarta")),
            timesheet_path=str(sf.get("timesheet_path", "/services/apexrest/time-sheet/v1.0/Submit")),
            leave_request_path=str(sf.get("leave_request_path", "/services/apexrest/leave-request/v1.0/Submit")),
            timeout=float(sf.get("timeout", 30.0)),
        )
