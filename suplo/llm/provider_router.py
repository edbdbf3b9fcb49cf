from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

from ..logger_factory import get_logger
from ..preference_store import PreferenceStore
from ..utils.logfmt import fmt


@dataclass(frozen=True)
class BackendChoice:
    backend: str
    requested: str | None
    fell_back: bool = False


@dataclass(frozen=True)
class PreferenceUpdate:
    ok: bool
    backend: str
    message: str


class ProviderRouter:
    """Picks the completion backend for a Slack user.

    Users without a stored preference get the default. The supported set is
    fixed at construction; the default must be part of it.
    """

    def __init__(self, store: PreferenceStore, supported: Sequence[str], default: str):
        self.supported = tuple(s.strip().lower() for s in supported)
        if not self.supported:
            raise ValueError("ProviderRouter needs at least one supported backend")
        default = default.strip().lower()
        if default not in self.supported:
            raise ValueError(f"Default backend '{default}' is not one of: {', '.join(self.supported)}")
        self.default = default
        self.store = store
        self.log = get_logger("ProviderRouter")

    def is_supported(self, backend: str | None) -> bool:
        return bool(backend) and backend.strip().lower() in self.supported

    def resolve(self, user_id: str | None) -> str:
        """Stored backend for user_id, or the default. Not validated."""
        if not user_id:
            return self.default
        return self.store.get(user_id) or self.default

    def resolve_backend(self, user_id: str | None) -> BackendChoice:
        """Validated backend for user_id; unknown stored values fall back to the default once."""
        requested = self.resolve(user_id)
        if self.is_supported(requested):
            return BackendChoice(backend=requested.strip().lower(), requested=requested)
        self.log.warning(f"[backend-fallback] {fmt('user', user_id)} {fmt('requested', requested)} {fmt('default', self.default)}")
        return BackendChoice(backend=self.default, requested=requested, fell_back=True)

    def valid_options(self) -> str:
        return ", ".join(self.supported)

    def set_preference(self, user_id: str, backend: str) -> PreferenceUpdate:
        choice = (backend or "").strip().lower()
        if choice not in self.supported:
            current = self.resolve(user_id)
            return PreferenceUpdate(
                ok=False,
                backend=current,
                message=f"Unsupported backend '{backend}'. Valid options are: {self.valid_options()}",
            )
        self.store.set(user_id, choice)
        self.log.info(f"[backend-set] {fmt('user', user_id)} {fmt('backend', choice)}")
        return PreferenceUpdate(ok=True, backend=choice, message=f"Backend switched to *{choice}*.")
