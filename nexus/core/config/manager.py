from __future__ import annotations

import logging
import os
from typing import Any, Dict, Mapping, Optional

from pydantic import ValidationError as PydanticValidationError

from nexus.core.config.io import atomic_write_json, load_or_default, read_json_file
from nexus.core.config.models import ConsoleConfig, CredentialEntry, default_config_dict
from nexus.core.errors import ConfigError
from nexus.core.events.redaction import redact


ENV_REMOTE_URL = "NEXUS_REMOTE_URL"
ENV_REMOTE_KEY = "NEXUS_REMOTE_KEY"
ENV_REMOTE_ACCESS_TOKEN = "NEXUS_REMOTE_ACCESS_TOKEN"

_ENV_OVERRIDES = {
    ENV_REMOTE_URL: "base_url",
    ENV_REMOTE_KEY: "api_key",
    ENV_REMOTE_ACCESS_TOKEN: "access_token",
}


class ConfigManager:
    """
    Loads `config/console.json`.

    Missing file -> defaults written; corrupt JSON -> quarantined and replaced
    by defaults; schema violations raise ConfigError. Remote store settings can
    be overridden from the environment without touching the file.
    """

    def __init__(self, *, path: str = os.path.join("config", "console.json"), env: Optional[Mapping[str, str]] = None, logger: Optional[logging.Logger] = None):
        self.path = path
        self.env = os.environ if env is None else env
        self.logger = logger or logging.getLogger("nexus.config")
        self._cfg: Optional[ConsoleConfig] = None
        self.was_recovered = False

    def load(self) -> ConsoleConfig:
        rr = load_or_default(self.path, default_config_dict())
        self.was_recovered = bool(rr.was_recovered)
        if rr.was_recovered:
            self.logger.warning(f"Config file {self.path} was corrupt ({rr.error}); defaults restored.")
        cfg = self._validate(rr.data)
        self._cfg = self._apply_env(cfg)
        return self._cfg

    def get(self) -> ConsoleConfig:
        if self._cfg is None:
            raise ConfigError("Config not loaded.", path=self.path)
        return self._cfg

    def save(self, cfg: ConsoleConfig) -> None:
        """Persist the file form; env overrides are never written back."""
        raw = read_json_file(self.path)
        base = raw.data if raw.ok else {}
        data = cfg.model_dump(mode="json")
        data["remote"] = dict(base.get("remote") or data["remote"])
        atomic_write_json(self.path, data)
        self.load()

    def add_credential(self, entry: CredentialEntry) -> ConsoleConfig:
        cfg = self.get() if self._cfg is not None else self.load()
        creds = [c for c in cfg.auth.credentials if c.digest != entry.digest] + [entry]
        new = cfg.model_copy(update={"auth": cfg.auth.model_copy(update={"credentials": creds})})
        self.save(new)
        return self.get()

    def describe(self) -> Dict[str, Any]:
        """Redacted view for diagnostics."""
        cfg = self.get()
        out = cfg.model_dump(mode="json")
        out["remote_configured"] = cfg.is_remote_configured()
        return redact(out)

    # ---- internals ----
    def _validate(self, data: Dict[str, Any]) -> ConsoleConfig:
        try:
            return ConsoleConfig.model_validate(data)
        except PydanticValidationError as e:
            raise ConfigError(f"{os.path.basename(self.path)} invalid: {e.error_count()} error(s).", path=self.path, errors=str(e)) from e

    def _apply_env(self, cfg: ConsoleConfig) -> ConsoleConfig:
        updates: Dict[str, Any] = {}
        for var, attr in _ENV_OVERRIDES.items():
            val = str(self.env.get(var) or "").strip()
            if val:
                updates[attr] = val
        if not updates:
            return cfg
        self.logger.info(f"Remote store settings overridden from environment: {sorted(updates)}")
        return cfg.model_copy(update={"remote": cfg.remote.model_copy(update=updates)})
