"""
Settings store — reads settings.toml on every call.

Settings may be edited while the service runs, so nothing is cached. A
missing file means defaults; a broken file is logged and also means defaults,
so a typo never stops verification bookkeeping from running.
"""

from __future__ import annotations

import logging
import tomllib
from pathlib import Path

from pydantic import ValidationError

import config
from features.settings.models import AppSettings, RegisteredAgent, VerificationSettings

log = logging.getLogger(__name__)


class SettingsStore:
    def __init__(self, path: Path | str | None = None):
        self.path = Path(path) if path is not None else config.SETTINGS_FILE

    def load(self) -> AppSettings:
        try:
            raw = tomllib.loads(self.path.read_text())
        except FileNotFoundError:
            return AppSettings()
        except (OSError, tomllib.TOMLDecodeError) as e:
            log.warning("Could not read settings %s: %s (using defaults)", self.path, e)
            return AppSettings()

        try:
            return AppSettings.model_validate(raw)
        except ValidationError as e:
            log.warning("Invalid settings in %s: %s (using defaults)", self.path, e)
            return AppSettings()

    def get_verification_settings(self) -> VerificationSettings:
        return self.load().verification

    def get_verification_agent(self) -> RegisteredAgent:
        settings = self.load()
        return self._resolve_agent(settings, settings.verification.agent)

    def get_action_agent(self, action: str) -> RegisteredAgent:
        settings = self.load()
        agent_id = getattr(settings.actions, action, "") or ""
        return self._resolve_agent(settings, agent_id)

    @staticmethod
    def _resolve_agent(settings: AppSettings, agent_id: str) -> RegisteredAgent:
        if agent_id and agent_id != "default" and agent_id in settings.agents:
            return settings.agents[agent_id]
        return RegisteredAgent(command=settings.agent.command)
