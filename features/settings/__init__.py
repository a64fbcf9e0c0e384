"""
Settings feature — agent registry and verification settings.

Public API:
    from features.settings import SettingsStore, RegisteredAgent, VerificationSettings
"""

from features.settings.models import AppSettings, RegisteredAgent, VerificationSettings
from features.settings.store import SettingsStore

__all__ = ["AppSettings", "RegisteredAgent", "SettingsStore", "VerificationSettings"]
