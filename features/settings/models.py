"""
Pydantic models for user-editable settings (settings.toml).
"""

from __future__ import annotations

from pydantic import BaseModel, Field

import config


class RegisteredAgent(BaseModel):
    """An agent CLI the dashboard can launch."""
    command: str = Field(min_length=1)
    model: str | None = None
    label: str | None = None


class AgentSettings(BaseModel):
    command: str = Field(default=config.DEFAULT_AGENT_COMMAND, min_length=1)


class ActionAgentMappings(BaseModel):
    """Agent id per action. "" or "default" means the default agent."""
    take: str = ""
    scene: str = ""
    direct: str = ""
    breakdown: str = ""


class VerificationSettings(BaseModel):
    enabled: bool = False
    agent: str = ""
    max_retries: int = config.DEFAULT_MAX_RETRIES


class AppSettings(BaseModel):
    agent: AgentSettings = Field(default_factory=AgentSettings)
    agents: dict[str, RegisteredAgent] = Field(default_factory=dict)
    actions: ActionAgentMappings = Field(default_factory=ActionAgentMappings)
    verification: VerificationSettings = Field(default_factory=VerificationSettings)
