"""
Configuration Management for the Hub

Loads configuration from ~/.hub/config.json and environment variables.
"""

import os
import json
import logging
from pathlib import Path
from dataclasses import dataclass, field
from typing import Dict

logger = logging.getLogger("hub.common.config")

# Default config paths
CONFIG_DIR = Path.home() / ".hub"
CONFIG_PATH = CONFIG_DIR / "config.json"
LOGS_DIR = CONFIG_DIR / "logs"
EVENTS_LOG_PATH = CONFIG_DIR / "events.jsonl"


@dataclass
class LLMConfig:
    """Reasoning backends for the triage tiers"""
    primary_provider: str = "openai"
    primary_model: str = "gpt-4o-mini"
    secondary_provider: str = "anthropic"
    secondary_model: str = "claude-sonnet-4-20250514"
    anthropic_api_key: str = ""
    openai_api_key: str = ""
    google_api_key: str = ""
    timeout_seconds: float = 20.0
    max_tokens: int = 800


@dataclass
class IntakeConfig:
    """Event normalization limits"""
    max_field_bytes: int = 8192
    noise_threshold_bytes: int = 1024


@dataclass
class ActionPolicy:
    """Thresholds for proposing follow-on actions"""
    notion_sync_min_urgency: int = 4
    deadline_window_days: int = 2
    meeting_min_attendees: int = 2
    meeting_duration_minutes: int = 30
    follow_up_delays: Dict[int, int] = field(
        default_factory=lambda: {5: 1, 4: 3, 3: 7}
    )
    default_follow_up_days: int = 14
    action_timeout_seconds: float = 15.0

    def follow_up_delay(self, urgency: int) -> int:
        return self.follow_up_delays.get(urgency, self.default_follow_up_days)


@dataclass
class NotionConfig:
    """External tracker (Notion database) configuration"""
    api_key: str = ""
    database_id: str = ""
    api_version: str = "2022-06-28"


@dataclass
class PipelineConfig:
    """Orchestrator configuration"""
    rank_limit: int = 10
    persist_events: bool = False
    events_log_path: str = str(EVENTS_LOG_PATH)


@dataclass
class ServerConfig:
    """HTTP adapter configuration"""
    host: str = "0.0.0.0"
    port: int = 8090


@dataclass
class HubConfig:
    """Main hub configuration"""
    llm: LLMConfig = field(default_factory=LLMConfig)
    intake: IntakeConfig = field(default_factory=IntakeConfig)
    actions: ActionPolicy = field(default_factory=ActionPolicy)
    notion: NotionConfig = field(default_factory=NotionConfig)
    pipeline: PipelineConfig = field(default_factory=PipelineConfig)
    server: ServerConfig = field(default_factory=ServerConfig)
    _env_sourced_keys: set = field(default_factory=set, repr=False)


def _parse_llm_config(data: dict) -> LLMConfig:
    """Parse llm section from config dict"""
    llm_data = data.get("llm", {})
    return LLMConfig(
        primary_provider=llm_data.get("primary_provider", "openai"),
        primary_model=llm_data.get("primary_model", "gpt-4o-mini"),
        secondary_provider=llm_data.get("secondary_provider", "anthropic"),
        secondary_model=llm_data.get("secondary_model", "claude-sonnet-4-20250514"),
        anthropic_api_key=llm_data.get("anthropic_api_key", ""),
        openai_api_key=llm_data.get("openai_api_key", ""),
        google_api_key=llm_data.get("google_api_key", ""),
        timeout_seconds=float(llm_data.get("timeout_seconds", 20.0)),
        max_tokens=int(llm_data.get("max_tokens", 800)),
    )


def _parse_intake_config(data: dict) -> IntakeConfig:
    """Parse intake section from config dict"""
    intake_data = data.get("intake", {})
    return IntakeConfig(
        max_field_bytes=int(intake_data.get("max_field_bytes", 8192)),
        noise_threshold_bytes=int(intake_data.get("noise_threshold_bytes", 1024)),
    )


def _parse_action_policy(data: dict) -> ActionPolicy:
    """Parse actions section from config dict.

    JSON object keys are always strings, so follow-up delays are re-keyed
    by integer urgency.
    """
    actions_data = data.get("actions", {})
    policy = ActionPolicy(
        notion_sync_min_urgency=int(actions_data.get("notion_sync_min_urgency", 4)),
        deadline_window_days=int(actions_data.get("deadline_window_days", 2)),
        meeting_min_attendees=int(actions_data.get("meeting_min_attendees", 2)),
        meeting_duration_minutes=int(actions_data.get("meeting_duration_minutes", 30)),
        default_follow_up_days=int(actions_data.get("default_follow_up_days", 14)),
        action_timeout_seconds=float(actions_data.get("action_timeout_seconds", 15.0)),
    )
    delays = actions_data.get("follow_up_delays")
    if isinstance(delays, dict):
        policy.follow_up_delays = {int(k): int(v) for k, v in delays.items()}
    return policy


def _parse_notion_config(data: dict) -> NotionConfig:
    """Parse notion section from config dict"""
    notion_data = data.get("notion", {})
    return NotionConfig(
        api_key=notion_data.get("api_key", ""),
        database_id=notion_data.get("database_id", ""),
        api_version=notion_data.get("api_version", "2022-06-28"),
    )


def _parse_pipeline_config(data: dict) -> PipelineConfig:
    """Parse pipeline section from config dict"""
    pipeline_data = data.get("pipeline", {})
    return PipelineConfig(
        rank_limit=int(pipeline_data.get("rank_limit", 10)),
        persist_events=bool(pipeline_data.get("persist_events", False)),
        events_log_path=pipeline_data.get("events_log_path", str(EVENTS_LOG_PATH)),
    )


def _parse_server_config(data: dict) -> ServerConfig:
    """Parse server section from config dict"""
    server_data = data.get("server", {})
    return ServerConfig(
        host=server_data.get("host", "0.0.0.0"),
        port=int(server_data.get("port", 8090)),
    )


def load_config() -> HubConfig:
    """
    Load configuration from file and environment variables.

    Priority (highest to lowest):
    1. Environment variables
    2. Config file (~/.hub/config.json)
    3. Default values
    """
    config = HubConfig()

    if CONFIG_PATH.exists():
        try:
            with open(CONFIG_PATH) as f:
                data = json.load(f)

            config.llm = _parse_llm_config(data)
            config.intake = _parse_intake_config(data)
            config.actions = _parse_action_policy(data)
            config.notion = _parse_notion_config(data)
            config.pipeline = _parse_pipeline_config(data)
            config.server = _parse_server_config(data)
        except (json.JSONDecodeError, IOError, ValueError, TypeError) as e:
            logger.warning("Failed to load config file: %s", e)

    # Secrets and provider selection (track env-sourced keys)
    _env_llm_map = {
        "ANTHROPIC_API_KEY": "anthropic_api_key",
        "OPENAI_API_KEY": "openai_api_key",
        "GOOGLE_API_KEY": "google_api_key",
        "GEMINI_API_KEY": "google_api_key",
        "HUB_PRIMARY_PROVIDER": "primary_provider",
        "HUB_PRIMARY_MODEL": "primary_model",
        "HUB_SECONDARY_PROVIDER": "secondary_provider",
        "HUB_SECONDARY_MODEL": "secondary_model",
    }
    for env_var, attr in _env_llm_map.items():
        val = os.getenv(env_var)
        if val:
            setattr(config.llm, attr, val)
            config._env_sourced_keys.add(attr)

    if os.getenv("NOTION_API_KEY"):
        config.notion.api_key = os.getenv("NOTION_API_KEY")
        config._env_sourced_keys.add("notion_api_key")
    if os.getenv("NOTION_DATABASE_ID"):
        config.notion.database_id = os.getenv("NOTION_DATABASE_ID")

    if os.getenv("HUB_LLM_TIMEOUT"):
        config.llm.timeout_seconds = float(os.getenv("HUB_LLM_TIMEOUT"))
    if os.getenv("HUB_MAX_FIELD_BYTES"):
        config.intake.max_field_bytes = int(os.getenv("HUB_MAX_FIELD_BYTES"))
    if os.getenv("HUB_PORT"):
        config.server.port = int(os.getenv("HUB_PORT"))

    return config


def save_config(config: HubConfig) -> None:
    """Save configuration to file.

    Secrets that were sourced from environment variables are written as
    empty strings so that they are not persisted to disk.
    """
    CONFIG_DIR.mkdir(parents=True, exist_ok=True)

    env_sourced = getattr(config, "_env_sourced_keys", set())

    llm_section = {
        "primary_provider": config.llm.primary_provider,
        "primary_model": config.llm.primary_model,
        "secondary_provider": config.llm.secondary_provider,
        "secondary_model": config.llm.secondary_model,
        "anthropic_api_key": config.llm.anthropic_api_key,
        "openai_api_key": config.llm.openai_api_key,
        "google_api_key": config.llm.google_api_key,
        "timeout_seconds": config.llm.timeout_seconds,
        "max_tokens": config.llm.max_tokens,
    }
    for key in ("anthropic_api_key", "openai_api_key", "google_api_key"):
        if key in env_sourced:
            llm_section[key] = ""

    data = {
        "llm": llm_section,
        "intake": {
            "max_field_bytes": config.intake.max_field_bytes,
            "noise_threshold_bytes": config.intake.noise_threshold_bytes,
        },
        "actions": {
            "notion_sync_min_urgency": config.actions.notion_sync_min_urgency,
            "deadline_window_days": config.actions.deadline_window_days,
            "meeting_min_attendees": config.actions.meeting_min_attendees,
            "meeting_duration_minutes": config.actions.meeting_duration_minutes,
            "follow_up_delays": {str(k): v for k, v in config.actions.follow_up_delays.items()},
            "default_follow_up_days": config.actions.default_follow_up_days,
            "action_timeout_seconds": config.actions.action_timeout_seconds,
        },
        "notion": {
            "api_key": "" if "notion_api_key" in env_sourced else config.notion.api_key,
            "database_id": config.notion.database_id,
            "api_version": config.notion.api_version,
        },
        "pipeline": {
            "rank_limit": config.pipeline.rank_limit,
            "persist_events": config.pipeline.persist_events,
            "events_log_path": config.pipeline.events_log_path,
        },
        "server": {
            "host": config.server.host,
            "port": config.server.port,
        },
    }

    with open(CONFIG_PATH, "w") as f:
        json.dump(data, f, indent=2)

    # Set secure permissions
    CONFIG_PATH.chmod(0o600)


def ensure_directories() -> None:
    """Ensure required directories exist"""
    CONFIG_DIR.mkdir(parents=True, exist_ok=True)
    LOGS_DIR.mkdir(parents=True, exist_ok=True)
