"""Client configuration.

All settings have sensible defaults. Override via TRUSTAGENT_* env vars or
a YAML file:

    backend:
      url: http://127.0.0.1:8765
    tools:
      seed_delay_seconds: 1.5
    events:
      queue_size: 5000
    logging:
      level: DEBUG
      dir: ~/.trustagent/logs
    demo: false
"""
from __future__ import annotations

import logging
import os
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any

import yaml

logger = logging.getLogger(__name__)

DEFAULT_HOME = Path.home() / ".trustagent"


@dataclass
class ClientConfig:
    """Settings for the backend connection, tool seeding and logging."""

    # Base URL of the HTTP backend. None runs against the in-memory backend.
    backend_url: str | None = None
    # Delay before the first "all discoverable tools" query; tool servers
    # may still be starting when the window first renders.
    tool_seed_delay_seconds: float = 1.5
    # Per-subscriber queue size on the event bridge.
    event_queue_size: int = 5000
    log_level: str = "INFO"
    log_dir: str = str(DEFAULT_HOME / "logs")
    demo_mode: bool = False

    def validate(self) -> None:
        """Clamp values into their allowed ranges."""
        if self.tool_seed_delay_seconds < 0:
            self.tool_seed_delay_seconds = 0.0
        if self.event_queue_size <= 0:
            self.event_queue_size = ClientConfig.event_queue_size
        self.log_level = (self.log_level or "INFO").upper()
        if self.backend_url is not None:
            self.backend_url = self.backend_url.rstrip("/") or None

    @classmethod
    def from_env(cls, base: ClientConfig | None = None) -> ClientConfig:
        """Apply TRUSTAGENT_* environment variables on top of *base*."""
        config = base or cls()
        env_vars = {
            k: v for k, v in os.environ.items() if k.startswith("TRUSTAGENT_")
        }
        if env_vars:
            logger.info(
                "ClientConfig.from_env: TRUSTAGENT_* overrides: %s",
                ", ".join(sorted(env_vars)),
            )

        config = replace(
            config,
            backend_url=os.getenv("TRUSTAGENT_BACKEND_URL", config.backend_url or "")
            or None,
            tool_seed_delay_seconds=float(os.getenv(
                "TRUSTAGENT_TOOL_SEED_DELAY", str(config.tool_seed_delay_seconds)
            )),
            event_queue_size=int(os.getenv(
                "TRUSTAGENT_EVENT_QUEUE_SIZE", str(config.event_queue_size)
            )),
            log_level=os.getenv("TRUSTAGENT_LOG_LEVEL", config.log_level),
            log_dir=os.getenv("TRUSTAGENT_LOG_DIR", config.log_dir),
            demo_mode=(
                os.getenv("TRUSTAGENT_DEMO", "").lower() in {"1", "true", "yes"}
                or config.demo_mode
            ),
        )
        config.validate()
        return config


def _flatten_yaml(data: dict[str, Any]) -> dict[str, Any]:
    """Map the nested YAML layout onto ClientConfig field names."""
    backend = data.get("backend") or {}
    tools = data.get("tools") or {}
    events = data.get("events") or {}
    log = data.get("logging") or {}
    flat: dict[str, Any] = {
        "backend_url": backend.get("url"),
        "tool_seed_delay_seconds": tools.get("seed_delay_seconds"),
        "event_queue_size": events.get("queue_size"),
        "log_level": log.get("level"),
        "log_dir": log.get("dir"),
        "demo_mode": data.get("demo"),
    }
    return {k: v for k, v in flat.items() if v is not None}


def load_yaml_config(path: str | Path) -> ClientConfig:
    """Load a YAML config file into a ClientConfig.

    Raises FileNotFoundError when *path* does not exist. A file that fails
    to parse is logged and yields the defaults.
    """
    path = Path(path).expanduser()
    logger.info("load_yaml_config: loading %s (exists=%s)", path, path.exists())
    if not path.is_file():
        raise FileNotFoundError(f"Config file not found: {path}")

    try:
        with open(path) as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as exc:
        logger.warning("load_yaml_config: YAML parse error in %s: %s", path, exc)
        return ClientConfig()

    if not isinstance(data, dict):
        logger.warning("load_yaml_config: %s is not a mapping; using defaults", path)
        return ClientConfig()

    known = {f.name for f in fields(ClientConfig)}
    values = {k: v for k, v in _flatten_yaml(data).items() if k in known}
    if "log_dir" in values:
        values["log_dir"] = str(Path(values["log_dir"]).expanduser())
    config = ClientConfig(**values)
    config.validate()
    logger.info(
        "load_yaml_config: backend=%s seed_delay=%.2fs demo=%s",
        config.backend_url or "<in-memory>",
        config.tool_seed_delay_seconds,
        config.demo_mode,
    )
    return config


def discover_config_path(cwd: Path | None = None) -> Path | None:
    """Return ./.trustagent/config.yaml or ~/.trustagent/config.yaml if present."""
    cwd = cwd or Path.cwd()
    candidates = [cwd / ".trustagent" / "config.yaml", DEFAULT_HOME / "config.yaml"]
    for candidate in candidates:
        if candidate.is_file():
            logger.info("Auto-discovered config: %s", candidate)
            return candidate
    logger.debug(
        "No config file found (tried %s); using defaults",
        ", ".join(str(c) for c in candidates),
    )
    return None


def load_config(path: str | Path | None = None, cwd: Path | None = None) -> ClientConfig:
    """Resolve the effective config: YAML file (explicit or discovered) + env."""
    config_path = Path(path) if path else discover_config_path(cwd)
    base = load_yaml_config(config_path) if config_path else ClientConfig()
    return ClientConfig.from_env(base)
