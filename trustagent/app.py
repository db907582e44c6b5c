"""TrustAgent CLI — main application entry point."""

from __future__ import annotations

import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path

from trustagent.adapters.backend import Backend
from trustagent.config import ClientConfig, load_config

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s [pid=%(process)d] %(message)s"

# Tool servers offered by the in-memory backend in demo mode
DEMO_SERVERS: dict[str, list[str]] = {
    "filesystem": ["read_file", "write_file", "list_directory"],
    "web-search": ["search", "fetch_url"],
}


def configure_logging(config: ClientConfig, *, stream: bool = False) -> Path:
    """Send all logging to a rotating file under ``config.log_dir``.

    The TUI owns the terminal, so stderr logging is off unless *stream*.
    """
    log_dir = Path(config.log_dir).expanduser()
    log_dir.mkdir(parents=True, exist_ok=True)
    log_file = log_dir / "trustagent.log"

    root = logging.getLogger()
    root.setLevel(getattr(logging, config.log_level, logging.INFO))
    root.handlers.clear()
    formatter = logging.Formatter(LOG_FORMAT)
    file_handler = RotatingFileHandler(
        log_file, maxBytes=2_000_000, backupCount=5, encoding="utf-8"
    )
    file_handler.setFormatter(formatter)
    root.addHandler(file_handler)
    if stream:
        stream_handler = logging.StreamHandler(sys.stderr)
        stream_handler.setFormatter(formatter)
        root.addHandler(stream_handler)
    # aiohttp access chatter is not useful in a client log
    logging.getLogger("aiohttp.access").setLevel(logging.WARNING)
    return log_file


def build_backend(config: ClientConfig) -> tuple[Backend, str]:
    """Pick the backend for *config*; returns it with a short display label."""
    if config.backend_url and not config.demo_mode:
        from trustagent.adapters.http_backend import HttpBackend

        return HttpBackend(config.backend_url), config.backend_url

    from trustagent.adapters.memory_backend import InMemoryBackend

    config.demo_mode = True
    return InMemoryBackend(servers=DEMO_SERVERS), "in-memory"


def main(argv: list[str] | None = None) -> None:
    import argparse

    parser = argparse.ArgumentParser(
        prog="trustagent",
        description="TrustAgent — terminal chat client for a tool-using agent",
    )
    parser.add_argument(
        "--backend-url", metavar="URL",
        help="Base URL of the agent backend (HTTP + SSE)",
    )
    parser.add_argument(
        "--demo", action="store_true",
        help="Run against the built-in in-memory backend with simulated replies",
    )
    parser.add_argument(
        "--config", metavar="PATH",
        help="YAML config file (default: .trustagent/config.yaml, then ~/.trustagent/config.yaml)",
    )
    parser.add_argument(
        "--log-level", metavar="LEVEL",
        help="Logging level (DEBUG, INFO, WARNING, ...)",
    )
    args = parser.parse_args(argv)

    try:
        config = load_config(args.config)
    except FileNotFoundError as exc:
        parser.error(str(exc))
    if args.backend_url:
        config.backend_url = args.backend_url
    if args.demo:
        config.demo_mode = True
    if args.log_level:
        config.log_level = args.log_level
    config.validate()

    log_file = configure_logging(config)
    backend, label = build_backend(config)
    logging.getLogger(__name__).info(
        "Starting TrustAgent cwd=%s backend=%s demo=%s config=%s log=%s",
        Path.cwd(),
        label,
        config.demo_mode,
        args.config or "<auto>",
        log_file,
    )

    from trustagent.tui.app import TrustAgentApp

    app = TrustAgentApp(backend, config, backend_label=label)
    app.run()


if __name__ == "__main__":
    main()
