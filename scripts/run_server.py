"""Script to launch the voice mailbox skill server."""

from __future__ import annotations

import argparse
import os
import sys

import uvicorn

# Ensure src/ is on sys.path (so imports work when run directly)
SRC_DIR = os.path.abspath(os.path.join(os.path.dirname(__file__), "..", "src"))
if SRC_DIR not in sys.path:
    sys.path.insert(0, SRC_DIR)

from mail_skill.config import configure_logging, load_config  # noqa: E402
from mail_skill.server import create_app  # noqa: E402


def main() -> None:
    parser = argparse.ArgumentParser(description="Run the voice mailbox skill server.")
    parser.add_argument(
        "--config",
        type=str,
        default=None,
        help="Path to a YAML config file (default: $MAIL_SKILL_CONFIG or config/default.yaml)",
    )
    parser.add_argument(
        "--host",
        type=str,
        default=os.environ.get("HOST"),
        help="Host to bind the server to (default: server.host from config)",
    )
    parser.add_argument(
        "--port",
        type=int,
        default=int(os.environ["PORT"]) if os.environ.get("PORT") else None,
        help="Port to bind the server to (default: server.port from config)",
    )
    parser.add_argument(
        "--log-level",
        type=str,
        default=os.environ.get("LOG_LEVEL"),
        help="Log level (default: logging.level from config)",
    )
    parser.add_argument(
        "--database",
        type=str,
        default=os.environ.get("DATABASE_URI"),
        help="SQLite database file (overrides store.path)",
    )
    parser.add_argument(
        "--reload",
        action="store_true",
        help="Enable auto-reload for development (default: off)",
    )
    parser.add_argument(
        "--workers",
        type=int,
        default=int(os.environ.get("WORKERS", "1")),
        help="Number of worker processes (default: 1)",
    )
    args = parser.parse_args()

    if args.config:
        os.environ["MAIL_SKILL_CONFIG"] = args.config
    if args.database:
        os.environ["MAIL_SKILL__STORE__PATH"] = args.database

    cfg = load_config(args.config)
    server_cfg = cfg.get("server", {})
    log_level = args.log_level or cfg.get("logging", {}).get("level", "info")
    configure_logging(log_level)

    # Factory mode lets uvicorn rebuild the app in every worker/reload.
    uvicorn.run(
        "mail_skill.server:create_app",
        factory=True,
        host=args.host or server_cfg.get("host", "127.0.0.1"),
        port=args.port or int(server_cfg.get("port", 8080)),
        reload=args.reload,
        workers=args.workers,
        log_level=str(log_level).lower(),
    )


if __name__ == "__main__":
    main()
