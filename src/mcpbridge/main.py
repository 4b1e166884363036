"""
MCP bridge entry point.

This file handles startup concerns (arg-parsing, logging) and launches the requested interface:
the REST API, the interactive shell (API in a background thread), or the bundled tool provider.
"""

import argparse
import logging
import sys

from mcpbridge.config import settings

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------
def _init_logging(level: str, stream=sys.stdout) -> None:
    numeric = getattr(logging, level.upper(), logging.INFO)
    logging.basicConfig(
        level=numeric,
        format="%(asctime)s | %(name)s | %(levelname)s | %(message)s",
        stream=stream,
    )
    # Per-request lines from the HTTP clients are noise at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Run the MCP tool bridge")
    parser.add_argument(
        "--mode",
        choices=["api", "cli", "tools"],
        type=str.lower,
        default="api",
        help="Launch the REST API, the interactive shell, or the stdio tool provider (default: api)",
    )
    parser.add_argument(
        "--log-level",
        choices=["debug", "info", "warning", "error", "critical"],
        type=str.lower,
        default=settings.LOG_LEVEL,
        help="Logging level (default from env: %(default)s)",
    )
    return parser


# ---------------------------------------------------------------------------
# Main
# ---------------------------------------------------------------------------
def main(argv: list[str] | None = None) -> None:
    """
    Main entry point for the bridge.

    ``api`` serves HTTP in the foreground; ``cli`` serves HTTP from a daemon thread and runs the
    shell in the main thread; ``tools`` speaks MCP on stdin/stdout and logs to stderr.
    """
    if argv is None:
        argv = sys.argv[1:]

    args = build_parser().parse_args(argv)

    # Override log level setting with command-line argument
    settings.LOG_LEVEL = args.log_level

    if args.mode == "tools":
        # Lazy import so the API stack is not loaded inside the provider process
        from mcpbridge.tools.server import (  # pylint: disable=import-outside-toplevel
            run_server,
        )

        run_server(log_level=settings.LOG_LEVEL)
        return

    _init_logging(settings.LOG_LEVEL)
    logger.info("Starting MCP bridge [%s mode]", args.mode)
    logger.debug("Settings: %s", settings.model_dump())

    from mcpbridge.api.app import run_api  # pylint: disable=import-outside-toplevel

    if args.mode == "api":
        run_api(host="0.0.0.0", port=settings.API_PORT, reload=settings.DEBUG)
        return

    import threading  # pylint: disable=import-outside-toplevel

    from mcpbridge.client.cli import run_cli  # pylint: disable=import-outside-toplevel

    api_thread = threading.Thread(
        target=run_api,
        kwargs={
            "host": "127.0.0.1",
            "port": settings.API_PORT,
            "reload": False,  # Reload doesn't work well with threading
            "log_level": "warning",
        },
        daemon=True,
    )
    api_thread.start()
    run_cli()


if __name__ == "__main__":
    main()
