#!/usr/bin/env python3
"""
Launcher for the SheetGraph HTTP server (installed as `sheetgraph-server`).

Command-line options override the matching SG_* environment variables:

    --port            SG_HTTP_PORT        (default: 8765)
    --host            SG_HTTP_HOST        (default: 127.0.0.1)
    --log-level       SG_LOG_LEVEL        (default: INFO)
    --cache-dir       SG_CACHE_DIR        (default: ~/.sheetgraph/cache)
    --analyzer-url    SG_ANALYZER_URL     (analysis disabled when unset)
    --translator-url  SG_TRANSLATOR_URL   (question translation disabled when unset)
    --history-size    SG_HISTORY_SIZE     (snapshots kept per session, default: 11)

Every other setting is read by SheetGraphConfig.from_env().
"""

import argparse
import os
import sys

# argparse destination -> environment variable
OPTION_ENV = {
    "port": "SG_HTTP_PORT",
    "host": "SG_HTTP_HOST",
    "log_level": "SG_LOG_LEVEL",
    "cache_dir": "SG_CACHE_DIR",
    "analyzer_url": "SG_ANALYZER_URL",
    "translator_url": "SG_TRANSLATOR_URL",
    "history_size": "SG_HISTORY_SIZE",
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="sheetgraph-server",
        description="Serve spreadsheet graph workspaces over HTTP and WebSocket",
    )
    parser.add_argument("--port", type=int, help="Listen port")
    parser.add_argument("--host", help="Listen address")
    parser.add_argument("--log-level", type=str.upper, help="DEBUG, INFO, WARNING or ERROR")
    parser.add_argument("--cache-dir", help="Directory for cached analysis results")
    parser.add_argument("--analyzer-url", help="Base URL of the analysis service")
    parser.add_argument("--translator-url", help="Base URL of the query translation service")
    parser.add_argument("--history-size", type=int, help="Undo snapshots kept per session")
    return parser


def apply_args(args: argparse.Namespace, environ=os.environ):
    """Copy the options that were given into the environment."""
    for dest, env_name in OPTION_ENV.items():
        value = getattr(args, dest, None)
        if value is not None:
            environ[env_name] = str(value)


def main(argv: list[str] | None = None):
    args = build_parser().parse_args(argv)
    apply_args(args)

    port = int(os.getenv("SG_HTTP_PORT", "8765"))
    host = os.getenv("SG_HTTP_HOST", "127.0.0.1")
    log_level = os.getenv("SG_LOG_LEVEL", "INFO").lower()

    print(f"SheetGraph listening on http://{host}:{port} (log level {log_level.upper()})")
    print(f"Analyzer: {os.getenv('SG_ANALYZER_URL') or 'not configured'}")
    print(f"Translator: {os.getenv('SG_TRANSLATOR_URL') or 'not configured'}")

    try:
        import uvicorn
        from sheetgraph.web.app import app

        uvicorn.run(app, host=host, port=port, log_level=log_level)
    except KeyboardInterrupt:
        print("\nSheetGraph stopped")
    except Exception as e:
        print(f"Could not start SheetGraph: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
