"""
valheim-watcher command line interface.

Usage:
    valheim-watcher serve [--port PORT]
    valheim-watcher replay <logfile> [--json]

`serve` runs the HTTP service; ingestion is configured through the
environment (SOURCE_MODE, START_SCRIPT, LOG_FILE, ...).

`replay` runs a saved server log through the extractor and correlator and
prints every notification followed by the final identity table.
"""
import argparse
import sys
from pathlib import Path

import orjson
import structlog

from .adapters.messages import render_message
from .config import get_settings
from .correlator import IdentityCorrelator
from .logging import setup_logging
from .parser import EventExtractor

log = structlog.get_logger()


def replay(path: Path, json_output: bool = False, out=None) -> int:
    """
    Rebuild identity state from a saved log file.

    Returns:
        Process exit code
    """
    out = out or sys.stdout
    if not path.is_file():
        log.error("replay.file_missing", path=str(path))
        return 1

    extractor = EventExtractor()
    correlator = IdentityCorrelator()

    with path.open("r", encoding="utf-8", errors="replace") as f:
        for line_no, event in extractor.extract_all(f):
            for notification in correlator.apply(event):
                if json_output:
                    out.write(orjson.dumps({"line": line_no, **notification.model_dump()}).decode() + "\n")
                else:
                    message = render_message(notification).replace("\n", " ")
                    out.write(f"[line {line_no}] {message}\n")

    snapshot = correlator.snapshot()
    if json_output:
        out.write(orjson.dumps(snapshot.model_dump(), option=orjson.OPT_NON_STR_KEYS).decode() + "\n")
    else:
        out.write("Final state:\n")
        for peer_id, name in sorted(snapshot.identities.items()):
            out.write(f"  {peer_id}: {name}\n")
        if snapshot.pending_peers:
            out.write(f"Unmatched peers: {', '.join(map(str, snapshot.pending_peers))}\n")
        if snapshot.pending_characters:
            out.write(f"Unmatched characters: {', '.join(snapshot.pending_characters)}\n")
    return 0


def serve(port: int | None = None) -> int:
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "valheim_watcher.main:app",
        host="0.0.0.0",
        port=port or settings.SERVICE_PORT,
    )
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="valheim-watcher",
        description="Watch a Valheim dedicated server and track who plays as whom.",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    serve_parser = subparsers.add_parser("serve", help="Run the HTTP service")
    serve_parser.add_argument("--port", type=int, default=None, help="Override SERVICE_PORT")

    replay_parser = subparsers.add_parser("replay", help="Rebuild identity state from a saved log")
    replay_parser.add_argument("logfile", type=Path)
    replay_parser.add_argument("--json", action="store_true", help="Print JSON lines instead of text")

    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)

    if args.command == "serve":
        return serve(args.port)

    settings = get_settings()
    # Logs go to stderr so replay output stays clean
    setup_logging(json_output=settings.LOG_JSON, level="WARNING", stream=sys.stderr)
    return replay(args.logfile, json_output=args.json)


if __name__ == "__main__":
    sys.exit(main())
