"""bulklist-upload command-line entry-point and reusable `run_upload()` helper.

Input comes from a file (``--input``, ``-`` for stdin) or inline text
(``--text``); both go through the same parser.

Example – upload a CSV with a 10 second pause between titles
------------------------------------------------------------
>>> bulklist-upload \
        --list https://www.imdb.com/list/ls012345678/edit \
        --input titles.csv --delay 10

Example – check what would be uploaded
--------------------------------------
>>> bulklist-upload --list ls012345678 --input titles.csv --dry-run

Users who prefer Python can also import ``run_upload`` directly::

    from bulklist.cli import run_upload

    report = run_upload(text=open("titles.csv").read(), list_id="ls012345678")
"""
from __future__ import annotations

import argparse
import logging
import os
import signal
import sys
import threading
from typing import Optional, TextIO

from bulklist.client import ListClient
from bulklist.errors import ConfigurationError
from bulklist.models import DELAY_CHOICES_MS, BatchReport, DelayPolicy, ItemOutcome
from bulklist.orchestrator import BatchOrchestrator, resolve_list_id
from bulklist.parser import TEMPLATE_TEXT, parse, read_source
from bulklist.transport import GRAPHQL_ENDPOINT, RequestsTransport, Transport

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FAILURES = 1
EXIT_CONFIG = 2


###############################################################################
# Internal helpers
###############################################################################

def _install_signal_handlers(cancel_event: threading.Event):
    def _handler(signum, _):
        if not cancel_event.is_set():
            logger.warning("Signal %s received – cancelling, will stop after current item…", signum)
        cancel_event.set()

    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            signal.signal(sig, _handler)
        except ValueError:
            # Not in the main thread; cancellation must come from the caller.
            pass


def format_outcome(outcome: ItemOutcome, done: int, total: int) -> str:
    if outcome.succeeded:
        line = f"[{done}/{total}] Added {outcome.display_label} ({outcome.id})"
        if outcome.warning:
            line += f" – {outcome.warning}"
        return line
    return f"[{done}/{total}] Failed {outcome.id}: {outcome.failure_reason}"


###############################################################################
# Public runner API (can be imported)
###############################################################################

def run_upload(
    *,
    text: str,
    list_id: Optional[str],
    delay_seconds: Optional[float] = None,
    transport: Optional[Transport] = None,
    session_id: Optional[str] = None,
    consent_info: Optional[str] = None,
    language: str = "en-US",
    endpoint: str = GRAPHQL_ENDPOINT,
    cancel_event: Optional[threading.Event] = None,
    out: Optional[TextIO] = None,
) -> BatchReport:
    """Wire up parser → orchestrator → GraphQL transport and process to completion.

    Raises:
        ConfigurationError: if the list id cannot be resolved or the input has
            no valid items.
    """
    resolved = resolve_list_id(list_id)
    if not resolved:
        raise ConfigurationError(f"Could not determine list ID from {list_id!r}.")

    items = parse(text)
    if not items:
        raise ConfigurationError("No valid items found. Check your input format.")

    owns_transport = transport is None
    if owns_transport:
        transport = RequestsTransport.from_credentials(
            session_id=session_id,
            consent_info=consent_info,
            language=language,
            endpoint=endpoint,
        )

    out = out or sys.stdout
    cancel_event = cancel_event or threading.Event()
    orchestrator = BatchOrchestrator(ListClient(transport), sleep=cancel_event.wait)

    def on_progress(outcome: ItemOutcome, done: int, total: int):
        print(format_outcome(outcome, done, total), file=out, flush=True)

    print(f"Starting upload of {len(items)} item(s)…", file=out, flush=True)
    try:
        report = orchestrator.run(
            items,
            resolved,
            DelayPolicy.from_seconds(delay_seconds),
            is_cancelled=cancel_event.is_set,
            on_progress=on_progress,
        )
    finally:
        if owns_transport:
            transport.close()
    print(report.summary(), file=out, flush=True)
    return report


###############################################################################
# CLI entry‑point
###############################################################################

def _build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="bulklist-upload",
        description="Bulk add titles to a list from CSV data",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )

    p.add_argument("--template", action="store_true", help="Print a CSV template and exit")
    p.add_argument("--list", dest="list_id", help="List id (ls…) or list page URL")

    # mutually exclusive sources
    src = p.add_mutually_exclusive_group()
    src.add_argument("--input", help="CSV or plain-id file ('-' for stdin)")
    src.add_argument("--text", help="Inline CSV text")

    p.add_argument("--delay", type=float, default=0,
                   help="Seconds to wait between items (suggested: %s)"
                   % ", ".join(str(ms // 1000) for ms in DELAY_CHOICES_MS))
    p.add_argument("--dry-run", action="store_true", help="Parse and list items without uploading")

    # credentials / endpoint
    p.add_argument("--session-id", default=os.environ.get("BULKLIST_SESSION_ID"),
                   help="session-id cookie (default: $BULKLIST_SESSION_ID)")
    p.add_argument("--consent-info", default=os.environ.get("BULKLIST_CONSENT_INFO"),
                   help="ci cookie (default: $BULKLIST_CONSENT_INFO)")
    p.add_argument("--language", default="en-US", help="User language header")
    p.add_argument("--endpoint", default=GRAPHQL_ENDPOINT, help="GraphQL endpoint")

    return p


def main(argv: Optional[list[str]] = None) -> int:
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(message)s")
    logging.getLogger("urllib3").setLevel(logging.WARNING)
    parser = _build_parser()
    args = parser.parse_args(argv)

    if args.template:
        print(TEMPLATE_TEXT)
        return EXIT_OK

    if args.input is None and args.text is None:
        parser.error("one of --input or --text is required")
    if args.delay < 0:
        parser.error("--delay must not be negative")

    text = args.text if args.text is not None else read_source(args.input)

    if args.dry_run:
        items = parse(text)
        for item in items:
            print(f"{item.id}\t{item.annotation}")
        print(f"{len(items)} item(s)")
        return EXIT_OK if items else EXIT_CONFIG

    cancel_event = threading.Event()
    _install_signal_handlers(cancel_event)

    try:
        report = run_upload(
            text=text,
            list_id=args.list_id,
            delay_seconds=args.delay,
            session_id=args.session_id,
            consent_info=args.consent_info,
            language=args.language,
            endpoint=args.endpoint,
            cancel_event=cancel_event,
        )
    except ConfigurationError as e:
        logger.error("%s", e)
        return EXIT_CONFIG

    if report.cancelled or report.failed:
        return EXIT_FAILURES
    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
