#!/usr/bin/env python3
"""
Speed check CLI -- estimate throughput, latency and jitter from the terminal.

Usage::

    python speedcheck.py                        # rich dashboard
    python speedcheck.py --simple               # plain text
    python speedcheck.py --json                 # JSON to stdout
    python speedcheck.py -o result.json         # save to file
    python speedcheck.py --csv log.csv          # append CSV row
    python speedcheck.py --share                # print a share link
    python speedcheck.py --decode LINK_OR_TOKEN # show a shared result
    python speedcheck.py --history              # show past results
    python speedcheck.py --repeat 5 --interval 60
    python speedcheck.py --timeout 20           # give up after 20 s
"""
from __future__ import annotations

import argparse
import asyncio
import json
import logging
import os
import sys
import time
from typing import Any, Dict, Optional

from speedcore.cancel import CancelToken
from speedcore.collector import SampleCollector
from speedcore.config import DEFAULTS, config_path, get_config_value, load_config, set_config_value
from speedcore.constants import (
    MAX_INTERVAL,
    MAX_SAMPLE_COUNT,
    MAX_TIMEOUT,
    MIN_SAMPLE_COUNT,
    MIN_TIMEOUT,
)
from speedcore.errors import DecodeFailure
from speedcore.history import JsonFileStorage, ResultStore, decode_share_link, share_link
from speedcore.logging_setup import configure_logging
from speedcore.models import MeasurementResult
from speedcore.orchestrator import TestOrchestrator
from speedcore.rating import compare_with_previous, format_delta
from ui.dashboard import PhaseProgress, console, print_final_results, print_header, print_history
from ui.output import (
    create_result_json,
    format_csv_header,
    format_csv_row,
    format_share_text,
    format_text_result,
    save_json,
)

logger = logging.getLogger("speedcheck")


# ---------------------------------------------------------------------------
# Parameter validation
# ---------------------------------------------------------------------------

def _validate(
    ping_count: int,
    jitter_count: int,
    ping_interval: float,
    jitter_interval: float,
    request_timeout: float,
) -> None:
    """Raise ``ValueError`` if any parameter is out of range."""
    if not MIN_SAMPLE_COUNT <= ping_count <= MAX_SAMPLE_COUNT:
        raise ValueError(f"Ping count must be between {MIN_SAMPLE_COUNT} and {MAX_SAMPLE_COUNT}")
    if not MIN_SAMPLE_COUNT <= jitter_count <= MAX_SAMPLE_COUNT:
        raise ValueError(f"Jitter count must be between {MIN_SAMPLE_COUNT} and {MAX_SAMPLE_COUNT}")
    if not 0 <= ping_interval <= MAX_INTERVAL:
        raise ValueError(f"Ping interval must be between 0 and {MAX_INTERVAL} s")
    if not 0 <= jitter_interval <= MAX_INTERVAL:
        raise ValueError(f"Jitter interval must be between 0 and {MAX_INTERVAL} s")
    if not MIN_TIMEOUT <= request_timeout <= MAX_TIMEOUT:
        raise ValueError(f"Request timeout must be between {MIN_TIMEOUT} and {MAX_TIMEOUT} s")


# ---------------------------------------------------------------------------
# Wiring
# ---------------------------------------------------------------------------

def build_store(config: Dict[str, Any]) -> ResultStore:
    return ResultStore(JsonFileStorage(config.get("storage_file") or None))


def build_orchestrator(config: Dict[str, Any], store: ResultStore) -> TestOrchestrator:
    collector = SampleCollector(
        download_endpoints=config["download_endpoints"],
        ping_endpoints=config["ping_endpoints"],
        jitter_endpoint=config["jitter_endpoint"],
        ping_count=config["ping_count"],
        ping_interval=config["ping_interval"],
        jitter_count=config["jitter_count"],
        jitter_interval=config["jitter_interval"],
        request_timeout=config["request_timeout"],
    )
    return TestOrchestrator(collector=collector, store=store)


# ---------------------------------------------------------------------------
# Core test runner
# ---------------------------------------------------------------------------

async def run_speedcheck(
    orchestrator: TestOrchestrator,
    config: Dict[str, Any],
    *,
    json_output: bool = False,
    output_file: Optional[str] = None,
    csv_file: Optional[str] = None,
    simple: bool = False,
    share: bool = False,
    timeout: float = 0.0,
) -> Optional[MeasurementResult]:
    """Run one full test and present it.  Returns None if cancelled."""

    show_ui = not json_output and not simple
    store = orchestrator.store
    previous = store.last_result if store is not None else None

    token = CancelToken()
    if timeout > 0:
        asyncio.get_running_loop().call_later(timeout, token.cancel)

    if show_ui:
        print_header()
        progress = PhaseProgress()
        progress.start()
        orchestrator.on_progress = progress.update

    try:
        result = await orchestrator.run_full_test(token=token)
    finally:
        if show_ui:
            progress.stop()
            orchestrator.on_progress = None

    if result is None:
        msg = f"Test cancelled after {timeout:.0f}s" if token.cancelled else "A test is already running"
        if show_ui:
            console.print(f"\n[yellow]{msg}[/yellow]")
        else:
            print(msg, file=sys.stderr)
        return None

    link = share_link(result, config["share_origin"], config["share_path"])
    result_json = create_result_json(result, share_url=link if share else None)

    # -- Presentation -------------------------------------------------------
    if show_ui:
        print_final_results(result)
        delta = compare_with_previous(result, previous)
        if delta:
            console.print(
                f"  vs last: "
                f"Ping {format_delta(delta['ping_delta'], 'ms', invert=True)}  "
                f"DL {format_delta(delta['download_delta'], 'Mbps')}  "
                f"UL {format_delta(delta['upload_delta'], 'Mbps')}"
            )
    elif simple:
        print(format_text_result(result))

    if json_output:
        print(json.dumps(result_json, indent=2))

    # -- Files --------------------------------------------------------------
    if output_file:
        save_json(result_json, output_file)
        if not json_output:
            console.print(f"\n[green]Results saved to:[/green] {output_file}")

    if csv_file:
        _append_csv(csv_file, result)
        if not json_output:
            console.print(f"[green]CSV row appended to:[/green] {csv_file}")

    # -- Share --------------------------------------------------------------
    if share and not json_output:
        share_text = format_share_text(result, link)
        if show_ui:
            from rich.panel import Panel
            console.print(Panel(share_text, title="Share This Result", border_style="cyan"))
        else:
            print("\n" + share_text)

    return result


def _append_csv(path: str, result: MeasurementResult) -> None:
    """Append a single CSV row, writing the header if the file is new."""
    write_header = not os.path.isfile(path) or os.path.getsize(path) == 0
    with open(path, "a", encoding="utf-8") as fh:
        if write_header:
            fh.write(format_csv_header() + "\n")
        fh.write(format_csv_row(result) + "\n")


def _show_shared(value: str, json_output: bool) -> int:
    decoded = decode_share_link(value)
    if isinstance(decoded, DecodeFailure):
        console.print(f"[red]Error: {decoded.reason}[/red]")
        return 1
    if json_output:
        print(json.dumps(create_result_json(decoded), indent=2))
    else:
        print_final_results(decoded, title="Shared Result")
    return 0


def _set_config(assignment: str) -> str:
    """Persist one ``KEY=VALUE`` pair.  VALUE is parsed as JSON when it can be."""
    key, sep, raw = assignment.partition("=")
    key = key.strip()
    if not sep or not key:
        raise ValueError(f"Expected KEY=VALUE, got {assignment!r}")
    if key not in DEFAULTS:
        raise ValueError(f"Unknown config key {key!r}; known keys: {', '.join(sorted(DEFAULTS))}")
    try:
        value = json.loads(raw)
    except json.JSONDecodeError:
        value = raw
    return set_config_value(key, value)


# ---------------------------------------------------------------------------
# CLI
# ---------------------------------------------------------------------------

def main() -> None:
    config = load_config()

    parser = argparse.ArgumentParser(
        description="Speed check -- throughput, latency and jitter from public endpoints",
    )
    # Output modes
    parser.add_argument("--json", "-j", action="store_true", help="Output results as JSON")
    parser.add_argument("--output", "-o", type=str, metavar="FILE", help="Save results to JSON file")
    parser.add_argument("--csv", type=str, metavar="FILE", help="Append results as CSV row")
    parser.add_argument("--simple", "-s", action="store_true", help="Simple output mode (no dashboard)")
    parser.add_argument("--share", action="store_true", help="Print a shareable link")
    parser.add_argument("--decode", type=str, metavar="LINK", help="Show a shared result and exit")

    # Test parameters
    parser.add_argument("--ping-count", type=int, default=config["ping_count"], metavar="N", help="Number of ping samples (default: 5)")
    parser.add_argument("--jitter-count", type=int, default=config["jitter_count"], metavar="N", help="Number of jitter samples (default: 8)")
    parser.add_argument("--request-timeout", type=float, default=config["request_timeout"], metavar="SECS", help="Per-request timeout (default: 10)")
    parser.add_argument("--timeout", type=float, default=0.0, metavar="SECS", help="Cancel the whole test after SECS (default: never)")

    # Repeat mode
    parser.add_argument("--repeat", type=int, default=1, metavar="N", help="Run the test N times (default: 1)")
    parser.add_argument("--interval", type=float, default=60.0, metavar="SECS", help="Seconds between repeated tests (default: 60)")

    # History
    parser.add_argument("--history", action="store_true", help="Show past test results and exit")
    parser.add_argument("--clear-history", action="store_true", help="Delete saved results and exit")

    # Configuration
    parser.add_argument("--config-path", action="store_true", help="Print the config file location and exit")
    parser.add_argument("--get", type=str, metavar="KEY", help="Print one config value and exit")
    parser.add_argument("--set", type=str, metavar="KEY=VALUE", action="append", help="Save a config value and exit (repeatable)")

    parser.add_argument("--verbose", "-v", action="count", default=0, help="More log output (-vv for debug)")
    parser.add_argument("--log-file", type=str, metavar="FILE", help="Also write logs to FILE (rotated at 1 MB)")

    args = parser.parse_args()

    level = {0: config["log_level"], 1: "INFO"}.get(args.verbose, "DEBUG")
    configure_logging(level, log_file=args.log_file)

    if args.config_path:
        print(config_path())
        return

    if args.get:
        if args.get not in DEFAULTS:
            console.print(f"[red]Error: unknown config key {args.get!r}[/red]")
            sys.exit(1)
        print(json.dumps(get_config_value(args.get)))
        return

    if args.set:
        try:
            for assignment in args.set:
                path = _set_config(assignment)
        except (ValueError, OSError) as exc:
            console.print(f"[red]Error: {exc}[/red]")
            sys.exit(1)
        console.print(f"[green]Config saved to:[/green] {path}")
        return

    if args.decode:
        sys.exit(_show_shared(args.decode, args.json))

    store = build_store(config)

    if args.history:
        print_history(store.history())
        return

    if args.clear_history:
        store.clear()
        console.print("[green]History cleared.[/green]")
        return

    config["ping_count"] = args.ping_count
    config["jitter_count"] = args.jitter_count
    config["request_timeout"] = args.request_timeout

    try:
        _validate(
            ping_count=config["ping_count"],
            jitter_count=config["jitter_count"],
            ping_interval=config["ping_interval"],
            jitter_interval=config["jitter_interval"],
            request_timeout=config["request_timeout"],
        )
        if args.repeat < 1:
            raise ValueError("--repeat must be >= 1")
        if args.timeout < 0:
            raise ValueError("--timeout must be >= 0")
    except ValueError as exc:
        console.print(f"[red]Error: {exc}[/red]")
        sys.exit(1)

    orchestrator = build_orchestrator(config, store)

    try:
        for run_idx in range(args.repeat):
            if args.repeat > 1 and not args.json:
                console.print(f"\n[bold cyan]--- Run {run_idx + 1}/{args.repeat} ---[/bold cyan]")

            asyncio.run(
                run_speedcheck(
                    orchestrator,
                    config,
                    json_output=args.json,
                    output_file=args.output,
                    csv_file=args.csv,
                    simple=args.simple,
                    share=args.share,
                    timeout=args.timeout,
                )
            )

            if run_idx < args.repeat - 1:
                if not args.json:
                    console.print(f"[dim]Next run in {args.interval:.0f}s...[/dim]")
                time.sleep(args.interval)

    except KeyboardInterrupt:
        console.print("\n[yellow]Test cancelled by user[/yellow]")
        sys.exit(1)
    except Exception as exc:
        logger.debug("Unhandled error", exc_info=True)
        console.print(f"\n[red]Error: {exc}[/red]")
        sys.exit(1)


if __name__ == "__main__":
    main()
