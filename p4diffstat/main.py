"""p4diffstat command line entrypoint."""

from __future__ import annotations

import argparse
import json
import logging
import os
from dataclasses import replace
from pathlib import Path
from typing import Optional

from p4diffstat.adapters.p4_client import P4Client
from p4diffstat.config.settings import (
    Settings,
    SettingsLoadError,
    apply_environment,
    default_settings,
    load_settings,
    parse_algorithm,
)
from p4diffstat.core.diff_service import DiffOptions, DiffService
from p4diffstat.core.errors import DiffEngineError
from p4diffstat.core.progress import ChangeReport, ProgressReportService
from p4diffstat.models.diff_result import DiffResult
from p4diffstat.report.report_builder import ReportBuilder

LOGGER = logging.getLogger("p4diffstat")

DEFAULT_CONFIG_PATH = Path("config/p4diffstat.yaml")


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="p4diffstat",
        description="Line change statistics between Perforce head revisions and workspace files",
    )
    parser.add_argument("--config", help="Settings file (default: config/p4diffstat.yaml)")
    parser.add_argument("--user", help="Perforce user (-u)")
    parser.add_argument("--workspace", help="Perforce workspace/client (-c)")
    parser.add_argument("--ignore-whitespace", action="store_true", help="Ignore leading/trailing blanks")
    parser.add_argument("--debug", action="store_true", help="Trace p4 commands and responses")

    sub = parser.add_subparsers(dest="command", required=True)

    diff_cmd = sub.add_parser("diff", help="Diff depot files against the workspace")
    diff_cmd.add_argument("depot_files", nargs="+", metavar="DEPOT_FILE")
    diff_cmd.add_argument("--algorithm", help="summary or multiset")
    diff_cmd.add_argument("--json", action="store_true", help="Emit JSON")

    change_cmd = sub.add_parser("change", help="Diff every file of a pending change list")
    change_cmd.add_argument("change", type=int)
    change_cmd.add_argument("--algorithm", help="summary or multiset")
    change_cmd.add_argument("--json", action="store_true", help="Emit JSON")
    change_cmd.add_argument("--html", action="store_true", help="Write an HTML report")

    sub.add_parser("info", help="Show p4 info for a connection check")
    return parser


def _resolve_settings(args: argparse.Namespace) -> Settings:
    config_raw = args.config or os.getenv("P4DIFFSTAT_CONFIG", "").strip()
    if config_raw:
        settings = load_settings(Path(config_raw))
    elif DEFAULT_CONFIG_PATH.exists():
        settings = load_settings(DEFAULT_CONFIG_PATH)
    else:
        settings = default_settings()
    settings = apply_environment(settings)

    p4 = settings.p4
    if args.user:
        p4 = replace(p4, user=args.user.strip())
    if args.workspace:
        p4 = replace(p4, workspace=args.workspace.strip())

    diff = settings.diff
    if getattr(args, "algorithm", None):
        diff = replace(diff, algorithm=parse_algorithm(args.algorithm))
    if args.ignore_whitespace:
        diff = replace(diff, ignore_whitespace=True)

    return replace(settings, p4=p4, diff=diff, debug=settings.debug or args.debug)


def _format_result(result: DiffResult) -> str:
    text = (
        f"{result.head_revision_label} - {result.workspace_label}\n"
        f"  head lines={result.head_line_count} workspace lines={result.workspace_line_count}\n"
        f"  added={result.added_lines} removed={result.removed_lines} changed={result.changed_lines}"
    )
    if result.is_utf16_crlf:
        text += "\n  utf16 cr/lf: counts corrected"
    return text


def _format_change(report: ChangeReport) -> str:
    lines = [
        f"change {report.change} by {report.user}@{report.workspace} ({report.algorithm.value})",
    ]
    for row in report.files:
        if row.result is None:
            lines.append(f"  {row.depot_file}#{row.revision}: ERROR {row.error}")
            continue
        res = row.result
        lines.append(
            f"  {row.depot_file}#{row.revision}: head={res.head_line_count} "
            f"added={res.added_lines} ({row.added_percent:.2f}%) "
            f"removed={res.removed_lines} ({row.removed_percent:.2f}%) changed={res.changed_lines}"
        )
    totals = report.totals()
    lines.append(
        f"total: head={totals.head_line_count} added={totals.added_lines} "
        f"removed={totals.removed_lines} changed={totals.changed_lines} failed={len(report.failed)}"
    )
    return "\n".join(lines)


def _run_diff(service: DiffService, settings: Settings, depot_files: list[str], as_json: bool) -> int:
    """Diff each file, keeping going past failures.

    Exit code is 0 when every file succeeded, 1 when some failed and 2 when all failed.
    """
    rows: list[tuple[str, Optional[DiffResult], Optional[str]]] = []
    for depot_file in depot_files:
        try:
            rows.append((depot_file, service.diff(settings.diff.algorithm, depot_file), None))
        except DiffEngineError as exc:
            LOGGER.error("diff failed for %s: %s", depot_file, exc)
            rows.append((depot_file, None, str(exc)))

    if as_json:
        payload = [
            {"depot_file": depot_file, "result": result.model_dump() if result is not None else None, "error": error}
            for depot_file, result, error in rows
        ]
        print(json.dumps(payload, indent=2))
    else:
        print(
            "\n".join(
                _format_result(result) if result is not None else f"{depot_file}: ERROR {error}"
                for depot_file, result, error in rows
            )
        )

    failed = sum(1 for _, result, _ in rows if result is None)
    if failed == 0:
        return 0
    return 2 if failed == len(rows) else 1


def run(argv: Optional[list[str]] = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)

    try:
        settings = _resolve_settings(args)
    except SettingsLoadError as exc:
        logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
        LOGGER.error("startup blocked by invalid settings: %s", exc)
        print(f"Startup failed: settings are invalid.\n- detail: {exc}")
        return 2

    logging.basicConfig(
        level=logging.DEBUG if settings.debug else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    client = P4Client(settings.p4)
    service = DiffService(client, DiffOptions(ignore_whitespace=settings.diff.ignore_whitespace))

    try:
        if args.command == "info":
            print(client.info().rstrip())
            return 0

        if args.command == "diff":
            return _run_diff(service, settings, args.depot_files, args.json)

        report = ProgressReportService(client, service).diff_change(args.change, settings.diff.algorithm)
        if args.json:
            print(report.model_dump_json(indent=2))
        else:
            print(_format_change(report))
        if args.html:
            artifact = ReportBuilder(Path(settings.report.out_dir)).build(report)
            print(f"report: {artifact.path}")
        return 1 if report.failed else 0
    except DiffEngineError as exc:
        LOGGER.error("%s failed: %s", args.command, exc)
        print(f"Error: {exc}")
        return 2


def main() -> int:
    return run()


if __name__ == "__main__":
    raise SystemExit(main())
