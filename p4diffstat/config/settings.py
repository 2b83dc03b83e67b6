"""Settings loader for p4diffstat."""

from __future__ import annotations

import os
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any, Optional

import yaml

from p4diffstat.models.diff_result import DiffAlgorithm


@dataclass(frozen=True)
class P4Config:
    command: str
    port: str
    user: str
    workspace: str
    timeout_seconds: Optional[int]


@dataclass(frozen=True)
class DiffConfig:
    algorithm: DiffAlgorithm
    ignore_whitespace: bool


@dataclass(frozen=True)
class ReportConfig:
    out_dir: str


@dataclass(frozen=True)
class Settings:
    version: str
    p4: P4Config
    diff: DiffConfig
    report: ReportConfig
    debug: bool


class SettingsLoadError(RuntimeError):
    """Raised when settings cannot be loaded."""


def _section(raw: dict[str, Any], key: str) -> dict[str, Any]:
    value = raw.get(key, {})
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise SettingsLoadError(f"{key} must be an object")
    return value


def _text(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()


def parse_algorithm(value: str) -> DiffAlgorithm:
    try:
        return DiffAlgorithm(value.strip().lower())
    except ValueError as exc:
        raise SettingsLoadError(f"invalid diff.algorithm: {value}") from exc


def default_settings() -> Settings:
    return Settings(
        version="1",
        p4=P4Config(command="p4", port="", user="", workspace="", timeout_seconds=None),
        diff=DiffConfig(algorithm=DiffAlgorithm.SUMMARY, ignore_whitespace=False),
        report=ReportConfig(out_dir="reports"),
        debug=False,
    )


def load_settings(path: Path) -> Settings:
    if not path.exists():
        raise SettingsLoadError(f"settings file not found: {path}")

    try:
        raw = yaml.safe_load(path.read_text(encoding="utf-8"))
    except yaml.YAMLError as exc:
        raise SettingsLoadError(f"settings file is not valid YAML: {path}") from exc
    if raw is None:
        raw = {}
    if not isinstance(raw, dict):
        raise SettingsLoadError("settings root must be an object")

    p4_raw = _section(raw, "p4")
    diff_raw = _section(raw, "diff")
    report_raw = _section(raw, "report")

    command = _text(p4_raw.get("command", "p4"))
    if not command:
        raise SettingsLoadError("p4.command must not be empty")
    # Only the p4 executable may be configured here.
    if "p4" not in Path(command).name.lower():
        raise SettingsLoadError("p4.command must point to p4 CLI")

    timeout_raw = p4_raw.get("timeout_seconds")
    timeout_seconds: Optional[int] = None
    if timeout_raw is not None:
        try:
            timeout_seconds = int(timeout_raw)
        except (TypeError, ValueError) as exc:
            raise SettingsLoadError("p4.timeout_seconds must be an integer") from exc
        if timeout_seconds <= 0:
            raise SettingsLoadError("p4.timeout_seconds must be > 0")

    ignore_whitespace = diff_raw.get("ignore_whitespace", False)
    if not isinstance(ignore_whitespace, bool):
        raise SettingsLoadError("diff.ignore_whitespace must be a boolean")

    debug = raw.get("debug", False)
    if not isinstance(debug, bool):
        raise SettingsLoadError("debug must be a boolean")

    out_dir = _text(report_raw.get("out_dir", "reports"))
    if not out_dir:
        raise SettingsLoadError("report.out_dir must not be empty")

    return Settings(
        version=_text(raw.get("version", "1")) or "1",
        p4=P4Config(
            command=command,
            port=_text(p4_raw.get("port")),
            user=_text(p4_raw.get("user")),
            workspace=_text(p4_raw.get("workspace")),
            timeout_seconds=timeout_seconds,
        ),
        diff=DiffConfig(
            algorithm=parse_algorithm(_text(diff_raw.get("algorithm", "summary"))),
            ignore_whitespace=ignore_whitespace,
        ),
        report=ReportConfig(out_dir=out_dir),
        debug=debug,
    )


def apply_environment(settings: Settings, environ: Optional[dict[str, str]] = None) -> Settings:
    """Fill empty p4 connection values from P4USER, P4CLIENT and P4PORT."""
    env = os.environ if environ is None else environ
    p4 = settings.p4
    return replace(
        settings,
        p4=replace(
            p4,
            user=p4.user or env.get("P4USER", "").strip(),
            workspace=p4.workspace or env.get("P4CLIENT", "").strip(),
            port=p4.port or env.get("P4PORT", "").strip(),
        ),
    )
