"""Line statistics from `p4 diff -dls` summary output.

Expected report::

    ==== //depot/path/file.txt#3 - /local/path/file.txt ====
    add 3 chunks 8 lines
    deleted 2 chunks 7 lines
    changed 1 chunks 3 / 3 lines

The two counts on the ``changed`` line (head side / workspace side) are
summed into one figure. When p4 reports a single count it is used as is.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from pathlib import Path

from p4diffstat.adapters.p4_client import P4Client
from p4diffstat.core.errors import ConfigurationError, ParseFormatError
from p4diffstat.core.line_counter import count_file_lines
from p4diffstat.models.diff_result import DiffResult

LOGGER = logging.getLogger(__name__)

_HEADER = re.compile(r"^==== (.+?) - (.+?) ====")
UTF16_CRLF_FACTOR = 2


@dataclass(frozen=True)
class SummaryCounts:
    head_label: str
    workspace_label: str
    added_lines: int
    removed_lines: int
    changed_lines: int


def _count(tokens: list[str], index: int, line: str) -> int:
    if index >= len(tokens):
        raise ParseFormatError(f"missing count in diff summary line: {line!r}")
    raw = tokens[index]
    if not raw.isdecimal():
        raise ParseFormatError(f"non-numeric count {raw!r} in diff summary line: {line!r}")
    try:
        return int(raw)
    except ValueError as exc:
        raise ParseFormatError(f"non-numeric count {raw!r} in diff summary line: {line!r}") from exc


def _stat_tokens(line: str, keyword: str) -> list[str]:
    tokens = line.split()
    if not tokens or tokens[0] != keyword:
        raise ParseFormatError(f"expected '{keyword}' line in diff summary, got: {line!r}")
    # <keyword> <chunks> chunks <lines> ...
    _count(tokens, 1, line)
    return tokens


def parse_diff_summary(text: str) -> SummaryCounts:
    lines = [line.rstrip("\r") for line in text.splitlines()]

    header_idx = -1
    header = None
    for idx, line in enumerate(lines):
        header = _HEADER.match(line.strip())
        if header is not None:
            header_idx = idx
            break
    if header is None:
        raise ParseFormatError("diff summary header '==== <depot> - <local> ====' not found")

    stats = [line for line in lines[header_idx + 1:] if line.strip()][:3]
    if len(stats) < 3:
        raise ParseFormatError(f"diff summary has {len(stats)} statistics lines, expected 3")

    add_tokens = _stat_tokens(stats[0], "add")
    deleted_tokens = _stat_tokens(stats[1], "deleted")
    changed_tokens = _stat_tokens(stats[2], "changed")

    added = _count(add_tokens, 3, stats[0])
    removed = _count(deleted_tokens, 3, stats[1])
    changed = _count(changed_tokens, 3, stats[2])
    if len(changed_tokens) > 5 and changed_tokens[4] == "/":
        changed += _count(changed_tokens, 5, stats[2])

    return SummaryCounts(
        head_label=header.group(1).strip(),
        workspace_label=header.group(2).strip(),
        added_lines=added,
        removed_lines=removed,
        changed_lines=changed,
    )


class SummaryDiff:
    def __init__(self, client: P4Client, ignore_whitespace: bool = False) -> None:
        self._client = client
        self._ignore_whitespace = ignore_whitespace

    def run(self, depot_file: str, workspace_path: str) -> DiffResult:
        if not self._client.workspace:
            raise ConfigurationError("summary diff requires a configured workspace")

        local = count_file_lines(Path(workspace_path))
        raw = self._client.run_diff_summary(depot_file, ignore_whitespace=self._ignore_whitespace)
        counts = parse_diff_summary(raw)
        LOGGER.debug(
            "summary %s: add=%d deleted=%d changed=%d ws_lines=%d utf16_crlf=%s",
            depot_file,
            counts.added_lines,
            counts.removed_lines,
            counts.changed_lines,
            local.line_count,
            local.is_utf16_crlf,
        )
        return build_summary_result(counts, local.line_count, local.is_utf16_crlf)


def build_summary_result(counts: SummaryCounts, workspace_line_count: int, is_utf16_crlf: bool) -> DiffResult:
    """Apply the UTF-16 CR/LF correction and derive the head line count."""
    factor = UTF16_CRLF_FACTOR if is_utf16_crlf else 1
    added = counts.added_lines * factor
    removed = counts.removed_lines * factor
    changed = counts.changed_lines * factor

    head_line_count = workspace_line_count - added + removed
    if head_line_count < 0:
        # Unterminated last lines are not counted on the workspace side.
        LOGGER.debug("derived head line count %d clamped to 0", head_line_count)
        head_line_count = 0

    return DiffResult(
        head_revision_label=counts.head_label,
        workspace_label=counts.workspace_label,
        head_line_count=head_line_count,
        workspace_line_count=workspace_line_count,
        added_lines=added,
        removed_lines=removed,
        changed_lines=changed,
        is_utf16_crlf=is_utf16_crlf,
    )
