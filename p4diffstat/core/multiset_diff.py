"""Order-insensitive diff based on line frequency tables.

Only meaningful where line order does not matter (localization tables,
json/vdf key files). Reordered lines are not reported as changes, and a
modified line shows up as one removal plus one addition.
"""

from __future__ import annotations

import logging
from collections import Counter
from pathlib import Path
from typing import BinaryIO, Iterator

from p4diffstat.adapters.p4_client import P4Client
from p4diffstat.core.errors import DiffIOError
from p4diffstat.models.diff_result import DiffResult

LOGGER = logging.getLogger(__name__)

_TRIM = b" \t\r\n"


def _iter_lines(stream: BinaryIO, ignore_whitespace: bool) -> Iterator[bytes]:
    for raw in stream:
        line = raw[:-1] if raw.endswith(b"\n") else raw
        if line.endswith(b"\r"):
            line = line[:-1]
        if ignore_whitespace:
            line = line.strip(_TRIM)
        yield line


def reconcile(head: BinaryIO, workspace: BinaryIO, ignore_whitespace: bool = False) -> DiffResult:
    """Compare two line streams as multisets.

    Empty lines are counted but never matched.
    """
    table: Counter[bytes] = Counter()
    head_lines = 0
    for line in _iter_lines(head, ignore_whitespace):
        if line:
            table[line] += 1
        head_lines += 1

    workspace_lines = 0
    added = 0
    for line in _iter_lines(workspace, ignore_whitespace):
        if line:
            if table[line] > 0:
                table[line] -= 1
            else:
                added += 1
        workspace_lines += 1

    removed = sum(count for count in table.values() if count > 0)

    return DiffResult(
        head_line_count=head_lines,
        workspace_line_count=workspace_lines,
        added_lines=added,
        removed_lines=removed,
    )


class MultisetDiff:
    def __init__(self, client: P4Client, ignore_whitespace: bool = False) -> None:
        self._client = client
        self._ignore_whitespace = ignore_whitespace

    def run(self, depot_file: str, workspace_path: str) -> DiffResult:
        workspace = Path(workspace_path)
        if not workspace.is_file():
            raise DiffIOError(f"workspace file not found: {workspace}")

        fetched = self._client.fetch_revision(depot_file, 0)
        LOGGER.debug("head revision %s fetched to %s", fetched.label, fetched.path)
        try:
            try:
                with fetched.path.open("rb") as head_fh, workspace.open("rb") as ws_fh:
                    result = reconcile(head_fh, ws_fh, ignore_whitespace=self._ignore_whitespace)
            except OSError as exc:
                raise DiffIOError(f"unable to read {fetched.label} or {workspace}: {exc}") from exc
        finally:
            _discard_scratch(fetched.path)

        LOGGER.debug(
            "multiset %s: head_lines=%d ws_lines=%d added=%d removed=%d",
            depot_file,
            result.head_line_count,
            result.workspace_line_count,
            result.added_lines,
            result.removed_lines,
        )
        return result.model_copy(update={"head_revision_label": fetched.label, "workspace_label": str(workspace)})


def _discard_scratch(path: Path) -> None:
    try:
        path.unlink()
    except FileNotFoundError:
        pass
    except OSError as exc:
        LOGGER.warning("unable to delete scratch file %s: %s", path, exc)
