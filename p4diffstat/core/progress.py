"""Per change list progress figures built on top of the diff service."""

from __future__ import annotations

import logging
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from p4diffstat.adapters.p4_client import P4Client
from p4diffstat.core.diff_service import DiffService
from p4diffstat.core.errors import DiffEngineError
from p4diffstat.models.diff_result import DiffAlgorithm, DiffResult

LOGGER = logging.getLogger(__name__)


def _percent(part: int, whole: int) -> float:
    if whole <= 0:
        return 0.0
    return round(part * 100.0 / whole, 2)


class FileProgress(BaseModel):
    model_config = ConfigDict(extra="forbid")

    depot_file: str
    revision: int = Field(ge=0)
    result: Optional[DiffResult] = None
    error: Optional[str] = None

    @property
    def added_percent(self) -> float:
        if self.result is None:
            return 0.0
        return _percent(self.result.added_lines, self.result.head_line_count)

    @property
    def removed_percent(self) -> float:
        if self.result is None:
            return 0.0
        return _percent(self.result.removed_lines, self.result.head_line_count)


class ChangeReport(BaseModel):
    model_config = ConfigDict(extra="forbid")

    change: int = Field(ge=1)
    user: str
    workspace: str
    algorithm: DiffAlgorithm
    files: list[FileProgress] = Field(default_factory=list)

    @property
    def failed(self) -> list[FileProgress]:
        return [row for row in self.files if row.error is not None]

    def totals(self) -> DiffResult:
        ok = [row.result for row in self.files if row.result is not None]
        return DiffResult(
            head_revision_label=f"change {self.change}",
            workspace_label=self.workspace,
            head_line_count=sum(r.head_line_count for r in ok),
            workspace_line_count=sum(r.workspace_line_count for r in ok),
            added_lines=sum(r.added_lines for r in ok),
            removed_lines=sum(r.removed_lines for r in ok),
            changed_lines=sum(r.changed_lines for r in ok),
            is_utf16_crlf=any(r.is_utf16_crlf for r in ok),
        )


class ProgressReportService:
    def __init__(self, client: P4Client, diff_service: DiffService) -> None:
        self._client = client
        self._diff = diff_service

    def diff_change(self, change: int, algorithm: DiffAlgorithm) -> ChangeReport:
        pending = self._client.describe_pending_change(change)
        if self._client.workspace and pending.workspace != self._client.workspace:
            LOGGER.warning(
                "change %d belongs to workspace %s, configured workspace is %s",
                change,
                pending.workspace,
                self._client.workspace,
            )

        rows: list[FileProgress] = []
        for depot_file, revision in sorted(pending.files.items()):
            try:
                result = self._diff.diff(algorithm, depot_file)
            except DiffEngineError as exc:
                LOGGER.error("diff failed for %s: %s", depot_file, exc)
                rows.append(FileProgress(depot_file=depot_file, revision=revision, error=str(exc)))
                continue
            rows.append(FileProgress(depot_file=depot_file, revision=revision, result=result))

        return ChangeReport(
            change=pending.change,
            user=pending.user,
            workspace=pending.workspace,
            algorithm=algorithm,
            files=rows,
        )
