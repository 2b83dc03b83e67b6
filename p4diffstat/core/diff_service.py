"""Head revision vs workspace diff service."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Protocol, Union

from p4diffstat.adapters.p4_client import P4Client
from p4diffstat.core.errors import ConfigurationError, DiffEngineError
from p4diffstat.core.multiset_diff import MultisetDiff
from p4diffstat.core.summary_diff import SummaryDiff
from p4diffstat.models.diff_result import DiffAlgorithm, DiffResult

LOGGER = logging.getLogger(__name__)


class DiffRunner(Protocol):
    def run(self, depot_file: str, workspace_path: str) -> DiffResult:
        ...


@dataclass(frozen=True)
class DiffOptions:
    ignore_whitespace: bool = False


class DiffService:
    def __init__(self, client: P4Client, options: DiffOptions) -> None:
        self._client = client
        self._runners: dict[DiffAlgorithm, DiffRunner] = {
            DiffAlgorithm.SUMMARY: SummaryDiff(client, ignore_whitespace=options.ignore_whitespace),
            DiffAlgorithm.MULTISET: MultisetDiff(client, ignore_whitespace=options.ignore_whitespace),
        }

    def diff(self, algorithm: Union[DiffAlgorithm, str], depot_file: str) -> DiffResult:
        """Compare the head revision of ``depot_file`` with its workspace copy."""
        selected = self._select(algorithm)
        LOGGER.info("diff %s algorithm=%s", depot_file, selected.value)

        try:
            workspace_path = self._client.resolve_workspace_path(depot_file)
            result = self._runners[selected].run(depot_file, workspace_path)
        except DiffEngineError as exc:
            raise type(exc)(f"diff({selected.value}) {depot_file}: {exc}") from exc

        return result.model_copy(
            update={"head_revision_label": depot_file, "workspace_label": workspace_path}
        )

    @staticmethod
    def _select(algorithm: Union[DiffAlgorithm, str]) -> DiffAlgorithm:
        if isinstance(algorithm, DiffAlgorithm):
            return algorithm
        try:
            return DiffAlgorithm(str(algorithm).strip().lower())
        except ValueError as exc:
            raise ConfigurationError(f"invalid diff algorithm: {algorithm!r}") from exc
