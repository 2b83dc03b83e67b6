"""Perforce CLI adapter.

Thin request/response wrappers around the `p4` commands the diff engine
depends on. Every call is blocking. No timeout is enforced unless one is
configured.
"""

from __future__ import annotations

import logging
import os
import posixpath
import re
import subprocess
import tempfile
from dataclasses import dataclass, field
from pathlib import Path

from p4diffstat.config.settings import P4Config
from p4diffstat.core.errors import (
    ConfigurationError,
    DiffIOError,
    ExternalToolError,
    ParseFormatError,
    ResolutionError,
)

LOGGER = logging.getLogger(__name__)

_WHERE_PATH_PREFIX = "... path "
_UNMAPPED_MARKERS = ("not in client view", "no such file", "not under client's root")
_CHANGE_HEADER = re.compile(r"^Change (\d+) by ([^@\s]+)@(\S+) on ", re.MULTILINE)
_AFFECTED_FILE = re.compile(r"^\.\.\. (//[^#]+)#(\d+) (\w+)")
_DIFFABLE_ACTIONS = {"edit", "add"}
_PRINT_FAILURE_MARKERS = ("no such file", "no file(s) at that revision", "not in client view")


@dataclass(frozen=True)
class FetchedRevision:
    path: Path
    label: str


@dataclass(frozen=True)
class PendingChange:
    change: int
    user: str
    workspace: str
    files: dict[str, int] = field(default_factory=dict)


class P4Client:
    def __init__(self, config: P4Config) -> None:
        self._config = config

    @property
    def workspace(self) -> str:
        return self._config.workspace

    def resolve_workspace_path(self, depot_file: str) -> str:
        """Map a depot file to its local path through `p4 where`."""
        proc = self._run(["where", depot_file], check=False, tagged=True)
        output = self._combined(proc)
        if proc.returncode != 0:
            if any(marker in output.lower() for marker in _UNMAPPED_MARKERS):
                raise ResolutionError(f"depot file is not mapped in workspace: {depot_file}")
            raise ExternalToolError(f"p4 where failed for {depot_file}: {self._tail(output)}")

        for line in output.splitlines():
            if line.startswith(_WHERE_PATH_PREFIX):
                local_path = line[len(_WHERE_PATH_PREFIX):].strip()
                if local_path:
                    LOGGER.debug("where %s -> %s", depot_file, local_path)
                    return local_path
        raise ResolutionError(f"no workspace path for depot file: {depot_file}")

    def get_head_revision(self, depot_file: str) -> int:
        # e.g. //Project/dev/localization/afile_bulgarian.txt#8 - edit change 4924099 (utf16)
        output = self._combined(self._run(["files", depot_file]))
        idx_beg = output.rfind("#")
        idx_end = output.rfind(" - ")
        if idx_beg == -1 or idx_end == -1 or idx_beg + 1 >= idx_end:
            raise ParseFormatError(f"unexpected p4 files response for {depot_file}: {self._tail(output)}")
        raw_rev = output[idx_beg + 1:idx_end].strip()
        if not raw_rev.isdecimal():
            raise ParseFormatError(f"head revision is not a number for {depot_file}: {raw_rev!r}")
        return int(raw_rev)

    def fetch_revision(self, depot_file: str, revision: int = 0) -> FetchedRevision:
        """Print a revision (0 means head) into a scratch file the caller must remove."""
        if revision <= 0:
            revision = self.get_head_revision(depot_file)
        label = self.revision_label(depot_file, revision)

        try:
            fd, raw_path = tempfile.mkstemp(prefix="p4diffstat_print_")
        except OSError as exc:
            raise DiffIOError(f"unable to create scratch file for {depot_file}") from exc
        os.close(fd)
        scratch = Path(raw_path)

        try:
            output = self._combined(
                self._run(["print", "-k", "-q", "-o", str(scratch), f"{depot_file}#{revision}"])
            )
            # p4 print does not always exit non-zero when nothing was written.
            if any(marker in output.lower() for marker in _PRINT_FAILURE_MARKERS):
                raise ExternalToolError(f"p4 print produced no file for {label}: {self._tail(output)}")
        except Exception:
            _remove_quietly(scratch)
            raise

        LOGGER.debug("fetched %s into %s", label, scratch)
        return FetchedRevision(path=scratch, label=label)

    def run_diff_summary(self, depot_file: str, ignore_whitespace: bool) -> str:
        if not self._config.workspace:
            raise ConfigurationError("p4 diff requires a workspace (client) name")
        option = "-dls"
        if ignore_whitespace:
            option += "b"
        return self._combined(self._run(["diff", option, depot_file]))

    def describe_pending_change(self, change: int) -> PendingChange:
        output = self._combined(self._run(["describe", "-s", str(change)]))

        header = _CHANGE_HEADER.search(output)
        if header is None:
            raise ParseFormatError(f"missing change header in p4 describe {change}: {self._tail(output)}")
        number, user, workspace = int(header.group(1)), header.group(2), header.group(3)
        if number != change:
            raise ParseFormatError(f"p4 describe returned change {number}, expected {change}")

        marker = output.find("Affected files ...")
        if marker == -1:
            raise ParseFormatError(f"missing affected files in p4 describe {change}")

        files: dict[str, int] = {}
        for line in output[marker:].splitlines()[1:]:
            match = _AFFECTED_FILE.match(line.strip())
            if match is None:
                continue
            depot_file, rev, action = match.group(1), int(match.group(2)), match.group(3)
            if action not in _DIFFABLE_ACTIONS:
                LOGGER.debug("skipping %s#%d (%s)", depot_file, rev, action)
                continue
            files[depot_file] = rev

        return PendingChange(change=number, user=user, workspace=workspace, files=files)

    def info(self) -> str:
        return self._combined(self._run(["info"]))

    @staticmethod
    def revision_label(depot_file: str, revision: int) -> str:
        name = posixpath.basename(depot_file)
        stem, ext = posixpath.splitext(name)
        return f"{stem}#{revision}{ext}"

    def _build_command(self, args: list[str], tagged: bool = False) -> list[str]:
        cmd = [self._config.command]
        if tagged:
            cmd.append("-ztag")
        if self._config.port:
            cmd.extend(["-p", self._config.port])
        if self._config.user:
            cmd.extend(["-u", self._config.user])
        if self._config.workspace:
            cmd.extend(["-c", self._config.workspace])
        cmd.extend(args)
        return cmd

    def _run(self, args: list[str], check: bool = True, tagged: bool = False) -> subprocess.CompletedProcess:
        cmd = self._build_command(args, tagged=tagged)
        LOGGER.debug("p4 command: %s", " ".join(cmd))
        try:
            proc = subprocess.run(
                cmd,
                capture_output=True,
                text=True,
                errors="replace",
                timeout=self._config.timeout_seconds,
                check=False,
            )
        except FileNotFoundError as exc:
            raise ExternalToolError(f"p4 CLI not found: {self._config.command}") from exc
        except subprocess.TimeoutExpired as exc:
            raise ExternalToolError(f"p4 {args[0]} timed out after {self._config.timeout_seconds}s") from exc

        LOGGER.debug("p4 response (rc=%s): %s", proc.returncode, self._combined(proc))
        if check and proc.returncode != 0:
            raise ExternalToolError(f"p4 {' '.join(args)} failed: {self._tail(self._combined(proc))}")
        return proc

    @staticmethod
    def _combined(proc: subprocess.CompletedProcess) -> str:
        return f"{proc.stdout or ''}{proc.stderr or ''}"

    @staticmethod
    def _tail(text: str, limit: int = 500) -> str:
        clean = (text or "").strip()
        if len(clean) <= limit:
            return clean
        return clean[-limit:]


def _remove_quietly(path: Path) -> None:
    try:
        path.unlink(missing_ok=True)
    except OSError as exc:
        LOGGER.warning("unable to remove scratch file %s: %s", path, exc)
