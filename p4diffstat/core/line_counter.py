"""Line counting and UTF-16 CR/LF sniffing."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import BinaryIO

from p4diffstat.core.errors import DiffIOError

CHUNK_SIZE = 64 * 1024
_LINE_SEP = b"\n"
_UTF16_LE_CRLF = b"\r\x00\n\x00"
_UTF16_BE_CRLF = b"\x00\r\x00\n"
_OVERLAP = len(_UTF16_LE_CRLF) - 1


@dataclass(frozen=True)
class LineCount:
    line_count: int
    is_utf16_crlf: bool


def count_lines(stream: BinaryIO, chunk_size: int = CHUNK_SIZE) -> LineCount:
    """Count LF bytes and flag UTF-16 CR/LF content.

    A trailing line without a terminator is not counted. Detection is a
    cheap heuristic and assumes encoding and line endings are consistent
    across the whole file.
    """
    count = 0
    utf16_crlf = False
    tail = b""

    while True:
        try:
            chunk = stream.read(chunk_size)
        except OSError as exc:
            raise DiffIOError(f"read failed while counting lines: {exc}") from exc
        if not chunk:
            break

        if not utf16_crlf:
            # Keep a few bytes from the previous chunk so separators split
            # across a chunk boundary are still seen.
            window = tail + chunk
            if _UTF16_LE_CRLF in window or _UTF16_BE_CRLF in window:
                utf16_crlf = True
            tail = window[-_OVERLAP:]

        count += chunk.count(_LINE_SEP)

    return LineCount(line_count=count, is_utf16_crlf=utf16_crlf)


def count_file_lines(path: Path) -> LineCount:
    try:
        with path.open("rb") as fh:
            return count_lines(fh)
    except DiffIOError as exc:
        raise DiffIOError(f"unable to read {path}: {exc}") from exc
    except OSError as exc:
        raise DiffIOError(f"unable to open {path}: {exc}") from exc
