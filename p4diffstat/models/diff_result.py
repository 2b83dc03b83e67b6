"""Result contract for head revision vs workspace diffs."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class DiffAlgorithm(str, Enum):
    SUMMARY = "summary"
    MULTISET = "multiset"


class DiffResult(BaseModel):
    """Line statistics between the head revision and the workspace copy.

    ``changed_lines`` is only filled by the summary algorithm. When
    ``is_utf16_crlf`` is set the counts have already been corrected.
    """

    model_config = ConfigDict(extra="forbid")

    head_revision_label: str = ""
    workspace_label: str = ""
    head_line_count: int = Field(default=0, ge=0)
    workspace_line_count: int = Field(default=0, ge=0)
    added_lines: int = Field(default=0, ge=0)
    removed_lines: int = Field(default=0, ge=0)
    changed_lines: int = Field(default=0, ge=0)
    is_utf16_crlf: bool = False
