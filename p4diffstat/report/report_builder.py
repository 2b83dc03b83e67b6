"""HTML report generator for change list progress."""

from __future__ import annotations

import html
from dataclasses import dataclass
from pathlib import Path

from p4diffstat.core.progress import ChangeReport, FileProgress


@dataclass(frozen=True)
class ReportArtifact:
    path: Path


def _row(row: FileProgress) -> str:
    if row.result is None:
        return (
            "<tr class=\"failed\">"
            f"<td>{html.escape(row.depot_file)}</td>"
            f"<td>{row.revision}</td>"
            f"<td colspan=\"7\">{html.escape(row.error or 'unknown error')}</td>"
            "</tr>"
        )
    res = row.result
    return (
        "<tr>"
        f"<td>{html.escape(row.depot_file)}</td>"
        f"<td>{row.revision}</td>"
        f"<td>{res.head_line_count}</td>"
        f"<td>{res.workspace_line_count}</td>"
        f"<td>{res.added_lines} ({row.added_percent:.2f}%)</td>"
        f"<td>{res.removed_lines} ({row.removed_percent:.2f}%)</td>"
        f"<td>{res.changed_lines}</td>"
        f"<td>{'yes' if res.is_utf16_crlf else 'no'}</td>"
        f"<td>{html.escape(res.workspace_label)}</td>"
        "</tr>"
    )


class ReportBuilder:
    def __init__(self, out_dir: Path) -> None:
        self._out_dir = out_dir
        self._out_dir.mkdir(parents=True, exist_ok=True)

    def build(self, report: ChangeReport) -> ReportArtifact:
        out_path = self._out_dir / f"change_{report.change}.html"
        totals = report.totals()
        rows = "\n".join(_row(row) for row in report.files)

        html_doc = f"""<!doctype html>
<html lang=\"en\">
<head>
  <meta charset=\"utf-8\" />
  <title>Change {report.change} progress</title>
  <style>
    body {{ font-family: -apple-system, BlinkMacSystemFont, Segoe UI, sans-serif; margin: 24px; color: #111; }}
    h1, h2 {{ margin-bottom: 8px; }}
    table {{ border-collapse: collapse; width: 100%; margin-top: 8px; }}
    th, td {{ border: 1px solid #ddd; padding: 8px; text-align: left; vertical-align: top; }}
    th {{ background: #f6f6f6; }}
    tr.failed td {{ color: #a00; }}
  </style>
</head>
<body>
  <h1>Change {report.change} Progress Report</h1>
  <h2>Summary</h2>
  <p><strong>User:</strong> {html.escape(report.user)}</p>
  <p><strong>Workspace:</strong> {html.escape(report.workspace)}</p>
  <p><strong>Algorithm:</strong> {html.escape(report.algorithm.value)}</p>
  <p><strong>Files:</strong> {len(report.files)} ({len(report.failed)} failed)</p>
  <p><strong>Head lines:</strong> {totals.head_line_count}</p>
  <p><strong>Added / removed / changed:</strong> {totals.added_lines} / {totals.removed_lines} / {totals.changed_lines}</p>

  <h2>Files</h2>
  <table>
    <thead>
      <tr><th>depot file</th><th>rev</th><th>head lines</th><th>workspace lines</th><th>added</th><th>removed</th><th>changed</th><th>utf16 cr/lf</th><th>workspace path</th></tr>
    </thead>
    <tbody>
      {rows}
    </tbody>
  </table>
</body>
</html>
"""
        out_path.write_text(html_doc, encoding="utf-8")
        return ReportArtifact(path=out_path)
