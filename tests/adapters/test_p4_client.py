import subprocess
from pathlib import Path

import pytest

from p4diffstat.adapters.p4_client import P4Client
from p4diffstat.config.settings import P4Config
from p4diffstat.core.errors import ConfigurationError, ExternalToolError, ParseFormatError, ResolutionError


def _client(workspace: str = "ws_main", user: str = "loc_bot", timeout_seconds=None) -> P4Client:
    return P4Client(
        P4Config(command="p4", port="", user=user, workspace=workspace, timeout_seconds=timeout_seconds)
    )


def _completed(cmd, returncode: int = 0, stdout: str = "", stderr: str = "") -> subprocess.CompletedProcess:
    return subprocess.CompletedProcess(args=cmd, returncode=returncode, stdout=stdout, stderr=stderr)


def test_where_parses_local_path(monkeypatch: pytest.MonkeyPatch) -> None:
    seen: list[list[str]] = []

    def _fake_run(cmd, capture_output, text, errors, timeout, check):  # type: ignore[no-untyped-def]
        seen.append(cmd)
        return _completed(
            cmd,
            stdout=(
                "... depotFile //proj/dev/loc/main_french.json\n"
                "... clientFile //ws_main/dev/loc/main_french.json\n"
                "... path D:\\work\\dev\\loc\\main_french.json\r\n"
            ),
        )

    monkeypatch.setattr("subprocess.run", _fake_run)

    path = _client().resolve_workspace_path("//proj/dev/loc/main_french.json")
    assert path == "D:\\work\\dev\\loc\\main_french.json"
    assert seen[0] == [
        "p4", "-ztag", "-u", "loc_bot", "-c", "ws_main", "where", "//proj/dev/loc/main_french.json",
    ]


def test_where_unmapped_raises_resolution_error(monkeypatch: pytest.MonkeyPatch) -> None:
    def _fake_run(cmd, capture_output, text, errors, timeout, check):  # type: ignore[no-untyped-def]
        return _completed(cmd, returncode=1, stderr="//other/file.txt - file(s) not in client view.\n")

    monkeypatch.setattr("subprocess.run", _fake_run)
    with pytest.raises(ResolutionError):
        _client().resolve_workspace_path("//other/file.txt")


def test_head_revision(monkeypatch: pytest.MonkeyPatch) -> None:
    def _fake_run(cmd, capture_output, text, errors, timeout, check):  # type: ignore[no-untyped-def]
        return _completed(cmd, stdout="//proj/dev/loc/afile_bulgarian.txt#8 - edit change 4924099 (utf16)\n")

    monkeypatch.setattr("subprocess.run", _fake_run)
    assert _client().get_head_revision("//proj/dev/loc/afile_bulgarian.txt") == 8


def test_head_revision_bad_format(monkeypatch: pytest.MonkeyPatch) -> None:
    def _fake_run(cmd, capture_output, text, errors, timeout, check):  # type: ignore[no-untyped-def]
        return _completed(cmd, stdout="//proj/dev/loc/a.txt#x - edit change 1 (text)\n")

    monkeypatch.setattr("subprocess.run", _fake_run)
    with pytest.raises(ParseFormatError):
        _client().get_head_revision("//proj/dev/loc/a.txt")


def test_fetch_head_revision(monkeypatch: pytest.MonkeyPatch) -> None:
    seen: list[list[str]] = []

    def _fake_run(cmd, capture_output, text, errors, timeout, check):  # type: ignore[no-untyped-def]
        seen.append(cmd)
        if "files" in cmd:
            return _completed(cmd, stdout="//proj/loc/strings.txt#12 - edit change 77 (text)\n")
        out_path = Path(cmd[cmd.index("-o") + 1])
        out_path.write_text("hello\n", encoding="utf-8")
        return _completed(cmd)

    monkeypatch.setattr("subprocess.run", _fake_run)

    fetched = _client().fetch_revision("//proj/loc/strings.txt")
    try:
        assert fetched.label == "strings#12.txt"
        assert fetched.path.read_text(encoding="utf-8") == "hello\n"
        assert seen[1][-1] == "//proj/loc/strings.txt#12"
        assert seen[1][-6:-1] == ["print", "-k", "-q", "-o", str(fetched.path)]
    finally:
        fetched.path.unlink()


def test_fetch_failure_removes_scratch(monkeypatch: pytest.MonkeyPatch) -> None:
    scratch: list[Path] = []

    def _fake_run(cmd, capture_output, text, errors, timeout, check):  # type: ignore[no-untyped-def]
        scratch.append(Path(cmd[cmd.index("-o") + 1]))
        return _completed(cmd, returncode=1, stderr="no such file(s).\n")

    monkeypatch.setattr("subprocess.run", _fake_run)
    with pytest.raises(ExternalToolError):
        _client().fetch_revision("//proj/loc/strings.txt", 3)
    assert not scratch[0].exists()


def test_diff_summary_options(monkeypatch: pytest.MonkeyPatch) -> None:
    seen: list[list[str]] = []

    def _fake_run(cmd, capture_output, text, errors, timeout, check):  # type: ignore[no-untyped-def]
        seen.append(cmd)
        return _completed(cmd, stdout="==== ...\n")

    monkeypatch.setattr("subprocess.run", _fake_run)
    client = _client(user="")
    client.run_diff_summary("//proj/a.txt", ignore_whitespace=False)
    client.run_diff_summary("//proj/a.txt", ignore_whitespace=True)
    assert seen[0] == ["p4", "-c", "ws_main", "diff", "-dls", "//proj/a.txt"]
    assert seen[1][-2] == "-dlsb"


def test_diff_summary_requires_workspace() -> None:
    with pytest.raises(ConfigurationError):
        _client(workspace="").run_diff_summary("//proj/a.txt", ignore_whitespace=False)


def test_describe_pending_change(monkeypatch: pytest.MonkeyPatch) -> None:
    def _fake_run(cmd, capture_output, text, errors, timeout, check):  # type: ignore[no-untyped-def]
        return _completed(
            cmd,
            stdout=(
                "Change 6102201 by loc_bot@ws_main on 2020/09/20 21:02:41 *pending*\n"
                "\n"
                "\tTest diff\n"
                "\n"
                "Affected files ...\n"
                "\n"
                "... //proj/dev/loc/main_french.json#1 edit\n"
                "... //proj/dev/loc/yy_french.txt#18 edit\n"
                "... //proj/dev/loc/new_file.txt#1 add\n"
                "... //proj/dev/loc/old_file.txt#4 delete\n"
            ),
        )

    monkeypatch.setattr("subprocess.run", _fake_run)
    pending = _client().describe_pending_change(6102201)
    assert pending.change == 6102201
    assert pending.user == "loc_bot"
    assert pending.workspace == "ws_main"
    assert pending.files == {
        "//proj/dev/loc/main_french.json": 1,
        "//proj/dev/loc/yy_french.txt": 18,
        "//proj/dev/loc/new_file.txt": 1,
    }


def test_describe_change_mismatch(monkeypatch: pytest.MonkeyPatch) -> None:
    def _fake_run(cmd, capture_output, text, errors, timeout, check):  # type: ignore[no-untyped-def]
        return _completed(cmd, stdout="Change 42 by u@w on 2020/09/20 *pending*\n\nAffected files ...\n")

    monkeypatch.setattr("subprocess.run", _fake_run)
    with pytest.raises(ParseFormatError):
        _client().describe_pending_change(43)


def test_missing_cli_raises_external_tool_error(monkeypatch: pytest.MonkeyPatch) -> None:
    def _fake_run(cmd, capture_output, text, errors, timeout, check):  # type: ignore[no-untyped-def]
        raise FileNotFoundError(cmd[0])

    monkeypatch.setattr("subprocess.run", _fake_run)
    with pytest.raises(ExternalToolError):
        _client().info()


def test_timeout_is_forwarded(monkeypatch: pytest.MonkeyPatch) -> None:
    def _fake_run(cmd, capture_output, text, errors, timeout, check):  # type: ignore[no-untyped-def]
        raise subprocess.TimeoutExpired(cmd, timeout)

    monkeypatch.setattr("subprocess.run", _fake_run)
    with pytest.raises(ExternalToolError) as info:
        _client(timeout_seconds=5).info()
    assert "timed out after 5s" in str(info.value)


def test_fetch_deleted_head_revision_raises(monkeypatch: pytest.MonkeyPatch) -> None:
    scratch: list[Path] = []

    def _fake_run(cmd, capture_output, text, errors, timeout, check):  # type: ignore[no-untyped-def]
        if "files" in cmd:
            return _completed(cmd, stdout="//proj/loc/a.txt#5 - delete change 9 (text)\n")
        scratch.append(Path(cmd[cmd.index("-o") + 1]))
        return _completed(cmd, returncode=0, stderr="//proj/loc/a.txt#5 - no file(s) at that revision.\n")

    monkeypatch.setattr("subprocess.run", _fake_run)
    with pytest.raises(ExternalToolError):
        _client().fetch_revision("//proj/loc/a.txt")
    assert not scratch[0].exists()


def test_head_revision_rejects_non_decimal_digits(monkeypatch: pytest.MonkeyPatch) -> None:
    def _fake_run(cmd, capture_output, text, errors, timeout, check):  # type: ignore[no-untyped-def]
        return _completed(cmd, stdout="//proj/loc/a.txt#² - edit change 1 (text)\n")

    monkeypatch.setattr("subprocess.run", _fake_run)
    with pytest.raises(ParseFormatError):
        _client().get_head_revision("//proj/loc/a.txt")
