import io
import json
import os
import stat
import subprocess

import pytest

from pommitlint.cli import (
    CommandError,
    format_text_report,
    main,
    normalize_args,
    run,
    sanitize_edit_message,
    should_ignore,
    write_hook,
    write_json_report,
)
from pommitlint.lint import Finding, Level, Result
from pommitlint.preset import RuleName

HOOK_BODY = '#!/bin/sh\nexec pommitlint lint --edit "$1"\n'
EDIT_CONTENT = (
    "feat: add parser\n\nbody\n# comment\n"
    "# ------------------------ >8 ------------------------\nshould be cut\n"
)
LONG_LINE = (
    "wrap this line because it should fail the body length rule once it is long "
    "enough to exceed one hundred characters"
)


@pytest.fixture(autouse=True)
def isolated_git_env(tmp_path, monkeypatch):
    home = tmp_path / "home"
    home.mkdir()
    monkeypatch.setenv("HOME", str(home))
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "xdg"))
    monkeypatch.setenv("GIT_CONFIG_NOSYSTEM", "1")
    monkeypatch.setenv("GIT_CONFIG_GLOBAL", os.devnull)
    monkeypatch.setenv("GIT_TERMINAL_PROMPT", "0")
    for name in ("GIT_DIR", "GIT_WORK_TREE", "GIT_INDEX_FILE"):
        monkeypatch.delenv(name, raising=False)


def _git(root, *args):
    completed = subprocess.run(
        ["git", *args], cwd=root, capture_output=True, check=True
    )
    return completed.stdout.decode()


@pytest.fixture
def git_repo(tmp_path):
    root = tmp_path / "repo"
    root.mkdir()
    _git(root, "-c", "init.defaultBranch=main", "init")
    _git(root, "config", "user.name", "pommitlint")
    _git(root, "config", "user.email", "pommitlint@example.com")
    return root


def _run(args, stdin="", work_dir=""):
    stdout = io.StringIO()
    stderr = io.StringIO()
    code = run(args, io.StringIO(stdin), stdout, stderr, str(work_dir) if work_dir else "")
    return code, stdout.getvalue(), stderr.getvalue()


DEFAULT_IGNORE_CASES = [
    ("Merge branch 'iss53'", [], True, 0),
    ("Merge branch 'ctrom-YarnBuild'\n\n\n", [], True, 0),
    ("Merge branch 'ctrom-YarnBuild'\r\n # some comment", [], True, 0),
    ("Merge tag '1.1.1'", [], True, 0),
    ("Merge tag 'a tag'", [], True, 0),
    ("Merge tag '1.1.1'\r\n\r\n\r\n", [], True, 0),
    ("Merge tag '1.1.1'\r\n # some comment", [], True, 0),
    ("Merge pull request #369", [], True, 0),
    (
        'Revert "docs: add recipe for linting of all commits in a PR (#36)"\n\n'
        "This reverts commit 1e69d542c16c2a32acfd139e32efa07a45f19111.",
        [], True, 0,
    ),
    (
        'revert "docs: add recipe for linting of all commits in a PR (#36)"\n\n'
        "This reverts commit 1e69d542c16c2a32acfd139e32efa07a45f19111.",
        [], True, 0,
    ),
    ('Reapply "fix: something"', [], True, 0),
    ('reapply "fix: something"', [], True, 0),
    ("v0.0.1", [], True, 0),
    (" v3.0.0", [], True, 0),
    ("0.0.1-some-crazy-tag", [], True, 0),
    ("chore: 0.0.1", [], True, 0),
    ("chore(release): 2.3.3-beta.1 [skip ci]", [], True, 0),
    ("2.3.3-beta.1 [ci skip]", [], True, 0),
    ("2.3.3-beta.1 (ci-skip)", [], True, 0),
    ("0.0.1\n\nSigned-off-by: Developer <example@example.com>", [], True, 0),
    (
        "0.0.1\n\nSigned-off-by: Developer <example@example.com>\n"
        "Change-Id: I895114872a515a269487a683124b63303818e19c",
        [], True, 0,
    ),
    ("fixup! initial commit", [], True, 0),
    ("squash! initial commit", [], True, 0),
    ("amend! initial commit", [], True, 0),
    ("Merged in feature/facebook-friends-sync (pull request #8)", [], True, 0),
    ("Merged develop into feature/component-form-select-card", [], True, 0),
    ("Automatic merge", [], True, 0),
    ("Auto-merged develop into master", [], True, 0),
    ("Merge remote-tracking branch 'origin/main'", [], True, 0),
    ("Merged PR 123: Description here", [], True, 0),
    ("foo bar Merge branch xxx", [], False, 1),
    ("foo bar Merge tag '1.1.1'", [], False, 1),
    ("Auto-merged develop into master", ["--no-default-ignores"], False, 1),
    ("0.0.1-alpha", [], True, 0),
    ("0.0.1-0", [], True, 0),
    ("0.0.1-alpha.0", [], True, 0),
    ("2.3.3-beta.1 [skip-ci]", [], True, 0),
    ("2.3.3-beta.1 (skip ci)", [], True, 0),
    ("2.3.3-beta.1 (ci skip)", [], True, 0),
    ("chore: 2.3.3-beta.1 [ci skip]", [], True, 0),
    ("chore(release): 2.3.3-beta.1 [ci skip]", [], True, 0),
    ("feat: normal commit", [], False, 0),
]


@pytest.mark.parametrize("message, extra, want_ignored, want_exit", DEFAULT_IGNORE_CASES)
def test_default_ignores(message, extra, want_ignored, want_exit):
    code, stdout, _ = _run(["lint", "--message", message, "--format", "json", *extra])
    assert code == want_exit
    assert json.loads(stdout)["ignored"] is want_ignored


@pytest.mark.parametrize(
    "message, expected",
    [("Merge branch 'main' into feature", True), ("v1.2.3", True), ("feat: add parser", False)],
)
def test_should_ignore(message, expected):
    assert should_ignore(message) is expected


@pytest.mark.parametrize(
    "message",
    ["Merge branch 'main' into feature", 'Revert "feat: add parser"', "v1.2.3", "Automatic merge from main"],
)
def test_ignored_report(message):
    code, stdout, _ = _run(["lint", "--message", message, "--format", "json"])
    assert code == 0
    assert json.loads(stdout) == {
        "source": "message",
        "valid": True,
        "ignored": True,
        "errorCount": 0,
        "warningCount": 0,
        "findings": [],
    }


def test_ignore_opt_out():
    code, stdout, _ = _run(
        ["lint", "--message", "Merge branch 'main' into feature", "--no-default-ignores", "--format", "json"]
    )
    report = json.loads(stdout)
    assert code == 1
    assert report["ignored"] is False
    assert report["valid"] is False
    assert report["errorCount"] > 0


def test_stdin_replay():
    stdin = (
        "feat(parser): add replay coverage\n\nhttps://example.com/" + "a" * 150 + "\n"
        + LONG_LINE + "\n\nRefs: #123"
    )
    code, stdout, stderr = _run(["lint", "--format", "text"], stdin=stdin)
    assert code == 1
    assert stdout.rstrip("\n").split("\n") == [
        "input: stdin",
        "status: invalid",
        "errors: 1",
        "warnings: 0",
        "",
        "error: body-max-line-length body line 2 exceeds max length 100",
    ]
    assert stderr == ""


def test_message_replay():
    code, stdout, _ = _run(["lint", "--format", "json", "--message", "feat(parser): add replay coverage"])
    assert code == 0
    assert json.loads(stdout) == {
        "source": "message",
        "valid": True,
        "ignored": False,
        "errorCount": 0,
        "warningCount": 0,
        "findings": [],
    }


def test_edit_replay(tmp_path):
    edit_path = tmp_path / "COMMIT_EDITMSG"
    edit_path.write_text("feat: Add parser\n\nbody\n")
    code, stdout, _ = _run(["lint", "--format", "json", "--edit", str(edit_path)])
    assert code == 1
    assert json.loads(stdout) == {
        "source": "edit",
        "valid": False,
        "ignored": False,
        "errorCount": 1,
        "warningCount": 0,
        "findings": [
            {
                "rule": "subject-case",
                "level": "error",
                "field": "subject",
                "message": "subject must not be sentence-case, start-case, pascal-case, or upper-case",
            }
        ],
    }


def test_file_replay(tmp_path):
    path = tmp_path / "COMMIT_MSG"
    path.write_text("feat: add parser\nbody without separator\n")
    code, stdout, _ = _run(["lint", "--format", "json", "--file", str(path)])
    report = json.loads(stdout)
    assert code == 0
    assert report["warningCount"] == 1
    assert report["errorCount"] == 0
    assert report["findings"][0] == {
        "rule": "body-leading-blank",
        "level": "warning",
        "field": "body",
        "message": "body must begin with a blank line",
    }


def test_text_report_includes_counts():
    result = Result(
        source="stdin",
        valid=False,
        findings=[Finding(rule=RuleName.TYPE_EMPTY, level=Level.ERROR, field="type", message="type may not be empty")],
    )
    assert format_text_report(result) == (
        "input: stdin\nstatus: invalid\nerrors: 1\nwarnings: 0\n\nerror: type-empty type may not be empty\n"
    )


def test_text_report_ignored_without_findings():
    result = Result(source="message", valid=True, ignored=True, findings=[])
    assert format_text_report(result) == "input: message\nstatus: ignored\nerrors: 0\nwarnings: 0\n"


def test_json_report_escapes_html():
    buffer = io.StringIO()
    result = Result(
        source="message",
        valid=False,
        findings=[Finding(rule=RuleName.SUBJECT_FULL_STOP, level=Level.ERROR, field="subject", message="<script>")],
    )
    write_json_report(buffer, result)
    text = buffer.getvalue()
    assert "<script>" not in text
    assert "\\u003cscript\\u003e" in text
    assert text.endswith("\n")
    assert json.loads(text)["findings"][0]["message"] == "<script>"


def test_normalize_args_bare_edit():
    assert normalize_args(["lint", "--edit"]) == ["lint", "--edit=__pommitlint_default_edit__"]
    assert normalize_args(["lint", "--edit", "--format", "json"]) == [
        "lint", "--edit=__pommitlint_default_edit__", "--format", "json",
    ]


def test_normalize_args_keeps_edit_path():
    assert normalize_args(["lint", "--edit", "msg.txt"]) == ["lint", "--edit", "msg.txt"]


def test_multiple_sources_rejected():
    code, stdout, stderr = _run(["lint", "--message", "feat: a", "--file", "x"])
    assert code == 2
    assert stdout == ""
    assert stderr == "exactly one of --message, --file, or --edit may be set\n"


def test_unsupported_format():
    code, _, stderr = _run(["lint", "--message", "feat: a", "--format", "xml"])
    assert code == 2
    assert stderr == 'unsupported format "xml"\n'


def test_missing_file_reports_read_error(tmp_path):
    code, _, stderr = _run(["lint", "--file", str(tmp_path / "missing")])
    assert code == 2
    assert stderr.startswith("read --file: ")


def test_version():
    code, stdout, _ = _run(["--version"])
    assert code == 0
    assert stdout == "pommitlint version dev\n"


def test_sanitize_edit_message_comments_and_scissors(tmp_path):
    edit_path = tmp_path / "COMMIT_EDITMSG"
    assert sanitize_edit_message(EDIT_CONTENT, str(edit_path), str(tmp_path)) == "feat: add parser\n\nbody"


def test_no_shell_interpolation(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    code, _, _ = _run(["lint", "--message", "feat: $(touch pommitlint-marker)", "--format", "json"])
    assert code == 0
    assert not (tmp_path / "pommitlint-marker").exists()


def test_bounded_input():
    message = "feat: keep runtime bounded\n\n" + "a" * (256 * 1024) + "\n\nRefs: #123"
    code, stdout, _ = _run(["lint", "--message", message, "--format", "text"])
    assert code == 1
    assert "error: body-max-line-length" in stdout
    assert stdout.count("\n") <= 8


def test_main_lint_message(capsys):
    code = main(["lint", "--message", "feat: add parser", "--format", "json"])
    report = json.loads(capsys.readouterr().out)
    assert code == 0
    assert report["source"] == "message"
    assert report["valid"] is True


def test_edit_defaults_to_commit_editmsg_from_root(git_repo):
    (git_repo / ".git" / "COMMIT_EDITMSG").write_text(EDIT_CONTENT)
    code, stdout, _ = _run(["lint", "--edit", "--format", "json"], work_dir=git_repo)
    report = json.loads(stdout)
    assert code == 0
    assert report["ignored"] is False
    assert report["valid"] is True
    assert report["source"] == "edit"


def test_edit_defaults_to_commit_editmsg_from_subdirectory(git_repo):
    subdir = git_repo / "subdir"
    subdir.mkdir()
    (git_repo / ".git" / "COMMIT_EDITMSG").write_text(EDIT_CONTENT)
    code, stdout, _ = _run(["lint", "--edit", "--format", "json"], work_dir=subdir)
    report = json.loads(stdout)
    assert code == 0
    assert report["valid"] is True
    assert report["source"] == "edit"


def test_edit_sanitizes_comments_and_scissors(git_repo):
    edit_path = git_repo / ".git" / "COMMIT_EDITMSG"
    edit_path.write_text(EDIT_CONTENT)
    code, stdout, _ = _run(["lint", "--edit", str(edit_path), "--format", "json"], work_dir=git_repo)
    report = json.loads(stdout)
    assert code == 0
    assert report["valid"] is True
    assert report["ignored"] is False


@pytest.mark.parametrize("char", [";", "$"])
def test_edit_uses_core_comment_char(git_repo, tmp_path, char):
    _git(git_repo, "config", "core.commentChar", char)
    edit_path = git_repo / ".git" / "COMMIT_EDITMSG"
    edit_path.write_text(
        f"feat: add parser\n\nbody\n\n{char} Please enter the commit message\n"
        f"{char} ------------------------ >8 ------------------------\n{LONG_LINE}\n"
    )
    outside = tmp_path / "outside"
    outside.mkdir()
    want = {
        "source": "edit",
        "valid": True,
        "ignored": False,
        "errorCount": 0,
        "warningCount": 0,
        "findings": [],
    }
    code, stdout, _ = _run(["lint", "--edit", "--format", "json"], work_dir=git_repo)
    assert code == 0
    assert json.loads(stdout) == want
    code, stdout, _ = _run(["lint", "--edit", str(edit_path), "--format", "json"], work_dir=outside)
    assert code == 0
    assert json.loads(stdout) == want


def test_hook_install(git_repo):
    code, _, stderr = _run(["hook", "install"], work_dir=git_repo)
    hook_path = git_repo / ".git" / "hooks" / "commit-msg"
    assert code == 0, stderr
    assert hook_path.read_text() == HOOK_BODY
    assert stat.S_IMODE(hook_path.stat().st_mode) == 0o755


def test_hook_install_core_hooks_path(git_repo):
    hooks_dir = git_repo / "custom-hooks"
    _git(git_repo, "config", "core.hooksPath", str(hooks_dir))
    code, _, stderr = _run(["hook", "install"], work_dir=git_repo)
    assert code == 0, stderr
    assert (hooks_dir / "commit-msg").read_text() == HOOK_BODY


def test_hook_install_force_guard(git_repo):
    hook_path = git_repo / ".git" / "hooks" / "commit-msg"
    hook_path.parent.mkdir(parents=True, exist_ok=True)
    original = "#!/bin/sh\nexit 42\n"
    hook_path.write_text(original)
    code, _, _ = _run(["hook", "install"], work_dir=git_repo)
    assert code == 2
    assert hook_path.read_text() == original
    code, _, stderr = _run(["hook", "install", "--force"], work_dir=git_repo)
    assert code == 0, stderr
    assert hook_path.read_text() == HOOK_BODY


def test_hook_install_symlink_guard(tmp_path):
    hooks_dir = tmp_path / "hooks"
    hooks_dir.mkdir()
    outside = tmp_path / "outside-hook"
    outside.write_text("outside\n")
    os.symlink(outside, hooks_dir / "commit-msg")
    code, _, stderr = _run(["hook", "install", "--force", "--hooks-dir", str(hooks_dir)])
    assert code == 2
    assert "refusing to overwrite symlink hook" in stderr
    assert outside.read_text() == "outside\n"


def test_write_hook_creates_directory(tmp_path):
    target = tmp_path / "nested" / "hooks" / "commit-msg"
    write_hook(str(target))
    assert target.read_text() == HOOK_BODY
    assert stat.S_IMODE(target.stat().st_mode) == 0o755


def test_write_hook_refuses_existing(tmp_path):
    target = tmp_path / "commit-msg"
    target.write_text("keep\n")
    with pytest.raises(CommandError, match="hook already exists at"):
        write_hook(str(target))
    assert target.read_text() == "keep\n"
    write_hook(str(target), force=True)
    assert target.read_text() == HOOK_BODY