"""Command-line interface: lint commit messages and install the git hook."""

from __future__ import annotations

import argparse
import json
import os
import re
import subprocess
import sys
from pathlib import Path
from typing import Callable, Optional, Sequence, TextIO

from pommitlint.lint import LintError, Result, lint
from pommitlint.preset import PresetError, load

VERSION = "dev"

_DEFAULT_EDIT_SENTINEL = "__pommitlint_default_edit__"
_COMMIT_MSG_HOOK_BODY = '#!/bin/sh\nexec pommitlint lint --edit "$1"\n'
_SCISSORS_SUFFIX = " ------------------------ >8 ------------------------"
_COMMENT_PREFIX_SENTINEL = "pommitlint-comment-prefix-sentinel"
_VALUE_FLAGS = frozenset({"--message", "--file", "--edit", "--format", "--hooks-dir"})

_JSON_HTML_ESCAPES = str.maketrans(
    {
        "<": "\\u003c",
        ">": "\\u003e",
        "&": "\\u0026",
        "\u2028": "\\u2028",
        "\u2029": "\\u2029",
    }
)


class CommandError(Exception):
    """Raised when a command cannot complete; the process exits with status 2."""


class _HelpShown(Exception):
    def __init__(self, status: int) -> None:
        super().__init__(status)
        self.status = status


class _Parser(argparse.ArgumentParser):
    """Argument parser that writes to a chosen stream and never exits."""

    def __init__(self, *args, out: TextIO, **kwargs) -> None:
        kwargs.setdefault("allow_abbrev", False)
        super().__init__(*args, **kwargs)
        self._out = out

    def print_help(self, file=None) -> None:
        self._out.write(self.format_help())

    def print_usage(self, file=None) -> None:
        self._out.write(self.format_usage())

    def exit(self, status=0, message=None):
        if message:
            raise CommandError(message.strip())
        raise _HelpShown(status)

    def error(self, message):
        raise CommandError(message)


# ------------------------------------------------------------ ignoring


def _search(pattern: str, flags: int = 0) -> Callable[[str], bool]:
    compiled = re.compile(pattern, flags | re.ASCII)
    return lambda message: compiled.search(message) is not None


_SEMVER = re.compile(
    r"^v?\d+\.\d+\.\d+(?:-[0-9A-Za-z.-]+)?(?:\+[0-9A-Za-z.-]+)?\Z", re.ASCII
)
_SEMVER_CHORE_PREFIX = re.compile(r"^chore(\([^)]+\))?:")
_SEMVER_BRACKET_SKIP = re.compile(r"\[(skip|ci)(-|\s)(ci|skip)\]", re.ASCII)
_SEMVER_PAREN_SKIP = re.compile(r"\((skip|ci)(-|\s)(ci|skip)\)", re.ASCII)


def _is_semver_message(message: str) -> bool:
    first_line = message.split("\n", 1)[0]
    stripped = _SEMVER_CHORE_PREFIX.sub("", first_line)
    stripped = _SEMVER_BRACKET_SKIP.sub("", stripped)
    stripped = _SEMVER_PAREN_SKIP.sub("", stripped)
    return _SEMVER.match(stripped.strip()) is not None


_DEFAULT_IGNORES: tuple[Callable[[str], bool], ...] = (
    _search(
        r"^((Merge pull request)|(Merge (.*?) into (.*?)|(Merge branch (.*?)))(?:\r?\n)*$)",
        re.MULTILINE,
    ),
    _search(r"^(Merge tag (.*?))(?:\r?\n)*$", re.MULTILINE),
    _search(r"^(R|r)evert (.*)"),
    _search(r"^(R|r)eapply (.*)"),
    _search(r"^(amend|fixup|squash)!"),
    _is_semver_message,
    _search(r"^(Merged (.*?)(in|into) (.*)|Merged PR (.*): (.*))"),
    _search(r"^Merge remote-tracking branch(\s*)(.*)"),
    _search(r"^Automatic merge(.*)"),
    _search(r"^Auto-merged (.*?) into (.*)"),
)


def should_ignore(message: str) -> bool:
    """Return True when a built-in ignore rule matches the message."""
    return any(matches(message) for matches in _DEFAULT_IGNORES)


# ------------------------------------------------------------ arguments


def normalize_args(args: Sequence[str]) -> list[str]:
    """Give a bare ``--edit`` (no path after it) the default-edit marker."""
    normalized: list[str] = []
    items = list(args)
    index = 0
    while index < len(items):
        current = items[index]
        if current != "--edit":
            normalized.append(current)
        elif index + 1 < len(items) and not items[index + 1].startswith("-"):
            normalized.extend((current, items[index + 1]))
            index += 1
        else:
            normalized.append(f"--edit={_DEFAULT_EDIT_SENTINEL}")
        index += 1
    return normalized


def _join_flag_values(args: list[str]) -> list[str]:
    """Bind each value flag to the argument after it, whatever that looks like."""
    joined: list[str] = []
    iterator = iter(args)
    for current in iterator:
        if current in _VALUE_FLAGS:
            value = next(iterator, None)
            joined.append(current if value is None else f"{current}={value}")
        else:
            joined.append(current)
    return joined


# ------------------------------------------------------------ reports


def format_text_report(result: Result) -> str:
    """Render a lint result as the plain-text report."""
    if result.ignored:
        status = "ignored"
    elif result.valid:
        status = "valid"
    else:
        status = "invalid"
    text = (
        f"input: {result.source}\nstatus: {status}\n"
        f"errors: {result.error_count()}\nwarnings: {result.warning_count()}\n"
    )
    if not result.findings:
        return text
    lines = "".join(
        f"{finding.level}: {finding.rule} {finding.message}\n" for finding in result.findings
    )
    return f"{text}\n{lines}"


def write_json_report(writer: TextIO, result: Result) -> None:
    """Write a lint result as one line of JSON with HTML characters escaped."""
    report = {
        "source": result.source,
        "valid": result.valid,
        "ignored": result.ignored,
        "errorCount": result.error_count(),
        "warningCount": result.warning_count(),
        "findings": [
            {
                "rule": str(finding.rule),
                "level": str(finding.level),
                "field": finding.field,
                "message": finding.message,
            }
            for finding in result.findings
        ],
    }
    text = json.dumps(report, ensure_ascii=False, separators=(",", ":"))
    writer.write(text.translate(_JSON_HTML_ESCAPES) + "\n")


def _write_report(writer: TextIO, result: Result, report_format: str) -> None:
    if report_format == "json":
        write_json_report(writer, result)
    elif report_format == "text":
        writer.write(format_text_report(result))
    else:
        raise CommandError(f'unsupported format "{report_format}"')


# ------------------------------------------------------------ git helpers


def _default_work_dir(work_dir: str) -> str:
    if work_dir:
        return work_dir
    try:
        return os.getcwd()
    except OSError:
        return "."


def _git(args: Sequence[str], cwd: str, input_text: Optional[str] = None) -> str:
    """Run git and return its standard output; raise CommandError on failure."""
    kwargs: dict = {"cwd": cwd, "capture_output": True, "check": False}
    if input_text is None:
        kwargs["stdin"] = subprocess.DEVNULL
    else:
        kwargs["input"] = input_text.encode("utf-8", errors="replace")
    try:
        completed = subprocess.run(["git", *args], **kwargs)
    except OSError as error:
        raise CommandError(str(error)) from error
    if completed.returncode != 0:
        detail = completed.stderr.decode("utf-8", errors="replace").strip()
        raise CommandError(detail or f"git exited with status {completed.returncode}")
    return completed.stdout.decode("utf-8", errors="replace")


def _git_stripspace(text: str, work_dir: str, mode: str) -> Optional[str]:
    try:
        return _git(["stripspace", mode], _default_work_dir(work_dir), text)
    except CommandError:
        return None


def _resolve_comment_prefix(raw: str, work_dir: str) -> Optional[str]:
    commented = _git_stripspace(
        f"{raw}\n{_COMMENT_PREFIX_SENTINEL}\n", work_dir, "--comment-lines"
    )
    if commented is None:
        return None
    for line in commented.rstrip("\n").split("\n"):
        if line.endswith(_COMMENT_PREFIX_SENTINEL):
            prefix = line[: -len(_COMMENT_PREFIX_SENTINEL)]
            return prefix[:-1] if prefix.endswith(" ") else prefix
    return None


def _resolve_edit_sanitize_dir(edit_path: str, work_dir: str) -> str:
    if not edit_path:
        return _default_work_dir(work_dir)
    edit_dir = os.path.dirname(edit_path) or "."
    try:
        return _git(["rev-parse", "--show-toplevel"], edit_dir).strip()
    except CommandError:
        return edit_dir


def _resolve_git_path(base_dir: str, git_path: str) -> str:
    resolved = _git(["rev-parse", "--git-path", git_path], base_dir).strip()
    if os.path.isabs(resolved):
        return resolved
    return os.path.join(base_dir, resolved)


def _resolve_default_edit_path(work_dir: str) -> str:
    base_dir = _default_work_dir(work_dir)
    try:
        return _resolve_git_path(base_dir, "COMMIT_EDITMSG")
    except CommandError:
        return os.path.join(base_dir, ".git", "COMMIT_EDITMSG")


def _fallback_sanitize(raw: str, comment_prefix: str) -> str:
    scissors = comment_prefix + _SCISSORS_SUFFIX
    kept: list[str] = []
    for line in raw.split("\n"):
        if line == scissors:
            break
        if not line.startswith(comment_prefix):
            kept.append(line)
    return "\n".join(kept)


def sanitize_edit_message(raw: str, edit_path: str = "", work_dir: str = "") -> str:
    """Drop comment lines and everything below the scissors line.

    The comment prefix is taken from git's configuration when git is
    available; otherwise ``#`` is assumed.
    """
    normalized = raw.replace("\r\n", "\n")
    sanitize_dir = _resolve_edit_sanitize_dir(edit_path, work_dir)
    prefix = _resolve_comment_prefix(normalized, sanitize_dir)
    if prefix is not None:
        scissors = prefix + _SCISSORS_SUFFIX
        head, separator, _ = normalized.partition(scissors + "\n")
        if separator:
            normalized = head
        else:
            head, separator, _ = normalized.partition(scissors)
            if separator:
                normalized = head
        stripped = _git_stripspace(normalized, sanitize_dir, "--strip-comments")
        if stripped is not None:
            return stripped.rstrip("\n")
    return _fallback_sanitize(normalized, "#").rstrip("\n")


# ------------------------------------------------------------ hooks


def _resolve_hook_path(work_dir: str, hooks_dir: str) -> str:
    if hooks_dir:
        return os.path.join(hooks_dir, "commit-msg")
    try:
        hooks_path = _resolve_git_path(_default_work_dir(work_dir), "hooks")
    except CommandError as error:
        raise CommandError(f"resolve git hooks path: {error}") from error
    return os.path.join(hooks_path, "commit-msg")


def write_hook(target_path: str, force: bool = False) -> None:
    """Write the commit-msg hook, refusing symlinks and, unless forced, existing files."""
    target = Path(target_path)
    try:
        target.parent.mkdir(mode=0o755, parents=True, exist_ok=True)
    except OSError as error:
        raise CommandError(f"create hook directory: {error}") from error

    try:
        info = os.lstat(target)
    except FileNotFoundError:
        pass
    except OSError as error:
        raise CommandError(f"stat hook: {error}") from error
    else:
        if os.path.islink(target) or (info.st_mode & 0o170000) == 0o120000:
            raise CommandError(f"refusing to overwrite symlink hook at {target_path}")
        if not force:
            raise CommandError(f"hook already exists at {target_path}")

    try:
        descriptor = os.open(target, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
        with os.fdopen(descriptor, "wb") as handle:
            handle.write(_COMMIT_MSG_HOOK_BODY.encode("utf-8"))
    except OSError as error:
        raise CommandError(f"write hook: {error}") from error

    try:
        os.chmod(target, 0o755)
    except OSError as error:
        raise CommandError(f"chmod hook: {error}") from error


# ------------------------------------------------------------ commands


def _read_text(path: str, flag: str) -> str:
    try:
        return Path(path).read_bytes().decode("utf-8", errors="replace")
    except OSError as error:
        raise CommandError(f"read {flag}: {error}") from error


def _resolve_input(
    stdin: TextIO, work_dir: str, message: str, file_path: str, edit_path: str
) -> tuple[str, str]:
    if sum(1 for value in (message, file_path, edit_path) if value) > 1:
        raise CommandError("exactly one of --message, --file, or --edit may be set")
    if message:
        return message, "message"
    if file_path:
        return _read_text(file_path, "--file"), "file"
    if edit_path:
        if edit_path == _DEFAULT_EDIT_SENTINEL:
            edit_path = _resolve_default_edit_path(work_dir)
        content = _read_text(edit_path, "--edit")
        return sanitize_edit_message(content, edit_path, work_dir), "edit"
    try:
        return stdin.read(), "stdin"
    except OSError as error:
        raise CommandError(f"read stdin: {error}") from error


def _build_parser(out: TextIO) -> tuple[_Parser, _Parser]:
    root = _Parser(prog="pommitlint", out=out)
    root.add_argument("-v", "--version", action="store_true", help="print the version")
    commands = root.add_subparsers(dest="command")

    lint_parser = commands.add_parser("lint", out=out, help="Lint a commit message")
    lint_parser.add_argument("--message", default="", help="lint the provided message")
    lint_parser.add_argument("--file", default="", help="lint the provided file")
    lint_parser.add_argument("--edit", default="", help="lint the provided edit file")
    lint_parser.add_argument("--format", default="text", help="report format: text or json")
    lint_parser.add_argument(
        "--no-default-ignores", action="store_true", help="disable built-in ignore rules"
    )

    hook_parser = commands.add_parser("hook", out=out, help="Manage git hooks")
    hook_commands = hook_parser.add_subparsers(dest="hook_command")
    install = hook_commands.add_parser("install", out=out, help="Install the commit-msg hook")
    install.add_argument("--hooks-dir", default="", help="override the hooks directory")
    install.add_argument("--force", action="store_true", help="overwrite an existing hook")
    return root, hook_parser


def _lint_command(options: argparse.Namespace, stdin: TextIO, stdout: TextIO, work_dir: str) -> int:
    schema = load()
    text, source = _resolve_input(stdin, work_dir, options.message, options.file, options.edit)
    if not options.no_default_ignores and should_ignore(text):
        ignored = Result(source=source, valid=True, ignored=True, findings=[])
        _write_report(stdout, ignored, options.format)
        return 0
    result = lint(text, source, schema)
    _write_report(stdout, result, options.format)
    return 1 if result.error_count() > 0 else 0


def _execute(args: list[str], stdin: TextIO, stdout: TextIO, work_dir: str) -> int:
    root, hook_parser = _build_parser(stdout)
    options = root.parse_args(_join_flag_values(normalize_args(args)))
    if options.version:
        stdout.write(f"pommitlint version {VERSION}\n")
        return 0
    if options.command == "lint":
        return _lint_command(options, stdin, stdout, work_dir)
    if options.command == "hook":
        if options.hook_command == "install":
            write_hook(_resolve_hook_path(work_dir, options.hooks_dir), options.force)
            return 0
        hook_parser.print_help()
        return 0
    root.print_help()
    return 0


def run(
    args: Optional[Sequence[str]] = None,
    stdin: Optional[TextIO] = None,
    stdout: Optional[TextIO] = None,
    stderr: Optional[TextIO] = None,
    work_dir: str = "",
) -> int:
    """Run the command line and return its exit status.

    0 means success, 1 means the message has errors, 2 means the command failed
    (the reason is written to ``stderr``).
    """
    arguments = list(sys.argv[1:] if args is None else args)
    stdin = sys.stdin if stdin is None else stdin
    stdout = sys.stdout if stdout is None else stdout
    stderr = sys.stderr if stderr is None else stderr
    try:
        return _execute(arguments, stdin, stdout, work_dir)
    except _HelpShown as shown:
        return shown.status
    except (CommandError, PresetError, LintError, OSError) as error:
        stderr.write(f"{error}\n")
        return 2


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Entry point for the ``pommitlint`` command."""
    return run(sys.argv[1:] if argv is None else list(argv))


if __name__ == "__main__":
    sys.exit(main())