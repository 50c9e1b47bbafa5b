"""Commit message parsing and rule evaluation."""

from __future__ import annotations

import re
import unicodedata
from dataclasses import dataclass, field
from enum import Enum
from functools import lru_cache
from typing import Any, Callable, Optional, Union

from pommitlint.preset import Applicable, Regexp, Rule, RuleName, Schema

_SUBJECT_ELLIPSIS = "..."

_FOOTER_PATTERN = re.compile(
    r"^(?:[A-Za-z-]+(?:\([^)]+\))?!?)(?:: | #)|^(?:BREAKING CHANGE|BREAKING-CHANGE): "
)


class LintError(ValueError):
    """Raised when a rule or parser setting cannot be used."""


class Level(str, Enum):
    """Severity of a finding."""

    WARNING = "warning"
    ERROR = "error"

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class Finding:
    """A single rule violation."""

    rule: Union[RuleName, str]
    level: Level
    field: str
    message: str


@dataclass
class Result:
    """The outcome of linting one message."""

    source: str
    valid: bool
    ignored: bool = False
    findings: list[Finding] = field(default_factory=list)

    def error_count(self) -> int:
        return sum(1 for finding in self.findings if finding.level is Level.ERROR)

    def warning_count(self) -> int:
        return sum(1 for finding in self.findings if finding.level is Level.WARNING)


@dataclass
class Message:
    """A commit message split into header, body and footer."""

    header: str = ""
    body_lines: list[str] = field(default_factory=list)
    footer_lines: list[str] = field(default_factory=list)
    body_leading_blank: bool = False
    footer_leading_blank: bool = False
    type: str = ""
    scope: str = ""
    subject: str = ""


# ---------------------------------------------------------------- parsing


def _is_footer_start(line: str) -> bool:
    return _FOOTER_PATTERN.match(line) is not None


def _is_breaking_footer_line(line: str) -> bool:
    return line.startswith(("BREAKING CHANGE: ", "BREAKING-CHANGE: "))


def _find_footer_start(lines: list[str]) -> int:
    for index, line in enumerate(lines):
        if not _is_footer_start(line):
            continue
        if index == 0 or lines[index - 1] == "" or _is_breaking_footer_line(line):
            return index
    return -1


def _trim_trailing_blank_lines(lines: list[str]) -> list[str]:
    end = len(lines)
    while end > 0 and lines[end - 1] == "":
        end -= 1
    return list(lines[:end])


@lru_cache(maxsize=64)
def _compile(value: Regexp) -> re.Pattern[str]:
    if value.flags not in ("", "i"):
        raise LintError(f"unsupported regexp flags {value.flags!r}")
    flags = re.ASCII
    if value.flags == "i":
        flags |= re.IGNORECASE
    try:
        return re.compile(value.source, flags)
    except re.error as error:
        raise LintError(f"compile header pattern: {error}") from error


def _enrich_header(message: Message, schema: Schema) -> None:
    pattern = _compile(schema.parser_preset.header_pattern)
    match = pattern.search(message.header)
    if match is None:
        return
    groups = match.groups()
    for index, name in enumerate(schema.parser_preset.header_correspondence):
        if index >= len(groups):
            break
        value = groups[index] or ""
        if name == "type":
            message.type = value
        elif name == "scope":
            message.scope = value
        elif name == "subject":
            message.subject = value


def parse(raw: str, schema: Schema) -> Message:
    """Split a raw commit message into its parts using the schema's parser."""
    normalized = raw.replace("\r\n", "\n").rstrip("\n")
    if normalized == "":
        return Message()

    header, *rest = normalized.split("\n")
    message = Message(header=header)
    if rest:
        header_separated = rest[0] == ""
        message.body_leading_blank = header_separated
        footer_start = _find_footer_start(rest)
        if footer_start >= 0:
            message.footer_leading_blank = footer_start > 0 and rest[footer_start - 1] == ""
            body = rest[:footer_start]
            if header_separated and body and body[0] == "":
                body = body[1:]
            message.body_lines = _trim_trailing_blank_lines(body)
            message.footer_lines = _trim_trailing_blank_lines(rest[footer_start:])
        else:
            if header_separated:
                rest = rest[1:]
            message.body_lines = _trim_trailing_blank_lines(rest)

    _enrich_header(message, schema)
    return message


# --------------------------------------------------------- character tests


def _category(char: str) -> str:
    return unicodedata.category(char)


def _is_letter(char: str) -> bool:
    return _category(char).startswith("L")


def _is_upper(char: str) -> bool:
    return _category(char) == "Lu"


def _is_space(char: str) -> bool:
    return char.isspace() and char not in "\x1c\x1d\x1e\x1f"


def _is_upper_ascii(char: str) -> bool:
    return "A" <= char <= "Z"


def _is_lower_ascii(char: str) -> bool:
    return "a" <= char <= "z"


def _is_ascii_alnum(char: str) -> bool:
    return _is_upper_ascii(char) or _is_lower_ascii(char) or "0" <= char <= "9"


def _utf16_length(value: str) -> int:
    return len(value.encode("utf-16-le", "surrogatepass")) // 2


# ------------------------------------------------------------ case checks


def _is_lower_case(value: str) -> bool:
    return all(not _is_letter(c) or c.lower() == c for c in value)


def _first_word(value: str) -> str:
    word: list[str] = []
    for char in value:
        if _is_letter(char) or _category(char) == "Nd":
            word.append(char)
        elif word:
            break
    return "".join(word)


def _is_sentence_case(value: str) -> bool:
    word = _first_word(value)
    if not word or not _is_upper(word[0]):
        return False
    return not any(_is_upper(c) for c in word[1:])


def _is_start_case(value: str) -> bool:
    words = [w for w in re.split(r"[^A-Za-z0-9]+", value) if w]
    if len(words) < 2:
        return False
    return all(
        _is_upper_ascii(word[0]) and not any(_is_upper_ascii(c) for c in word[1:])
        for word in words
    )


def _is_pascal_case(value: str) -> bool:
    if any(c in value for c in " -_"):
        return False
    if not value or not _is_upper_ascii(value[0]):
        return False
    has_lower = False
    for char in value[1:]:
        if not _is_ascii_alnum(char):
            return False
        if _is_upper_ascii(char):
            return True
        if _is_lower_ascii(char):
            has_lower = True
    return has_lower


def _is_upper_case(value: str) -> bool:
    letters = [c for c in value if _is_letter(c)]
    return bool(letters) and all(c.upper() == c for c in letters)


_CASE_MATCHERS: dict[str, Callable[[str], bool]] = {
    "lower-case": _is_lower_case,
    "sentence-case": _is_sentence_case,
    "start-case": _is_start_case,
    "pascal-case": _is_pascal_case,
    "upper-case": _is_upper_case,
}


def _match_case(value: str, expected: str) -> bool:
    if value == "":
        return True
    matcher = _CASE_MATCHERS.get(expected)
    return matcher(value) if matcher else True


def _matches_any_case(subject: str, cases: list[str]) -> bool:
    return any(
        matcher(subject)
        for matcher in (_CASE_MATCHERS.get(name) for name in cases)
        if matcher is not None
    )


def _starts_with_cased_letter(value: str) -> bool:
    return bool(value) and _category(value[0]) in ("Lu", "Ll", "Lt")


def _join_cases(values: list[str]) -> str:
    if not values:
        return ""
    if len(values) == 1:
        return values[0]
    if len(values) == 2:
        return f"{values[0]} or {values[1]}"
    return ", ".join(values[:-1]) + ", or " + values[-1]


def _subject_case_message(applicable: Applicable, values: list[str]) -> str:
    verb = "must not be" if applicable == Applicable.NEVER else "must be"
    return f"subject {verb} {_join_cases(values)}"


def _header_trim_check(header: str) -> tuple[bool, str]:
    leading = bool(header) and _is_space(header[0])
    trailing = bool(header) and _is_space(header[-1])
    if leading and trailing:
        return False, "header must not be surrounded by whitespace"
    if leading:
        return False, "header must not start with whitespace"
    if trailing:
        return False, "header must not end with whitespace"
    return True, ""


# ----------------------------------------------------------- rule values


def _int_value(rule: Rule) -> Optional[int]:
    if rule.value is None:
        return None
    if isinstance(rule.value, bool) or not isinstance(rule.value, int):
        raise LintError(f"decode max length: expected an integer, got {rule.value!r}")
    return rule.value


def _str_value(rule: Rule) -> Optional[str]:
    if rule.value is None:
        return None
    if not isinstance(rule.value, str):
        raise LintError(f"decode string rule: expected a string, got {rule.value!r}")
    return rule.value


def _str_list_value(rule: Rule) -> Optional[list[str]]:
    if rule.value is None:
        return None
    if not isinstance(rule.value, (list, tuple)) or not all(
        isinstance(item, str) for item in rule.value
    ):
        raise LintError(f"decode string list rule: expected a list of strings, got {rule.value!r}")
    return list(rule.value)


# ------------------------------------------------------------- evaluation


class _Evaluator:
    def __init__(self, schema: Schema, message: Message) -> None:
        self.rules: dict[Any, Rule] = schema.rules
        self.message = message
        self.findings: list[Finding] = []

    def evaluate(self) -> list[Finding]:
        self._header()
        self._subject()
        self._type()
        self._body()
        self._footer()
        return self.findings

    def _report(self, name: RuleName, field_name: str, fact: bool, text: str) -> None:
        rule = self.rules.get(name)
        if rule is not None:
            self._report_with(rule, name, field_name, fact, text)

    def _report_with(
        self, rule: Rule, name: RuleName, field_name: str, fact: bool, text: str
    ) -> None:
        holds = (not fact) if rule.applicable == Applicable.NEVER else fact
        if holds:
            return
        level = Level.WARNING if rule.level == 1 else Level.ERROR
        self.findings.append(Finding(rule=name, level=level, field=field_name, message=text))

    def _header(self) -> None:
        fact, text = _header_trim_check(self.message.header)
        self._report(RuleName.HEADER_TRIM, "header", fact, text)

        rule = self.rules.get(RuleName.HEADER_MAX_LENGTH)
        if rule is None:
            return
        limit = _int_value(rule)
        if limit is not None:
            self._report_with(
                rule,
                RuleName.HEADER_MAX_LENGTH,
                "header",
                _utf16_length(self.message.header) <= limit,
                f"header exceeds max length {limit}",
            )

    def _subject(self) -> None:
        subject = self.message.subject
        self._report(RuleName.SUBJECT_EMPTY, "subject", subject == "", "subject may not be empty")

        rule = self.rules.get(RuleName.SUBJECT_FULL_STOP)
        if rule is not None:
            stop = _str_value(rule)
            if stop is not None:
                has_stop = subject.endswith(stop) and not subject.endswith(_SUBJECT_ELLIPSIS)
                self._report_with(
                    rule,
                    RuleName.SUBJECT_FULL_STOP,
                    "subject",
                    has_stop,
                    'subject may not end with "' + stop.replace("\\", "\\\\").replace('"', '\\"') + '"',
                )

        rule = self.rules.get(RuleName.SUBJECT_CASE)
        if rule is not None:
            cases = _str_list_value(rule)
            if cases is not None and _starts_with_cased_letter(subject):
                self._report_with(
                    rule,
                    RuleName.SUBJECT_CASE,
                    "subject",
                    _matches_any_case(subject, cases),
                    _subject_case_message(rule.applicable, cases),
                )

    def _type(self) -> None:
        type_ = self.message.type
        self._report(RuleName.TYPE_EMPTY, "type", type_ == "", "type may not be empty")

        rule = self.rules.get(RuleName.TYPE_CASE)
        if rule is not None:
            expected = _str_value(rule)
            if expected is not None:
                self._report_with(
                    rule,
                    RuleName.TYPE_CASE,
                    "type",
                    _match_case(type_, expected),
                    f"type must be {expected}",
                )

        rule = self.rules.get(RuleName.TYPE_ENUM)
        if rule is not None:
            allowed = _str_list_value(rule)
            if allowed is not None and type_ != "":
                self._report_with(
                    rule,
                    RuleName.TYPE_ENUM,
                    "type",
                    type_ in allowed,
                    "type must be one of: " + ", ".join(allowed),
                )

    def _line_lengths(
        self, name: RuleName, field_name: str, lines: list[str], skip_urls: bool
    ) -> None:
        rule = self.rules.get(name)
        if rule is None:
            return
        limit = _int_value(rule)
        if limit is None:
            return
        for number, line in enumerate(lines, start=1):
            if line == "" or (skip_urls and "://" in line):
                continue
            if _utf16_length(line) > limit:
                self._report_with(
                    rule, name, field_name, False,
                    f"{field_name} line {number} exceeds max length {limit}",
                )
                return

    def _body(self) -> None:
        if self.message.body_lines:
            self._report(
                RuleName.BODY_LEADING_BLANK, "body",
                self.message.body_leading_blank, "body must begin with a blank line",
            )
        self._line_lengths(RuleName.BODY_MAX_LINE_LENGTH, "body", self.message.body_lines, True)

    def _footer(self) -> None:
        if self.message.footer_lines:
            self._report(
                RuleName.FOOTER_LEADING_BLANK, "footer",
                self.message.footer_leading_blank, "footer must begin with a blank line",
            )
        self._line_lengths(
            RuleName.FOOTER_MAX_LINE_LENGTH, "footer", self.message.footer_lines, False
        )


def lint(raw: str, source: str, schema: Schema) -> Result:
    """Lint a raw commit message against the schema's rules."""
    message = parse(raw, schema)
    findings = _Evaluator(schema, message).evaluate()
    return Result(
        source=source,
        valid=not any(f.level is Level.ERROR for f in findings),
        findings=findings,
    )