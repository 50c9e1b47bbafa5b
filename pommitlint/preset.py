"""Rule preset schema and the built-in conventional-commits preset."""

from __future__ import annotations

import copy
import json
from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from functools import lru_cache
from typing import Any, Union

SCHEMA_VERSION = 1


class PresetError(ValueError):
    """Raised when a preset cannot be decoded or is not supported."""


class RuleName(str, Enum):
    """Names of the rules the linter knows how to evaluate."""

    BODY_LEADING_BLANK = "body-leading-blank"
    BODY_MAX_LINE_LENGTH = "body-max-line-length"
    FOOTER_LEADING_BLANK = "footer-leading-blank"
    FOOTER_MAX_LINE_LENGTH = "footer-max-line-length"
    HEADER_MAX_LENGTH = "header-max-length"
    HEADER_TRIM = "header-trim"
    SUBJECT_CASE = "subject-case"
    SUBJECT_EMPTY = "subject-empty"
    SUBJECT_FULL_STOP = "subject-full-stop"
    TYPE_CASE = "type-case"
    TYPE_EMPTY = "type-empty"
    TYPE_ENUM = "type-enum"

    def __str__(self) -> str:
        return self.value


class Applicable(str, Enum):
    """Whether a rule's condition must hold or must not hold."""

    ALWAYS = "always"
    NEVER = "never"

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class Regexp:
    """A regular expression in source form with optional flags."""

    source: str = ""
    flags: str = ""


@dataclass(frozen=True)
class Rule:
    """A configured rule: severity level, applicability and optional value.

    ``value`` is the decoded JSON value, or ``None`` when the rule has none.
    """

    level: int
    applicable: Applicable = Applicable.ALWAYS
    value: Any = None


@dataclass(frozen=True)
class ParserPreset:
    """Settings used to split a commit header into its parts."""

    name: str = ""
    header_pattern: Regexp = field(default_factory=Regexp)
    breaking_header_pattern: Regexp = field(default_factory=Regexp)
    header_correspondence: tuple[str, ...] = ()
    note_keywords: tuple[str, ...] = ()
    revert_pattern: Regexp = field(default_factory=Regexp)
    revert_correspondence: tuple[str, ...] = ()
    issue_prefixes: tuple[str, ...] = ()


@dataclass(frozen=True)
class SchemaSource:
    """Where the preset's rules and parser settings came from."""

    config_package: str = ""
    parser_preset_package: str = ""


@dataclass
class Schema:
    """A complete preset: version, origin, rules and parser settings."""

    version: int
    source: SchemaSource
    rules: dict[Union[RuleName, str], Rule]
    parser_preset: ParserPreset


_EMBEDDED_PRESET: dict[str, Any] = {
    "version": 1,
    "source": {
        "configPackage": "@commitlint/config-conventional",
        "parserPresetPackage": "conventional-changelog-conventionalcommits",
    },
    "rules": {
        "body-leading-blank": {"level": 1, "applicable": "always"},
        "body-max-line-length": {"level": 2, "applicable": "always", "value": 100},
        "footer-leading-blank": {"level": 1, "applicable": "always"},
        "footer-max-line-length": {"level": 2, "applicable": "always", "value": 100},
        "header-max-length": {"level": 2, "applicable": "always", "value": 100},
        "header-trim": {"level": 2, "applicable": "always"},
        "subject-case": {
            "level": 2,
            "applicable": "never",
            "value": ["sentence-case", "start-case", "pascal-case", "upper-case"],
        },
        "subject-empty": {"level": 2, "applicable": "never"},
        "subject-full-stop": {"level": 2, "applicable": "never", "value": "."},
        "type-case": {"level": 2, "applicable": "always", "value": "lower-case"},
        "type-empty": {"level": 2, "applicable": "never"},
        "type-enum": {
            "level": 2,
            "applicable": "always",
            "value": [
                "build",
                "chore",
                "ci",
                "docs",
                "feat",
                "fix",
                "perf",
                "refactor",
                "revert",
                "style",
                "test",
            ],
        },
    },
    "parserPreset": {
        "name": "conventional-changelog-conventionalcommits",
        "headerPattern": {"source": r"^(\w*)(?:\((.*)\))?!?: (.*)$", "flags": ""},
        "breakingHeaderPattern": {"source": r"^(\w*)(?:\((.*)\))?!: (.*)$", "flags": ""},
        "headerCorrespondence": ["type", "scope", "subject"],
        "noteKeywords": ["BREAKING CHANGE", "BREAKING-CHANGE"],
        "revertPattern": {
            "source": r'^(?:Revert|revert:)\s"?([\s\S]+?)"?\s*This reverts commit (\w*)\.',
            "flags": "i",
        },
        "revertCorrespondence": ["header", "hash"],
        "issuePrefixes": ["#"],
    },
}


def known_rules() -> frozenset[RuleName]:
    """Return the set of rule names the linter evaluates."""
    return frozenset(RuleName)


def _field(data: Mapping[str, Any], key: str, kind: type, default: Any) -> Any:
    value = data.get(key, default)
    if value is None:
        return default
    if kind is int and isinstance(value, bool):
        raise PresetError(f"field {key!r}: expected int, got bool")
    if not isinstance(value, kind):
        raise PresetError(
            f"field {key!r}: expected {kind.__name__}, got {type(value).__name__}"
        )
    return value


def _strings(data: Mapping[str, Any], key: str) -> tuple[str, ...]:
    values = _field(data, key, list, [])
    if not all(isinstance(item, str) for item in values):
        raise PresetError(f"field {key!r}: expected a list of strings")
    return tuple(values)


def _regexp(data: Mapping[str, Any], key: str) -> Regexp:
    raw = _field(data, key, dict, {})
    return Regexp(source=_field(raw, "source", str, ""), flags=_field(raw, "flags", str, ""))


def _rule(name: str, raw: Any) -> Rule:
    if not isinstance(raw, dict):
        raise PresetError(f"rule {name!r}: expected an object")
    applicable_text = _field(raw, "applicable", str, Applicable.ALWAYS.value)
    try:
        applicable = Applicable(applicable_text)
    except ValueError:
        raise PresetError(
            f"rule {name!r}: unsupported applicable {applicable_text!r}"
        ) from None
    return Rule(
        level=_field(raw, "level", int, 0),
        applicable=applicable,
        value=raw.get("value"),
    )


def _rule_key(name: str) -> Union[RuleName, str]:
    try:
        return RuleName(name)
    except ValueError:
        return name


def parse_schema(data: Union[str, bytes, Mapping[str, Any]]) -> Schema:
    """Decode a preset from JSON text or an already decoded mapping.

    Raises PresetError when the data is malformed or of another schema version.
    """
    if isinstance(data, (str, bytes, bytearray)):
        try:
            decoded = json.loads(data)
        except json.JSONDecodeError as error:
            raise PresetError(f"decode preset: {error}") from error
    else:
        decoded = data
    if not isinstance(decoded, Mapping):
        raise PresetError("decode preset: expected a JSON object")

    version = _field(decoded, "version", int, 0)
    source_raw = _field(decoded, "source", dict, {})
    rules_raw = _field(decoded, "rules", dict, {})
    parser_raw = _field(decoded, "parserPreset", dict, {})

    schema = Schema(
        version=version,
        source=SchemaSource(
            config_package=_field(source_raw, "configPackage", str, ""),
            parser_preset_package=_field(source_raw, "parserPresetPackage", str, ""),
        ),
        rules={_rule_key(name): _rule(name, raw) for name, raw in rules_raw.items()},
        parser_preset=ParserPreset(
            name=_field(parser_raw, "name", str, ""),
            header_pattern=_regexp(parser_raw, "headerPattern"),
            breaking_header_pattern=_regexp(parser_raw, "breakingHeaderPattern"),
            header_correspondence=_strings(parser_raw, "headerCorrespondence"),
            note_keywords=_strings(parser_raw, "noteKeywords"),
            revert_pattern=_regexp(parser_raw, "revertPattern"),
            revert_correspondence=_strings(parser_raw, "revertCorrespondence"),
            issue_prefixes=_strings(parser_raw, "issuePrefixes"),
        ),
    )

    if schema.version != SCHEMA_VERSION:
        raise PresetError(f"unsupported preset schema version: {schema.version}")
    return schema


@lru_cache(maxsize=1)
def _load_embedded() -> Schema:
    try:
        return parse_schema(_EMBEDDED_PRESET)
    except PresetError as error:
        raise PresetError(f"decode embedded preset: {error}") from error


def load() -> Schema:
    """Return the built-in conventional-commits preset.

    The preset is decoded once; each call returns an independent copy.
    """
    return copy.deepcopy(_load_embedded())