# pommitlint

A linter for commit messages in the conventional commit format
(`type(scope): subject`). The conventional rule preset is built in, so
there is nothing to configure and no network access is needed.

## Installation

```sh
pip install .
```

This installs the `pommitlint` command. It has no dependencies outside
the standard library. The `git` program is used, when present, for edit
mode and for installing the hook.

## Linting a message

At most one input option may be given; with none, the message is read
from standard input.

```sh
pommitlint lint --message "feat(parser): add replay coverage"
pommitlint lint --file path/to/message.txt
pommitlint lint --edit .git/COMMIT_EDITMSG
echo "fix: handle empty body" | pommitlint lint
```

`--edit` without a path lints the repository's `COMMIT_EDITMSG`, located
with `git rev-parse --git-path COMMIT_EDITMSG` (falling back to
`.git/COMMIT_EDITMSG` in the working directory).

In edit mode, comment lines and everything below the scissors line
(`# ------------------------ >8 ------------------------`) are removed
first. The comment prefix is taken from git (so `core.commentChar` and
`core.commentString` are honoured) via `git stripspace`; if git cannot be
run, lines starting with `#` are dropped instead.

`pommitlint --version` prints the version.

### Output

`--format text` (the default) prints a plain report:

```
input: message
status: invalid
errors: 1
warnings: 0

error: subject-case subject must not be sentence-case, start-case, pascal-case, or upper-case
```

`--format json` prints one line of JSON with the fields `source`, `valid`,
`ignored`, `errorCount`, `warningCount` and `findings` (each finding has
`rule`, `level`, `field` and `message`). `<`, `>` and `&` are written as
`\u` escapes. Any other format is an error.

### Exit status

| code | meaning                                                  |
|------|----------------------------------------------------------|
| 0    | the message is valid or ignored (warnings allowed)       |
| 1    | the message has at least one error                       |
| 2    | usage error, unreadable input, or the hook was not written |

On status 2 the reason is written to standard error.

### Ignored messages

Merge commits, reverts, reapplies, `fixup!`/`squash!`/`amend!` commits,
bare version numbers (such as `v1.2.3` or
`chore(release): 2.3.3-beta.1 [skip ci]`) and automatic merge messages
are reported with status `ignored` and pass. Pass `--no-default-ignores`
to lint them anyway.

## Rules

The built-in preset checks:

- `header-max-length` (100), `header-trim`
- `type-empty`, `type-case` (lower-case), `type-enum`
  (build, chore, ci, docs, feat, fix, perf, refactor, revert, style, test)
- `subject-empty`, `subject-case`, `subject-full-stop`
- `body-leading-blank` (warning), `body-max-line-length` (100; lines
  containing `://` are skipped)
- `footer-leading-blank` (warning), `footer-max-line-length` (100)

Lengths are counted in UTF-16 code units, so an emoji counts as two.

## Installing the git hook

```sh
pommitlint hook install
```

This writes an executable `commit-msg` hook that runs
`pommitlint lint --edit "$1"` into the repository's hooks directory, as
reported by `git rev-parse --git-path hooks` (so `core.hooksPath` is
respected). `--hooks-dir DIR` chooses another directory; `--force`
replaces an existing hook. A hook that is a symbolic link is never
overwritten.

## Using it from Python

```python
from pommitlint.lint import lint, parse
from pommitlint.preset import load

schema = load()
result = lint("feat: add parser", "message", schema)
print(result.valid, result.error_count(), result.warning_count())
for finding in result.findings:
    print(finding.level, finding.rule, finding.message)

message = parse("fix(core): tidy up\n\nbody\n\nRefs: #1", schema)
print(message.type, message.scope, message.subject, message.footer_lines)
```

`pommitlint.preset.parse_schema` decodes a preset from JSON text or a
mapping (schema version 1), and the resulting `Schema` can be passed to
`lint` in place of the built-in one. `pommitlint.cli.run` runs the
command line with given arguments and streams and returns the exit
status.

## Limitations

The command always uses the built-in preset: it reads no configuration
files and offers no option to enable, disable or tune rules. Only the
rules listed above are evaluated. `hook install` is the only hook
command; there is no uninstall.