"""Conventional commit parser over a single git log traversal.

One ``git log --name-status`` call yields every commit in the range together
with the files it touched. The output is scanned line by line: an STX byte
opens a commit header, an ETX byte closes it, and the name-status lines that
follow belong to that commit until the next STX. Each commit's files are
therefore attributed without looking at any other block.

Malformed blocks are skipped rather than failing the whole parse; a failing
git invocation propagates as GitError.
"""

from __future__ import annotations

import re
from collections.abc import Callable, Iterable, Iterator, Mapping
from pathlib import Path
from typing import cast

from pydantic import BaseModel, ConfigDict, Field

from .models import (
    COMMIT_TYPES,
    Author,
    BreakingChange,
    Change,
    CommitType,
    GitRange,
    Reference,
)
from .shell import git

RECORD_START = "\x02"
HEADER_END = "\x03"
FIELD_SEP = "\x00"

# sha, author name, author email, author date (strict ISO), subject, body
LOG_FORMAT = "%x02%H%x00%an%x00%ae%x00%aI%x00%s%x00%b%x03"

SHA_RE = re.compile(r"^[0-9a-f]{40}$")
HEADER_RE = re.compile(r"^(\w+)(?:\(([^)]*)\))?(!)?:\s*(.*)$")
BREAKING_RE = re.compile(r"^BREAKING[ -]CHANGE:\s*(.+)$")
REF_LINE_RE = re.compile(
    r"^(closes|fixes|refs)\b:?\s+((?:#\d+[\s,]*)+)", re.IGNORECASE
)
REF_ID_RE = re.compile(r"#(\d+)")
CO_AUTHOR_RE = re.compile(
    r"^Co-authored-by:\s*(.+?)\s*<(.+?)>\s*$", re.IGNORECASE
)
REVERT_OF_RE = re.compile(
    r"\b(?:revert(?:\s+of)?|reverts\s+commit)\s+([0-9a-f]{40})\b", re.IGNORECASE
)
CHERRY_PICK_RE = re.compile(
    r"cherry picked from (?:commit )?([^\s)]+)", re.IGNORECASE
)
NAME_STATUS_RE = re.compile(r"^([ACDMRTUX])(\d*)\t(.+)$")
PACKAGES_DIR_RE = re.compile(r"^packages/([^/]+)")
PARAGRAPH_BREAK_RE = re.compile(r"\n[ \t]*\n")
OCTAL_ESCAPE_RE = re.compile(r"[0-7]{3}")
C_ESCAPES = {
    "a": "\a",
    "b": "\b",
    "f": "\f",
    "n": "\n",
    "r": "\r",
    "t": "\t",
    "v": "\v",
    '"': '"',
    "\\": "\\",
}

PackageMapper = Callable[[str], str | None]


class ConventionalHeader(BaseModel):
    """The pieces of a ``type(scope)!: subject`` header."""

    model_config = ConfigDict(frozen=True)

    type: CommitType
    scope: str | None
    subject: str
    breaking: bool


class _RawCommit(BaseModel):
    header: list[str] = Field(default_factory=list)
    files: list[str] = Field(default_factory=list)


def parse_commits(
    cwd: str | Path,
    git_range: GitRange,
    *,
    ignore_authors: Iterable[str] = (),
    include_types: Iterable[str] | None = None,
    exclude_types: Iterable[str] | None = None,
    package_path: str | None = None,
    package_mapper: PackageMapper | None = None,
    max_count: int | None = None,
    timeout: float | None = None,
) -> list[Change]:
    """Parse the commits of a range into Change records, newest first.

    Issues exactly one ``git log --no-merges --name-status`` call.

    Args:
        cwd: Repository directory.
        git_range: Range to walk. A full-history range walks everything
            reachable from ``git_range.to``.
        ignore_authors: Glob patterns of author names to drop (bots).
        include_types: If given, keep only these commit types.
        exclude_types: Commit types to drop.
        package_path: Restrict the log to commits touching this path.
        package_mapper: Maps a changed path to a package identifier. Defaults
            to the directory under ``packages/``.
        max_count: Limit the number of commits walked.
        timeout: Seconds before the git process is killed.

    Raises:
        GitError: If git fails (not a repository, unresolvable range).
    """
    # Non-ASCII paths print verbatim instead of C-quoted
    args = [
        "-c",
        "core.quotePath=false",
        "log",
        "--no-merges",
        "--name-status",
        f"--format={LOG_FORMAT}",
    ]
    if max_count is not None:
        args.append(f"--max-count={max_count}")
    if git_range.is_full_history:
        args.extend(["--root", git_range.to])
    else:
        args.append(f"{git_range.from_}..{git_range.to}")
    if package_path:
        args.extend(["--", package_path])

    output = git(*args, cwd=cwd, timeout=timeout)
    return parse_git_log_output(
        output,
        ignore_authors=ignore_authors,
        include_types=include_types,
        exclude_types=exclude_types,
        package_mapper=package_mapper,
    )


def parse_git_log_output(
    output: str,
    *,
    ignore_authors: Iterable[str] = (),
    include_types: Iterable[str] | None = None,
    exclude_types: Iterable[str] | None = None,
    package_mapper: PackageMapper | None = None,
) -> list[Change]:
    """Turn raw ``git log`` output (in LOG_FORMAT) into Change records.

    Commits are returned in log order, each sha at most once. Blocks with a
    missing field or an invalid sha are skipped, as are bot authors and
    commits whose type is filtered out.
    """
    ignore = list(ignore_authors)
    include = set(include_types) if include_types is not None else None
    exclude = set(exclude_types or ())
    mapper = package_mapper or default_package_mapper

    changes: list[Change] = []
    seen: set[str] = set()
    for raw in _scan_commits(output):
        change = _build_change(raw, mapper)
        if change is None or change.sha in seen:
            continue
        if any(matches_glob(change.author.name, pattern) for pattern in ignore):
            continue
        if include is not None and change.type not in include:
            continue
        if change.type in exclude:
            continue
        seen.add(change.sha)
        changes.append(change)
    return changes


def _scan_commits(output: str) -> Iterator[_RawCommit]:
    """Split log output into per-commit header text and file status lines."""
    current: _RawCommit | None = None
    in_header = False

    # git separates lines with "\n" only; bodies may contain \x0b, \x1c or U+2028
    for line in output.split("\n"):
        if line.startswith(RECORD_START):
            if current is not None:
                yield current
            current = _RawCommit()
            in_header = True
            line = line[len(RECORD_START) :]

        if current is None:
            continue  # stray text before the first record

        if in_header:
            head, sep, _ = line.partition(HEADER_END)
            current.header.append(head)
            if sep:
                in_header = False
        elif line.strip():
            current.files.append(line)

    if current is not None:
        yield current


def _build_change(raw: _RawCommit, mapper: PackageMapper) -> Change | None:
    fields = "\n".join(raw.header).split(FIELD_SEP)
    if len(fields) < 5:
        return None

    sha, author_name, author_email, author_date, subject = (
        f.strip() for f in fields[:5]
    )
    body = FIELD_SEP.join(fields[5:]).strip()
    if not (sha and author_name and author_email and author_date and subject):
        return None
    if not SHA_RE.match(sha):
        return None

    header = parse_conventional_header(subject)
    commit_type = header.type
    is_revert = commit_type == "revert" or subject.startswith('Revert "')
    if is_revert:
        commit_type = "revert"

    breaking = [BreakingChange(summary=header.subject)] if header.breaking else []
    breaking.extend(BreakingChange(summary=s) for s in _breaking_footers(body))

    files = parse_file_changes(raw.files)
    return Change(
        sha=sha,
        type=commit_type,
        scope=header.scope,
        subject=header.subject,
        body=body,
        breaking=breaking,
        refs=extract_references(body),
        author=Author(name=author_name, email=author_email),
        co_authors=extract_co_authors(body),
        packages=extract_packages(files, mapper),
        files_changed=files,
        timestamp=author_date,
        is_revert=is_revert,
        revert_of=extract_revert_of(body),
        cherry_pick_of=extract_cherry_pick_of(body),
    )


def normalize_type(value: str | None) -> CommitType:
    """Lowercase a commit type, mapping anything unknown to chore."""
    normalized = (value or "chore").lower()
    return cast(CommitType, normalized if normalized in COMMIT_TYPES else "chore")


def parse_conventional_header(header: str) -> ConventionalHeader:
    """Classify a commit header of the form ``type(scope)!: subject``.

    Headers that do not match keep their full text as the subject and are
    typed as chore.

    Examples:
        "feat(api)!: drop v1" → feat, scope "api", breaking
        "Update readme" → chore, subject "Update readme"
    """
    match = HEADER_RE.match(header)
    if not match:
        return ConventionalHeader(
            type="chore", scope=None, subject=header, breaking=False
        )
    commit_type, scope, bang, subject = match.groups()
    return ConventionalHeader(
        type=normalize_type(commit_type),
        scope=scope or None,
        subject=subject,
        breaking=bang == "!",
    )


def _breaking_footers(body: str) -> Iterator[str]:
    for line in body.splitlines():
        match = BREAKING_RE.match(line.strip())
        if match:
            yield match.group(1).strip()


def parse_file_changes(lines: Iterable[str]) -> list[str]:
    """Extract changed paths from ``--name-status`` lines.

    Handles:
    - "M\\tpath" (also A, D, T, U, X)
    - "R087\\told\\tnew" and "C100\\told\\tnew", expanded to the new path
      followed by the old path (add-at-new plus delete-at-old)
    - C-quoted paths ("\"caf\\303\\251.py\""), unquoted to text

    Unrecognized lines are ignored. Each path appears once, in first-seen
    order.
    """
    paths: list[str] = []
    for line in lines:
        match = NAME_STATUS_RE.match(line.rstrip("\r"))
        if not match:
            continue
        status, _score, rest = match.groups()
        if status in ("R", "C"):
            old_path, _, new_path = rest.partition("\t")
            candidates = [new_path, old_path]
        else:
            candidates = [rest]
        for path in map(unquote_path, candidates):
            if path and path not in paths:
                paths.append(path)
    return paths


def unquote_path(path: str) -> str:
    """Undo git's C-style quoting of unusual paths.

    git wraps paths holding quotes, backslashes, control characters (and,
    unless ``core.quotePath`` is off, non-ASCII bytes) in double quotes with
    backslash escapes; octal escapes are UTF-8 bytes.

    Example:
        '"packages/pkg-a/caf\\303\\251.py"' → "packages/pkg-a/café.py"
    """
    if len(path) < 2 or not (path.startswith('"') and path.endswith('"')):
        return path

    inner = path[1:-1]
    out = bytearray()
    i = 0
    while i < len(inner):
        ch = inner[i]
        if ch != "\\" or i + 1 == len(inner):
            out.extend(ch.encode("utf-8"))
            i += 1
            continue
        nxt = inner[i + 1]
        octal = OCTAL_ESCAPE_RE.match(inner, i + 1)
        if octal:
            out.append(int(octal.group(0), 8) & 0xFF)
            i = octal.end()
        else:
            out.extend(C_ESCAPES.get(nxt, nxt).encode("utf-8"))
            i += 2
    return out.decode("utf-8", errors="replace")


def default_package_mapper(path: str) -> str | None:
    """Map ``packages/<name>/...`` to ``<name>``."""
    match = PACKAGES_DIR_RE.match(path)
    return match.group(1) if match else None


def prefix_mapper(package_paths: Mapping[str, str]) -> PackageMapper:
    """Build a mapper from package name → package directory.

    The longest directory that prefixes a path wins, so nested packages
    resolve to the innermost one.

    Example:
        prefix_mapper({"core": "libs/core"})("libs/core/x.py") → "core"
    """
    prefixes = sorted(
        ((p.strip("/") + "/", name) for name, p in package_paths.items()),
        key=lambda item: len(item[0]),
        reverse=True,
    )

    def mapper(path: str) -> str | None:
        for prefix, name in prefixes:
            if path.startswith(prefix):
                return name
        return None

    return mapper


def extract_packages(paths: Iterable[str], mapper: PackageMapper) -> list[str]:
    """Map changed paths to package identifiers, deduplicated in order."""
    packages: list[str] = []
    for path in paths:
        name = mapper(path)
        if name and name not in packages:
            packages.append(name)
    return packages


def footer_lines(body: str) -> list[str]:
    """Stripped lines of the last paragraph of a commit body."""
    paragraphs = [p for p in PARAGRAPH_BREAK_RE.split(body.strip()) if p.strip()]
    if not paragraphs:
        return []
    return [line.strip() for line in paragraphs[-1].split("\n")]


def extract_references(body: str) -> list[Reference]:
    """Find ``Closes #N``, ``Fixes #N`` and ``Refs #N`` footer references.

    Only lines of the trailing footer paragraph that start with the keyword
    count, so prose such as "this fixes #12" in the body is ignored.
    Closes/Fixes reference issues; Refs references pull requests. One line
    may list several numbers ("Fixes #1, #2").
    """
    refs: list[Reference] = []
    for line in footer_lines(body):
        for match in REF_LINE_RE.finditer(line):
            ref_type = "pr" if match.group(1).lower() == "refs" else "issue"
            for ref_id in REF_ID_RE.findall(match.group(2)):
                ref = Reference(type=ref_type, id=ref_id)
                if ref not in refs:
                    refs.append(ref)
    return refs


def extract_co_authors(body: str) -> list[Author]:
    """Collect ``Co-authored-by: Name <email>`` trailers."""
    co_authors: list[Author] = []
    for line in body.splitlines():
        match = CO_AUTHOR_RE.match(line.strip())
        if match:
            co_authors.append(
                Author(name=match.group(1).strip(), email=match.group(2).strip())
            )
    return co_authors


def extract_revert_of(body: str) -> str | None:
    """Return the sha a revert commit undoes, if the body names one."""
    match = REVERT_OF_RE.search(body)
    return match.group(1).lower() if match else None


def extract_cherry_pick_of(body: str) -> str | None:
    """Return the source of a ``cherry picked from ...`` trailer."""
    match = CHERRY_PICK_RE.search(body)
    return match.group(1) if match else None


def matches_glob(text: str, pattern: str) -> bool:
    """Case-insensitive glob match where only ``*`` and ``?`` are special.

    Every other character matches literally, so "dependabot[bot]" matches
    exactly that name.
    """
    regex = "".join(
        ".*" if ch == "*" else "." if ch == "?" else re.escape(ch) for ch in pattern
    )
    return re.fullmatch(regex, text, re.IGNORECASE | re.DOTALL) is not None
