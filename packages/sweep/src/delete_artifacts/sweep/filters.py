"""
Filter chain deciding which artifacts are slated for deletion.

Criteria are ANDed and evaluated in a fixed order: min size, max size, exact
name, active duration, name pattern. The first failing criterion
short-circuits the rest, so a malformed pattern is only ever compiled (and
reported) once an artifact has passed the size, name and age checks.

Malformed patterns and durations fail closed: the criterion rejects every
artifact. They are reported once per distinct value, never per artifact.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from functools import lru_cache
from typing import Iterable, Optional, Protocol

import structlog

from delete_artifacts.core.errors import FilterConfigError
from delete_artifacts.core.time import parse_duration, utc_now

log = structlog.get_logger(__name__)

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)

# POSIX bracket expressions and their Python equivalents (ASCII, like ERE)
_POSIX_CLASSES: dict[str, str] = {
    "alnum": "0-9A-Za-z",
    "alpha": "A-Za-z",
    "ascii": "\\x00-\\x7F",
    "blank": "\\t ",
    "cntrl": "\\x00-\\x1F\\x7F",
    "digit": "0-9",
    "graph": "!-~",
    "lower": "a-z",
    "print": " -~",
    "punct": "!-/:-@\\[-`{-~",
    "space": "\\t\\n\\v\\f\\r ",
    "upper": "A-Z",
    "word": "0-9A-Za-z_",
    "xdigit": "0-9A-Fa-f",
}

# letter/digit escapes that are plain character escapes, not Perl classes
_POSIX_ESCAPES = frozenset("afnrtvx0")


class ArtifactLike(Protocol):
    @property
    def name(self) -> str: ...
    @property
    def size_in_bytes(self) -> int: ...
    @property
    def created_at(self) -> Optional[datetime]: ...


@dataclass(frozen=True, slots=True)
class FilterCriteria:
    min_bytes: int = 0
    max_bytes: Optional[int] = None
    name: Optional[str] = None
    pattern: Optional[str] = None
    active_duration: Optional[str] = None

    def __post_init__(self) -> None:
        # empty strings mean "not configured"
        for attr in ("name", "pattern", "active_duration"):
            if getattr(self, attr) == "":
                object.__setattr__(self, attr, None)
        if self.min_bytes is None:
            object.__setattr__(self, "min_bytes", 0)

    def problems(self) -> list[FilterConfigError]:
        """
        Configuration problems that make a criterion reject everything.

        Evaluation never raises for these; this is for reporting up front.
        """
        out: list[FilterConfigError] = []
        if self.max_bytes is not None and self.max_bytes < self.min_bytes:
            out.append(
                FilterConfigError(
                    f"max bytes ({self.max_bytes}) is below min bytes ({self.min_bytes}); nothing can match",
                    criterion="max_bytes",
                    value=self.max_bytes,
                )
            )
        if self.active_duration is not None:
            err = _duration_problem(self.active_duration)
            if err is not None:
                out.append(err)
        if self.pattern is not None:
            try:
                compile_posix(self.pattern)
            except re.error as e:
                out.append(_pattern_problem(self.pattern, e))
        return out


def compile_posix(pattern: str) -> re.Pattern[str]:
    """
    Compile a POSIX extended regular expression.

    Perl extensions (``\\d``, ``\\w``, ``\\s``, ``\\b``, ``(?...)`` groups,
    lookaround, lazy quantifiers, backreferences) are rejected with
    ``re.error``. POSIX bracket classes such as ``[[:digit:]]`` are
    supported. ``^`` and ``$`` match at line boundaries.
    """
    out: list[str] = []
    i = 0
    n = len(pattern)
    class_start: int | None = None

    while i < n:
        ch = pattern[i]

        if ch == "\\":
            if i + 1 >= n:
                raise re.error("trailing backslash", pattern, i)
            nxt = pattern[i + 1]
            if nxt.isalnum() and nxt not in _POSIX_ESCAPES:
                raise re.error(f"invalid escape sequence \\{nxt}", pattern, i)
            out.append(pattern[i : i + 2])
            i += 2
            continue

        if class_start is not None:
            if pattern.startswith("[:", i):
                end = pattern.find(":]", i + 2)
                if end == -1:
                    raise re.error("unterminated character class", pattern, i)
                cls = pattern[i + 2 : end]
                if cls not in _POSIX_CLASSES:
                    raise re.error(f"invalid character class [:{cls}:]", pattern, i)
                out.append(_POSIX_CLASSES[cls])
                i = end + 2
                continue
            first = i == class_start or (i == class_start + 1 and pattern[class_start] == "^")
            if ch == "]" and not first:
                class_start = None
                out.append("]")
            elif ch in "[]":
                out.append("\\" + ch)
            else:
                out.append(ch)
            i += 1
            continue

        if ch == "[":
            class_start = i + 1
            out.append("[")
            i += 1
            continue

        if ch == "(" and pattern.startswith("(?", i):
            raise re.error("Perl group syntax is not POSIX", pattern, i)

        if (
            ch in "*+?"
            and i > 0
            and pattern[i - 1] in "*+?}"
            and not _escaped(pattern, i - 1)
        ):
            raise re.error("lazy, possessive or nested repetition is not POSIX", pattern, i)

        out.append(ch)
        i += 1

    if class_start is not None:
        raise re.error("unterminated character set", pattern, n)

    return re.compile("".join(out), re.MULTILINE)


def _escaped(pattern: str, idx: int) -> bool:
    backslashes = 0
    j = idx - 1
    while j >= 0 and pattern[j] == "\\":
        backslashes += 1
        j -= 1
    return backslashes % 2 == 1


def _duration_problem(text: str) -> FilterConfigError | None:
    try:
        window = parse_duration(text)
    except ValueError as e:
        return FilterConfigError(
            f"failed to parse active duration: {e}",
            criterion="active_duration",
            value=text,
        )
    if window <= timedelta(0):
        return FilterConfigError(
            f"active duration must be positive: {text!r}",
            criterion="active_duration",
            value=text,
        )
    return None


def _pattern_problem(pattern: str, err: re.error) -> FilterConfigError:
    return FilterConfigError(
        f"invalid pattern {pattern!r}: {err}",
        criterion="pattern",
        value=pattern,
    )


def report_problem(problem: FilterConfigError) -> None:
    """Log a filter configuration problem, once per criterion and value."""
    _report_once(problem.criterion, problem.value, str(problem))


@lru_cache(maxsize=256)
def _report_once(criterion: str, value: object, message: str) -> None:
    log.error(
        f"filter.{criterion}_invalid",
        value=value,
        error=message,
        detail="Artifacts will not match ANY conditions.",
    )


@lru_cache(maxsize=64)
def _compiled_pattern(pattern: str) -> re.Pattern[str] | None:
    try:
        return compile_posix(pattern)
    except re.error as e:
        report_problem(_pattern_problem(pattern, e))
        return None


@lru_cache(maxsize=64)
def _active_window(text: str) -> timedelta | None:
    err = _duration_problem(text)
    if err is not None:
        report_problem(err)
        return None
    return parse_duration(text)


def _as_utc(ts: Optional[datetime]) -> datetime:
    if ts is None:
        return _EPOCH
    if ts.tzinfo is None:
        return ts.replace(tzinfo=timezone.utc)
    return ts


def evaluate(
    artifact: ArtifactLike, criteria: FilterCriteria, *, now: datetime | None = None
) -> bool:
    """Return True when `artifact` matches every configured criterion."""
    size = artifact.size_in_bytes
    keep = size >= criteria.min_bytes

    if keep and criteria.max_bytes is not None:
        keep = size <= criteria.max_bytes

    if keep and criteria.name is not None:
        keep = artifact.name == criteria.name

    if keep and criteria.active_duration is not None:
        window = _active_window(criteria.active_duration)
        if window is None:
            keep = False
        else:
            cutoff = (now or utc_now()) - window
            keep = _as_utc(artifact.created_at) < cutoff

    if keep and criteria.pattern is not None:
        rx = _compiled_pattern(criteria.pattern)
        keep = rx is not None and rx.search(artifact.name) is not None

    return keep


def filter_batch(
    artifacts: Iterable[ArtifactLike] | None,
    criteria: FilterCriteria,
    *,
    now: datetime | None = None,
) -> list:
    """Apply `evaluate` to each artifact, keeping input order."""
    if not artifacts:
        return []

    at = now or utc_now()
    kept = []
    for a in artifacts:
        match = evaluate(a, criteria, now=at)
        log.debug(
            "filter.evaluated",
            artifact=a.name,
            size=a.size_in_bytes,
            match=match,
        )
        if match:
            kept.append(a)
    return kept
