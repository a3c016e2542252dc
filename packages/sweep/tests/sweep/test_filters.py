from __future__ import annotations

import re
from datetime import timedelta

import pytest
from conftest import NOW, make_artifact
from delete_artifacts.core.errors import FilterConfigError
from delete_artifacts.sweep import filters
from delete_artifacts.sweep.filters import (
    FilterCriteria,
    compile_posix,
    evaluate,
    filter_batch,
)


@pytest.mark.parametrize(
    ("min_bytes", "size", "want"),
    [
        (100, 100, True),
        (100, 200, True),
        (100, 50, False),
        (0, 0, True),
    ],
)
def test_min_bytes(min_bytes: int, size: int, want: bool) -> None:
    a = make_artifact(size=size)
    assert evaluate(a, FilterCriteria(min_bytes=min_bytes), now=NOW) is want


def test_unset_min_bytes_behaves_as_zero() -> None:
    assert evaluate(make_artifact(size=0), FilterCriteria(), now=NOW)
    assert FilterCriteria(min_bytes=None).min_bytes == 0  # type: ignore[arg-type]


@pytest.mark.parametrize(
    ("size", "want"),
    [(150, True), (200, True), (201, False), (50, False)],
)
def test_max_bytes(size: int, want: bool) -> None:
    c = FilterCriteria(min_bytes=100, max_bytes=200)
    assert evaluate(make_artifact(size=size), c, now=NOW) is want


def test_size_below_min_never_retained_whatever_else_is_set() -> None:
    a = make_artifact("old.bin", 10, age=timedelta(days=30))
    c = FilterCriteria(
        min_bytes=11, max_bytes=1000, name="old.bin", pattern="bin", active_duration="1h"
    )
    assert not evaluate(a, c, now=NOW)


def test_exact_name_is_case_sensitive_full_match() -> None:
    c = FilterCriteria(name="my-artifact")
    assert evaluate(make_artifact("my-artifact"), c, now=NOW)
    assert not evaluate(make_artifact("my-artifact-extra"), c, now=NOW)
    assert not evaluate(make_artifact("My-Artifact"), c, now=NOW)
    assert not evaluate(make_artifact("prefix-my-artifact"), c, now=NOW)


def test_empty_strings_mean_unset() -> None:
    c = FilterCriteria(name="", pattern="", active_duration="")
    assert c.name is None and c.pattern is None and c.active_duration is None
    assert evaluate(make_artifact("anything"), c, now=NOW)


def test_active_duration_protects_recent_artifacts() -> None:
    c = FilterCriteria(active_duration="24h")
    assert evaluate(make_artifact(age=timedelta(hours=25)), c, now=NOW)
    assert not evaluate(make_artifact(age=timedelta(hours=23)), c, now=NOW)
    # exactly on the cutoff is still "active"
    assert not evaluate(make_artifact(age=timedelta(hours=24)), c, now=NOW)


def test_active_duration_missing_created_at_counts_as_old() -> None:
    a = make_artifact().model_copy(update={"created_at": None})
    assert evaluate(a, FilterCriteria(active_duration="1h"), now=NOW)


@pytest.mark.parametrize("duration", ["0", "0s", "-1h", "-30m", "abc", "10", "1d", "h"])
def test_bad_or_non_positive_duration_rejects_everything(duration: str) -> None:
    c = FilterCriteria(active_duration=duration)
    artifacts = [make_artifact(age=timedelta(days=365)), make_artifact(age=timedelta(0))]
    assert filter_batch(artifacts, c, now=NOW) == []


def test_pattern_search_is_unanchored() -> None:
    c = FilterCriteria(pattern="cov")
    assert evaluate(make_artifact("coverage-report"), c, now=NOW)
    assert evaluate(make_artifact("unit-coverage"), c, now=NOW)
    assert not evaluate(make_artifact("logs"), c, now=NOW)


def test_pattern_anchors() -> None:
    c = FilterCriteria(pattern=r"\.bin$")
    assert evaluate(make_artifact("build.bin"), c, now=NOW)
    assert not evaluate(make_artifact("build.bin.txt"), c, now=NOW)


@pytest.mark.parametrize("pattern", ["[unclosed", "(a", r"\d+", "(?=x)", "a*?", r"\w"])
def test_unparsable_pattern_rejects_everything_without_raising(pattern: str) -> None:
    c = FilterCriteria(pattern=pattern)
    artifacts = [make_artifact("a1"), make_artifact("xxx"), make_artifact("[unclosed")]
    assert filter_batch(artifacts, c, now=NOW) == []


def test_bad_pattern_reported_once(monkeypatch: pytest.MonkeyPatch) -> None:
    events: list[str] = []

    class _Recorder:
        def error(self, event: str, **kw: object) -> None:
            events.append(event)

        def debug(self, event: str, **kw: object) -> None:
            pass

    monkeypatch.setattr(filters, "log", _Recorder())
    c = FilterCriteria(pattern="[reported-once-only")
    filter_batch([make_artifact("x") for _ in range(5)], c, now=NOW)
    filter_batch([make_artifact("y") for _ in range(5)], c, now=NOW)
    assert events == ["filter.pattern_invalid"]


def test_bad_pattern_not_compiled_when_size_check_fails(monkeypatch: pytest.MonkeyPatch) -> None:
    calls: list[str] = []
    monkeypatch.setattr(filters, "_compiled_pattern", lambda p: calls.append(p))
    c = FilterCriteria(min_bytes=1000, pattern="[broken")
    assert not evaluate(make_artifact(size=10), c, now=NOW)
    assert calls == []


def test_evaluate_is_pure() -> None:
    a = make_artifact("report.zip", 500, age=timedelta(days=2))
    c = FilterCriteria(min_bytes=100, max_bytes=1000, pattern="zip$", active_duration="1h")
    assert evaluate(a, c, now=NOW) == evaluate(a, c, now=NOW) is True


def test_batch_preserves_order_and_count() -> None:
    a = make_artifact("a.bin", 100)
    b = make_artifact("b.txt", 100)
    c = make_artifact("c.bin", 1)
    d = make_artifact("d.txt", 1)
    e = make_artifact("e.bin", 150)
    crit = FilterCriteria(min_bytes=50, pattern=r"\.bin$")
    assert filter_batch([a, b, c, d, e], crit, now=NOW) == [a, e]


@pytest.mark.parametrize("artifacts", [None, []])
def test_batch_empty_input(artifacts) -> None:
    assert filter_batch(artifacts, FilterCriteria(), now=NOW) == []


def test_end_to_end_size_and_pattern_scenario() -> None:
    items = [
        make_artifact("one.bin", 100),
        make_artifact("two.txt", 100),
        make_artifact("three.bin", 10),
        make_artifact("four.bin", 300),
        make_artifact("five.bin", 150),
    ]
    crit = FilterCriteria(min_bytes=50, max_bytes=200, pattern=r"\.bin$")
    assert filter_batch(items, crit, now=NOW) == [items[0], items[4]]


@pytest.mark.parametrize(
    ("pattern", "name", "want"),
    [
        ("^build-[[:digit:]]+$", "build-42", True),
        ("^build-[[:digit:]]+$", "build-x", False),
        ("[[:upper:]]", "lower", False),
        ("[]x]", "]", True),
        ("[^]x]", "]", False),
        ("a|b", "b", True),
        ("(ab)+c", "ababc", True),
        (r"\.", "a.b", True),
        ("x{2,3}", "axxb", True),
    ],
)
def test_compile_posix_supported_syntax(pattern: str, name: str, want: bool) -> None:
    assert (compile_posix(pattern).search(name) is not None) is want


@pytest.mark.parametrize(
    "pattern",
    [r"\d", r"\s", r"\b", "(?:a)", "(?P<n>a)", "(?i)a", "(?!a)", "a+?", "a*+", r"\1", "[[:nope:]]", "a\\"],
)
def test_compile_posix_rejects_perl_syntax(pattern: str) -> None:
    with pytest.raises(re.error):
        compile_posix(pattern)


def test_problems_lists_every_misconfiguration() -> None:
    c = FilterCriteria(min_bytes=100, max_bytes=10, pattern="(", active_duration="-1h")
    problems = c.problems()
    assert all(isinstance(p, FilterConfigError) for p in problems)
    assert sorted(p.criterion for p in problems) == ["active_duration", "max_bytes", "pattern"]


def test_problems_empty_for_valid_criteria() -> None:
    c = FilterCriteria(min_bytes=1, max_bytes=10, pattern="^x", active_duration="1h30m")
    assert c.problems() == []


def test_negative_min_bytes_matches_everything_and_is_not_a_problem() -> None:
    c = FilterCriteria(min_bytes=-1)
    assert c.problems() == []
    assert evaluate(make_artifact(size=0), c, now=NOW)
