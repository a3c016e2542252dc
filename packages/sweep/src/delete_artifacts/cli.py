from __future__ import annotations

import argparse
import asyncio
import contextlib
import os
import signal
from dataclasses import dataclass
from typing import Optional

import httpx
from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from delete_artifacts import __version__
from delete_artifacts.core import (
    DeleteArtifactsError,
    ILogger,
    PreconditionError,
    RetrievalTimeout,
    Settings,
    SweepCancelled,
    bind,
    configure_logging,
    format_duration_ms,
    get_logger,
    load_settings,
    new_run_id,
)
from delete_artifacts.github import GitHubArtifactRepository, make_http_client
from delete_artifacts.sweep import (
    DeletionStatus,
    FilterCriteria,
    RunnerConfig,
    SweepReport,
    SweepRequest,
    SweepRunner,
    check_preconditions,
)

console = Console(stderr=True)

DEFAULT_MIN_BYTES = 50_000_000

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_CANCELLED = 130


@dataclass(frozen=True, slots=True)
class _Args:
    owner: Optional[str]
    repo: Optional[str]
    run_id: Optional[int]
    min_bytes: int
    max_bytes: Optional[int]
    name: str
    pattern: str
    active: str
    dry_run: bool
    strict_filters: bool


def _build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="delete-artifacts",
        description="Delete GitHub Actions artifacts matching a set of filters.",
    )
    p.add_argument(
        "-o",
        "--owner",
        default=os.environ.get("GITHUB_ACTOR"),
        help="GitHub Owner/Org name [$GITHUB_ACTOR]",
    )
    p.add_argument(
        "-r",
        "--repo",
        default=os.environ.get("GITHUB_REPO"),
        help="GitHub Repo name [$GITHUB_REPO]",
    )
    p.add_argument(
        "-i",
        "--run-id",
        type=int,
        default=None,
        help="The workflow run id from which to delete artifacts",
    )
    p.add_argument(
        "--min",
        dest="min_bytes",
        type=int,
        default=DEFAULT_MIN_BYTES,
        help="Minimum size in bytes. Artifacts greater than this size will be deleted. (default: %(default)s)",
    )
    p.add_argument(
        "--max",
        dest="max_bytes",
        type=int,
        default=None,
        help="Maximum size in bytes. Artifacts less than this size will be deleted",
    )
    p.add_argument("-n", "--name", default="", help="Artifact name to be deleted")
    p.add_argument(
        "-p",
        "--pattern",
        default="",
        help="Regex pattern (POSIX) for matching artifact name to be deleted",
    )
    p.add_argument(
        "-a",
        "--active",
        default="",
        help=(
            "Consider artifacts as 'active' within this time frame, and avoid deletion. "
            "Duration formatted such as 23h59m."
        ),
    )
    p.add_argument(
        "--dry-run", action="store_true", help="Dry-run that does not perform deletions"
    )
    p.add_argument(
        "--strict-filters",
        action="store_true",
        help="Fail the run when a pattern or duration is malformed instead of matching nothing",
    )
    p.add_argument(
        "-v",
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
        help="Display version information",
    )
    return p


def _args(ns: argparse.Namespace) -> _Args:
    return _Args(
        owner=ns.owner,
        repo=ns.repo,
        run_id=ns.run_id,
        min_bytes=int(ns.min_bytes),
        max_bytes=ns.max_bytes,
        name=str(ns.name),
        pattern=str(ns.pattern),
        active=str(ns.active),
        dry_run=bool(ns.dry_run),
        strict_filters=bool(ns.strict_filters),
    )


def _request(a: _Args) -> SweepRequest:
    check_preconditions(a.owner, a.repo)
    return SweepRequest(
        owner=str(a.owner),
        repo=str(a.repo),
        run_id=a.run_id,
        dry_run=a.dry_run,
        strict_filters=a.strict_filters,
        criteria=FilterCriteria(
            min_bytes=a.min_bytes,
            max_bytes=a.max_bytes,
            name=a.name,
            pattern=a.pattern,
            active_duration=a.active,
        ),
    )


def _cancel_on_sigterm() -> None:
    task = asyncio.current_task()
    if task is None:
        return
    # SIGINT is already routed to the main task by asyncio.run
    with contextlib.suppress(NotImplementedError, RuntimeError):
        asyncio.get_running_loop().add_signal_handler(signal.SIGTERM, task.cancel)


async def _sweep(
    s: Settings,
    request: SweepRequest,
    *,
    run_id: str,
    logger: ILogger,
    transport: httpx.AsyncBaseTransport | None = None,
) -> SweepReport:
    _cancel_on_sigterm()
    token = s.github_token.get_secret_value() if s.github_token else None
    async with make_http_client(
        base_url=s.api_url,
        token=token,
        timeout=httpx.Timeout(s.page_timeout_s, connect=5.0, pool=5.0),
        user_agent=f"delete-artifacts/{__version__}",
        transport=transport,
    ) as client:
        runner = SweepRunner(
            GitHubArtifactRepository(client, max_attempts=s.max_attempts),
            cfg=RunnerConfig(
                page_size=s.page_size,
                page_timeout_s=s.page_timeout_s,
                run_timeout_s=s.run_timeout_s,
            ),
            logger=logger,
        )
        return await runner.run(request, run_id=run_id)


def _print_report(report: SweepReport) -> None:
    if report.outcomes:
        items = Table(title="Artifacts", show_header=True)
        items.add_column("ID", justify="right")
        items.add_column("Name", style="cyan")
        items.add_column("Size", justify="right")
        items.add_column("Status")
        for o in report.outcomes:
            style = {
                DeletionStatus.DELETED: "green",
                DeletionStatus.DRY_RUN_SKIPPED: "yellow",
                DeletionStatus.DELETE_FAILED: "red",
            }[o.status]
            items.add_row(
                str(o.artifact_id),
                o.name,
                f"{o.size_in_bytes:,}",
                f"[{style}]{o.status.value}[/{style}]",
            )
        console.print(items)

    tbl = Table(title="Result", show_header=False, box=None)
    tbl.add_row("status", "[green]ok[/green]" if report.failed == 0 else "[yellow]partial[/yellow]")
    tbl.add_row("pages", str(report.pages_fetched))
    tbl.add_row("evaluated", str(report.evaluated))
    tbl.add_row("retained", f"{report.retained} ({report.retained_bytes:,} bytes)")
    if report.dry_run:
        tbl.add_row("would delete", str(report.skipped))
    else:
        tbl.add_row("deleted", str(report.deleted))
        tbl.add_row("failed", str(report.failed))
    tbl.add_row("duration", format_duration_ms(report.duration_ms))
    console.print(tbl)


def main(argv: list[str] | None = None) -> int:
    args = _args(_build_parser().parse_args(argv))

    s = load_settings()
    configure_logging(level=s.log_level, fmt=s.log_format)
    log = get_logger("delete_artifacts")

    run_id = new_run_id()
    bind(run_id=run_id)

    try:
        request = _request(args)
        if s.github_token is None:
            raise PreconditionError("GITHUB_TOKEN environment variable is missing")
    except DeleteArtifactsError as e:
        log.error("unable to construct application with specific parameters.", error=str(e))
        console.print(f"[red]error[/red]: {e}")
        return EXIT_FAILED

    bind(owner=request.owner, repo=request.repo)
    console.print(
        Panel.fit(
            Text(
                f"delete-artifacts {__version__}\n{request.owner}/{request.repo}"
                + (" (dry run)" if request.dry_run else ""),
                style="bold",
            ),
            title="Run",
        )
    )

    try:
        report = asyncio.run(_sweep(s, request, run_id=run_id, logger=log))
    except RetrievalTimeout as e:
        log.error("execution failed.", error=str(e), error_type=type(e).__name__)
        console.print(f"[red]error[/red]: {e}")
        return EXIT_FAILED
    except (SweepCancelled, KeyboardInterrupt) as e:
        log.warning("Received interrupt, stopping without further deletions.", reason=str(e) or None)
        return EXIT_CANCELLED
    except DeleteArtifactsError as e:
        log.error("execution failed.", error=str(e), error_type=type(e).__name__)
        console.print(f"[red]error[/red]: {e}")
        return EXIT_FAILED

    _print_report(report)
    return EXIT_OK


if __name__ == "__main__":
    raise SystemExit(main())
