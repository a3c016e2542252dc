from __future__ import annotations

import asyncio
from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Any, Optional

from delete_artifacts.core import (
    ILogger,
    PreconditionError,
    SweepCancelled,
    format_duration_ms,
    get_logger,
    monotonic_ms,
    new_run_id,
)
from delete_artifacts.core.config import (
    DEFAULT_PAGE_SIZE,
    DEFAULT_PAGE_TIMEOUT_S,
    DEFAULT_RUN_TIMEOUT_S,
)
from delete_artifacts.github.repository import ArtifactRepository

from .coordinator import Coordinator
from .deleter import Deleter, DeletionOutcome, DeletionStatus
from .fetcher import PageFetcher
from .filters import FilterCriteria, report_problem


@dataclass(frozen=True, slots=True)
class SweepRequest:
    owner: str
    repo: str
    criteria: FilterCriteria = field(default_factory=FilterCriteria)
    run_id: Optional[int] = None
    dry_run: bool = False
    strict_filters: bool = False


@dataclass(slots=True)
class RunnerConfig:
    page_size: int = DEFAULT_PAGE_SIZE
    page_timeout_s: float = DEFAULT_PAGE_TIMEOUT_S
    run_timeout_s: float = DEFAULT_RUN_TIMEOUT_S


@dataclass(slots=True)
class SweepReport:
    run_id: str
    owner: str
    repo: str
    workflow_run_id: Optional[int]
    dry_run: bool
    duration_ms: int = 0
    pages_fetched: int = 0
    evaluated: int = 0
    retained: int = 0
    retained_bytes: int = 0
    outcomes: list[DeletionOutcome] = field(default_factory=list)

    def count(self, status: DeletionStatus) -> int:
        return sum(1 for o in self.outcomes if o.status is status)

    @property
    def deleted(self) -> int:
        return self.count(DeletionStatus.DELETED)

    @property
    def skipped(self) -> int:
        return self.count(DeletionStatus.DRY_RUN_SKIPPED)

    @property
    def failed(self) -> int:
        return self.count(DeletionStatus.DELETE_FAILED)

    def to_dict(self) -> dict[str, Any]:
        d = asdict(self)
        d["deleted"] = self.deleted
        d["skipped"] = self.skipped
        d["failed"] = self.failed
        return d


def check_preconditions(owner: str | None, repo: str | None) -> None:
    if owner is None or len(owner) <= 1:
        raise PreconditionError("owner is invalid")
    if repo is None or len(repo) <= 1:
        raise PreconditionError("repo is invalid")


class SweepRunner:
    """
    One retrieve-filter-delete cycle against a single repository.
    """

    def __init__(
        self,
        repository: ArtifactRepository,
        *,
        cfg: RunnerConfig | None = None,
        logger: ILogger | None = None,
    ) -> None:
        self.repository = repository
        self.cfg = cfg or RunnerConfig()
        self.logger: ILogger = logger or get_logger("delete_artifacts")

    async def run(
        self,
        request: SweepRequest,
        *,
        run_id: str | None = None,
        now: datetime | None = None,
    ) -> SweepReport:
        check_preconditions(request.owner, request.repo)

        problems = request.criteria.problems()
        for p in problems:
            report_problem(p)
        if problems and request.strict_filters:
            raise problems[0]

        rid = run_id or new_run_id()
        log = self.logger.bind(owner=request.owner, repo=request.repo)
        log.info("delete-artifacts is checking the repo", run_id=rid, dry_run=request.dry_run)

        t0 = monotonic_ms()
        # one deadline bounds retrieval and deletion together
        deadline = asyncio.get_running_loop().time() + self.cfg.run_timeout_s
        fetcher = PageFetcher(
            repository=self.repository,
            owner=request.owner,
            repo=request.repo,
            run_id=request.run_id,
            page_size=self.cfg.page_size,
            timeout_s=self.cfg.page_timeout_s,
        )
        coordinator = Coordinator(
            fetcher,
            request.criteria,
            timeout_s=self.cfg.run_timeout_s,
            deadline=deadline,
            now=now,
        )
        retrieval = await coordinator.run()

        log.debug("Total number of artifacts to delete.", count=len(retrieval.retained))

        deleter = Deleter(self.repository, owner=request.owner, repo=request.repo)
        try:
            outcomes = await deleter.apply(
                retrieval.retained, dry_run=request.dry_run, deadline=deadline
            )
        except asyncio.CancelledError:
            log.warning("deletion.cancelled")
            raise SweepCancelled("deletion cancelled") from None

        duration = monotonic_ms() - t0
        report = SweepReport(
            run_id=rid,
            owner=request.owner,
            repo=request.repo,
            workflow_run_id=request.run_id,
            dry_run=request.dry_run,
            duration_ms=duration,
            pages_fetched=retrieval.pages_fetched,
            evaluated=retrieval.evaluated,
            retained=len(retrieval.retained),
            retained_bytes=sum(a.size_in_bytes for a in retrieval.retained),
            outcomes=outcomes,
        )

        log.info(
            "Run complete",
            duration=format_duration_ms(duration),
            pages=report.pages_fetched,
            evaluated=report.evaluated,
            retained=report.retained,
            deleted=report.deleted,
            skipped=report.skipped,
            failed=report.failed,
        )
        return report
