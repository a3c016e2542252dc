"""
Concurrent paginated retrieval.

Each fetch task owns one page until it hands the result to the coordinator
through a single fan-in queue. The coordinating coroutine is the only reader
of that queue and the only writer of the retrieval state (outstanding count,
retained artifacts, counters), so no locks are involved.

The outstanding count is incremented before a task is launched and
decremented when that task's message is consumed. A non-empty page launches
the fetch for the next page before its own task is counted down, so the
count only reaches zero once every page of the chain has been seen.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from datetime import datetime
from typing import Union

import structlog

from delete_artifacts.core.config import DEFAULT_RUN_TIMEOUT_S
from delete_artifacts.core.errors import RetrievalError, RetrievalTimeout, SweepCancelled
from delete_artifacts.core.time import utc_now
from delete_artifacts.github.models import Artifact

from .fetcher import PageFetcher
from .filters import FilterCriteria, filter_batch

log = structlog.get_logger(__name__)


@dataclass(frozen=True, slots=True)
class _PageBatch:
    page: int
    artifacts: list[Artifact]


@dataclass(frozen=True, slots=True)
class _PageFailed:
    page: int
    error: RetrievalError


_Message = Union[_PageBatch, _PageFailed]


@dataclass(slots=True)
class RetrievalResult:
    retained: list[Artifact] = field(default_factory=list)
    pages_fetched: int = 0
    evaluated: int = 0


@dataclass(slots=True)
class _RetrievalState:
    outstanding: int = 0
    result: RetrievalResult = field(default_factory=RetrievalResult)


class Coordinator:
    def __init__(
        self,
        fetcher: PageFetcher,
        criteria: FilterCriteria,
        *,
        timeout_s: float = DEFAULT_RUN_TIMEOUT_S,
        deadline: float | None = None,
        now: datetime | None = None,
    ) -> None:
        self.fetcher = fetcher
        self.criteria = criteria
        self.timeout_s = timeout_s
        # absolute event loop time, takes precedence over timeout_s
        self.deadline = deadline
        self._now = now

    async def run(self) -> RetrievalResult:
        """
        Fetch every page, filter as batches arrive, return the retained set.

        Raises RetrievalError on the first failed page, RetrievalTimeout when
        the overall deadline expires and SweepCancelled when the surrounding
        task is cancelled. In every case outstanding fetches are cancelled
        before returning.
        """
        inbox: asyncio.Queue[_Message] = asyncio.Queue()
        tasks: set[asyncio.Task[None]] = set()
        state = _RetrievalState()
        now = self._now or utc_now()
        deadline = self.deadline
        if deadline is None:
            deadline = asyncio.get_running_loop().time() + self.timeout_s

        def launch(page: int) -> None:
            state.outstanding += 1
            task = asyncio.create_task(
                self._fetch_into(page, inbox), name=f"fetch-page-{page}"
            )
            tasks.add(task)
            task.add_done_callback(tasks.discard)

        try:
            async with asyncio.timeout_at(deadline):
                launch(1)
                while state.outstanding > 0:
                    msg = await inbox.get()
                    if isinstance(msg, _PageFailed):
                        raise msg.error
                    self._absorb(state, msg, now)
                    if msg.artifacts:
                        launch(msg.page + 1)
                    state.outstanding -= 1

        except TimeoutError as e:
            log.error(
                "retrieval.timeout",
                timeout_s=self.timeout_s,
                outstanding=state.outstanding,
                pages_fetched=state.result.pages_fetched,
            )
            raise RetrievalTimeout(
                f"retrieval did not finish within {self.timeout_s:g}s"
            ) from e

        except asyncio.CancelledError:
            log.warning("retrieval.cancelled", outstanding=state.outstanding)
            raise SweepCancelled("retrieval cancelled") from None

        finally:
            await _cancel_all(tasks)

        log.debug(
            "retrieval.done",
            pages_fetched=state.result.pages_fetched,
            evaluated=state.result.evaluated,
            retained=len(state.result.retained),
        )
        return state.result

    def _absorb(self, state: _RetrievalState, batch: _PageBatch, now: datetime) -> None:
        state.result.pages_fetched += 1
        if not batch.artifacts:
            return
        state.result.evaluated += len(batch.artifacts)
        kept = filter_batch(batch.artifacts, self.criteria, now=now)
        if kept:
            log.debug("retrieval.batch_matched", page=batch.page, count=len(kept))
            state.result.retained.extend(kept)

    async def _fetch_into(self, page: int, inbox: asyncio.Queue[_Message]) -> None:
        try:
            items = await self.fetcher.fetch_page(page)
        except RetrievalError as e:
            inbox.put_nowait(_PageFailed(page=page, error=e))
            return
        except Exception as e:
            err = RetrievalError(f"page {page} failed: {e}", page=page)
            err.__cause__ = e
            inbox.put_nowait(_PageFailed(page=page, error=err))
            return
        inbox.put_nowait(_PageBatch(page=page, artifacts=items))


async def _cancel_all(tasks: set[asyncio.Task[None]]) -> None:
    pending = [t for t in tasks if not t.done()]
    for t in pending:
        t.cancel()
    if pending:
        await asyncio.gather(*pending, return_exceptions=True)
