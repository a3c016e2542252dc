from __future__ import annotations

import asyncio
from datetime import datetime, timedelta, timezone

import pytest
from delete_artifacts.github.models import Artifact

NOW = datetime(2024, 6, 1, 12, 0, 0, tzinfo=timezone.utc)

_next_id = iter(range(1, 1_000_000))


def make_artifact(
    name: str = "artifact",
    size: int = 100,
    *,
    age: timedelta = timedelta(hours=1),
    artifact_id: int | None = None,
) -> Artifact:
    return Artifact(
        id=artifact_id if artifact_id is not None else next(_next_id),
        name=name,
        size_in_bytes=size,
        created_at=NOW - age,
    )


class FakeRepository:
    """
    In-memory ArtifactRepository.

    `pages` maps page number to artifacts; missing pages are empty.
    `fail_pages` maps page number to the exception raised for it.
    """

    def __init__(
        self,
        pages: dict[int, list[Artifact]] | None = None,
        *,
        fail_pages: dict[int, Exception] | None = None,
        fail_deletes: set[int] | None = None,
        delay_s: float = 0.0,
        hang_pages: set[int] | None = None,
        delete_delay_s: float = 0.0,
    ) -> None:
        self.pages = pages or {}
        self.fail_pages = fail_pages or {}
        self.fail_deletes = fail_deletes or set()
        self.delay_s = delay_s
        self.hang_pages = hang_pages or set()
        self.delete_delay_s = delete_delay_s
        self.list_calls: list[tuple[str, int | None, int, int]] = []
        self.deleted: list[int] = []
        self.delete_calls = 0
        self.cancelled_pages: list[int] = []

    async def _page(self, page: int) -> list[Artifact]:
        try:
            if page in self.hang_pages:
                await asyncio.sleep(3600)
            if self.delay_s:
                await asyncio.sleep(self.delay_s)
        except asyncio.CancelledError:
            self.cancelled_pages.append(page)
            raise
        if page in self.fail_pages:
            raise self.fail_pages[page]
        return list(self.pages.get(page, []))

    async def list_artifacts(self, owner, repo, *, page, per_page):
        self.list_calls.append(("repo", None, page, per_page))
        return await self._page(page)

    async def list_artifacts_for_run(self, owner, repo, run_id, *, page, per_page):
        self.list_calls.append(("run", run_id, page, per_page))
        return await self._page(page)

    async def delete_artifact(self, owner, repo, artifact_id):
        self.delete_calls += 1
        if self.delete_delay_s:
            await asyncio.sleep(self.delete_delay_s)
        if artifact_id in self.fail_deletes:
            raise RuntimeError(f"HTTP 500 deleting {artifact_id}")
        self.deleted.append(artifact_id)


def full_pages(count: int, per_page: int = 100, size: int = 100) -> dict[int, list[Artifact]]:
    return {
        p: [make_artifact(f"build-{p}-{i}.bin", size) for i in range(per_page)]
        for p in range(1, count + 1)
    }


@pytest.fixture
def now() -> datetime:
    return NOW
