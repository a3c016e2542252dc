from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Optional

import structlog

from delete_artifacts.core.config import DEFAULT_PAGE_SIZE, DEFAULT_PAGE_TIMEOUT_S
from delete_artifacts.core.errors import RetrievalError
from delete_artifacts.github.models import Artifact
from delete_artifacts.github.repository import ArtifactRepository

log = structlog.get_logger(__name__)


@dataclass(frozen=True, slots=True)
class PageFetcher:
    """
    Fetch single pages of artifacts for one owner/repo.

    With `run_id` set the listing is scoped to that workflow run, otherwise it
    spans every run in the repository.
    """

    repository: ArtifactRepository
    owner: str
    repo: str
    run_id: Optional[int] = None
    page_size: int = DEFAULT_PAGE_SIZE
    timeout_s: float = DEFAULT_PAGE_TIMEOUT_S

    async def fetch_page(self, page: int) -> list[Artifact]:
        try:
            async with asyncio.timeout(self.timeout_s):
                if self.run_id is not None:
                    log.debug("fetch.page", page=page, run_id=self.run_id)
                    items = await self.repository.list_artifacts_for_run(
                        self.owner,
                        self.repo,
                        self.run_id,
                        page=page,
                        per_page=self.page_size,
                    )
                else:
                    log.debug("fetch.page", page=page, scope="all-runs")
                    items = await self.repository.list_artifacts(
                        self.owner, self.repo, page=page, per_page=self.page_size
                    )
        except TimeoutError as e:
            raise RetrievalError(
                f"page {page} timed out after {self.timeout_s:g}s", page=page
            ) from e
        except RetrievalError:
            raise
        except Exception as e:
            raise RetrievalError(f"page {page} failed: {e}", page=page) from e

        if not items:
            log.debug("fetch.page_empty", page=page)
        return list(items)
