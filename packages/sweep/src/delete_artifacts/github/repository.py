from __future__ import annotations

from typing import Protocol, runtime_checkable

import httpx
import structlog
from pydantic import ValidationError

from .http import HttpFetchError, request_with_retries
from .models import Artifact, ArtifactPage

log = structlog.get_logger(__name__)


class ArtifactApiError(HttpFetchError):
    """The API answered with something that is not an artifact listing."""


@runtime_checkable
class ArtifactRepository(Protocol):
    """
    The three operations the sweep needs from the remote API.

    Implementations must be safe for concurrent use by several fetch tasks.
    """

    async def list_artifacts(
        self, owner: str, repo: str, *, page: int, per_page: int
    ) -> list[Artifact]: ...

    async def list_artifacts_for_run(
        self, owner: str, repo: str, run_id: int, *, page: int, per_page: int
    ) -> list[Artifact]: ...

    async def delete_artifact(self, owner: str, repo: str, artifact_id: int) -> None: ...


class GitHubArtifactRepository:
    """
    ArtifactRepository backed by the GitHub REST API.

    Transport-level retries (timeouts, 408/429/5xx) happen here; callers only
    see the final outcome.
    """

    def __init__(self, client: httpx.AsyncClient, *, max_attempts: int = 3) -> None:
        self._client = client
        self._max_attempts = max_attempts

    async def list_artifacts(
        self, owner: str, repo: str, *, page: int, per_page: int
    ) -> list[Artifact]:
        return await self._list(
            f"/repos/{owner}/{repo}/actions/artifacts", page=page, per_page=per_page
        )

    async def list_artifacts_for_run(
        self, owner: str, repo: str, run_id: int, *, page: int, per_page: int
    ) -> list[Artifact]:
        return await self._list(
            f"/repos/{owner}/{repo}/actions/runs/{run_id}/artifacts",
            page=page,
            per_page=per_page,
        )

    async def delete_artifact(self, owner: str, repo: str, artifact_id: int) -> None:
        await request_with_retries(
            self._client,
            method="DELETE",
            url=f"/repos/{owner}/{repo}/actions/artifacts/{artifact_id}",
            allowed_statuses=(204,),
            max_attempts=self._max_attempts,
        )

    async def _list(self, url: str, *, page: int, per_page: int) -> list[Artifact]:
        resp = await request_with_retries(
            self._client,
            method="GET",
            url=url,
            params={"page": page, "per_page": per_page},
            allowed_statuses=(200,),
            max_attempts=self._max_attempts,
        )
        try:
            listing = ArtifactPage.model_validate_json(resp.content)
        except ValidationError as e:
            raise ArtifactApiError(f"Unexpected artifact listing from {url}: {e}") from e

        log.debug(
            "artifacts.page",
            url=url,
            page=page,
            count=len(listing.artifacts),
            total_count=listing.total_count,
        )
        return listing.artifacts


__all__ = [
    "ArtifactApiError",
    "ArtifactRepository",
    "GitHubArtifactRepository",
]
