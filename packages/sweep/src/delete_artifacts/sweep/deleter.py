from __future__ import annotations

import asyncio
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Sequence

import structlog

from delete_artifacts.core.errors import DeletionError
from delete_artifacts.github.models import Artifact
from delete_artifacts.github.repository import ArtifactRepository

log = structlog.get_logger(__name__)


class DeletionStatus(str, Enum):
    DELETED = "deleted"
    DRY_RUN_SKIPPED = "dry-run-skipped"
    DELETE_FAILED = "delete-failed"


@dataclass(frozen=True, slots=True)
class DeletionOutcome:
    artifact_id: int
    name: str
    size_in_bytes: int
    status: DeletionStatus
    reason: Optional[str] = None


class Deleter:
    """
    Delete (or pretend to delete) the retained artifacts one at a time.

    Sequential on purpose: one request in flight keeps the API load low and
    makes every failure attributable to exactly one artifact.

    With a `deadline` (absolute event loop time) each delete is bounded by
    it; deletes cut off by it, or not started before it, are recorded as
    failed and the batch carries on.
    """

    def __init__(self, repository: ArtifactRepository, *, owner: str, repo: str) -> None:
        self.repository = repository
        self.owner = owner
        self.repo = repo

    async def apply(
        self,
        artifacts: Sequence[Artifact],
        *,
        dry_run: bool,
        deadline: float | None = None,
    ) -> list[DeletionOutcome]:
        if not artifacts:
            log.info("No artifacts to delete!")
            return []

        log.debug("delete.plan", count=len(artifacts), dry_run=dry_run)

        if dry_run:
            out = []
            for a in artifacts:
                log.warning(
                    "DryRun: would have deleted the artifact",
                    artifact_id=a.id,
                    name=a.name,
                    size=a.size_in_bytes,
                )
                out.append(_outcome(a, DeletionStatus.DRY_RUN_SKIPPED))
            return out

        outcomes: list[DeletionOutcome] = []
        for a in artifacts:
            log.info("Deleting artifact", artifact_id=a.id, name=a.name, size=a.size_in_bytes)
            try:
                await self._delete_one(a, deadline)
            except DeletionError as e:
                log.warning(
                    "Error deleting artifact, ignoring",
                    artifact_id=a.id,
                    name=a.name,
                    error=str(e),
                )
                outcomes.append(_outcome(a, DeletionStatus.DELETE_FAILED, reason=str(e)))
                continue
            outcomes.append(_outcome(a, DeletionStatus.DELETED))
        return outcomes

    async def _delete_one(self, artifact: Artifact, deadline: float | None) -> None:
        try:
            if deadline is None:
                await self.repository.delete_artifact(self.owner, self.repo, artifact.id)
                return
            if asyncio.get_running_loop().time() >= deadline:
                raise TimeoutError
            async with asyncio.timeout_at(deadline):
                await self.repository.delete_artifact(self.owner, self.repo, artifact.id)
        except TimeoutError as e:
            raise DeletionError(
                f"failed to delete {artifact.name} (artifact ID {artifact.id}): deadline exceeded",
                artifact_id=artifact.id,
            ) from e
        except Exception as e:
            raise DeletionError(
                f"failed to delete {artifact.name} (artifact ID {artifact.id}): {e}",
                artifact_id=artifact.id,
            ) from e


def _outcome(
    a: Artifact, status: DeletionStatus, *, reason: str | None = None
) -> DeletionOutcome:
    return DeletionOutcome(
        artifact_id=a.id,
        name=a.name,
        size_in_bytes=a.size_in_bytes,
        status=status,
        reason=reason,
    )
