from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class WorkflowRunRef(BaseModel):
    model_config = ConfigDict(extra="ignore", frozen=True)

    id: Optional[int] = None
    repository_id: Optional[int] = None
    head_branch: Optional[str] = None
    head_sha: Optional[str] = None


class Artifact(BaseModel):
    """
    One GitHub Actions artifact as returned by the REST API.

    Only `id`, `name`, `size_in_bytes` and `created_at` drive filtering; the
    remaining fields are kept for logging and reporting.
    """

    model_config = ConfigDict(extra="ignore", frozen=True)

    id: int
    name: str
    size_in_bytes: int = Field(default=0, ge=0)
    created_at: Optional[datetime] = None
    node_id: Optional[str] = None
    url: Optional[str] = None
    archive_download_url: Optional[str] = None
    expired: bool = False
    updated_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None
    workflow_run: Optional[WorkflowRunRef] = None


class ArtifactPage(BaseModel):
    model_config = ConfigDict(extra="ignore")

    total_count: int = 0
    artifacts: list[Artifact] = Field(default_factory=list)
