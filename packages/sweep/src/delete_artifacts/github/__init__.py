from .http import (
    HttpFetchError,
    HttpRetriesExceeded,
    HttpStatusError,
    make_http_client,
    request_with_retries,
)
from .models import Artifact, ArtifactPage, WorkflowRunRef
from .repository import ArtifactApiError, ArtifactRepository, GitHubArtifactRepository

__all__ = [
    "Artifact",
    "ArtifactApiError",
    "ArtifactPage",
    "ArtifactRepository",
    "GitHubArtifactRepository",
    "HttpFetchError",
    "HttpRetriesExceeded",
    "HttpStatusError",
    "WorkflowRunRef",
    "make_http_client",
    "request_with_retries",
]
