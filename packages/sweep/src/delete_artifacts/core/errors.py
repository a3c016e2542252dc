from __future__ import annotations


class DeleteArtifactsError(RuntimeError):
    """Base error"""


class PreconditionError(DeleteArtifactsError):
    """
    Invalid input detected before any network activity
    (owner/repo too short, missing token)
    """


class RetrievalError(DeleteArtifactsError):
    """
    A page fetch failed. Fatal to the run: the first one wins and no
    deletion is attempted.
    """

    def __init__(self, message: str, *, page: int | None = None) -> None:
        super().__init__(message)
        self.page = page


class FilterConfigError(DeleteArtifactsError):
    """
    Malformed filter configuration (regex or duration). The affected
    criterion rejects every artifact; the run continues.
    """

    def __init__(self, message: str, *, criterion: str, value: object) -> None:
        super().__init__(message)
        self.criterion = criterion
        self.value = value


class DeletionError(DeleteArtifactsError):
    """Deleting a single artifact failed. Recorded, never escalated."""

    def __init__(self, message: str, *, artifact_id: int) -> None:
        super().__init__(message)
        self.artifact_id = artifact_id


class SweepCancelled(DeleteArtifactsError):
    """Operator interrupt; partial results are discarded"""


class RetrievalTimeout(SweepCancelled):
    """The overall run deadline expired while fetches were outstanding"""
