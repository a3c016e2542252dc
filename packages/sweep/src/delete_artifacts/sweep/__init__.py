from .coordinator import Coordinator, RetrievalResult
from .deleter import Deleter, DeletionOutcome, DeletionStatus
from .fetcher import PageFetcher
from .filters import FilterCriteria, compile_posix, evaluate, filter_batch
from .runner import (
    RunnerConfig,
    SweepReport,
    SweepRequest,
    SweepRunner,
    check_preconditions,
)

__all__ = [
    "Coordinator",
    "RetrievalResult",
    "Deleter",
    "DeletionOutcome",
    "DeletionStatus",
    "PageFetcher",
    "FilterCriteria",
    "compile_posix",
    "evaluate",
    "filter_batch",
    "RunnerConfig",
    "SweepReport",
    "SweepRequest",
    "SweepRunner",
    "check_preconditions",
]
