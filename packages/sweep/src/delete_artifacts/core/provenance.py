from __future__ import annotations

import uuid
from importlib.metadata import PackageNotFoundError
from importlib.metadata import version as dist_version


def new_run_id() -> str:
    return uuid.uuid4().hex


def safe_dist_version(dist_name: str) -> str:
    try:
        return dist_version(dist_name)
    except PackageNotFoundError:
        return "0.0.0+unknown"
