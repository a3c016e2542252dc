from .core.provenance import safe_dist_version

__version__ = safe_dist_version("delete-artifacts")
