"""Cache version for generated service workers.

The version is a fixed literal so regeneration is reproducible. Bumping it
(here or via output.cache_version) is the only way to make deployed workers
evict assets cached by a previous deployment.
"""

CACHE_VERSION = "v1"

CACHE_NAME_PREFIX = "pwa-cache-"


def cache_name(version: str = CACHE_VERSION) -> str:
    """Return the Cache Storage name used by a worker of the given version."""
    return f"{CACHE_NAME_PREFIX}{version}"
