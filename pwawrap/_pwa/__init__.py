"""Progressive Web App templates for generated shells.

This package renders the three text artifacts of a bundle:
- index.html: full-viewport iframe around the wrapped site
- manifest.json: installation metadata
- service-worker.js: versioned offline cache (see _service_worker)

All renderers are pure functions of their arguments.
"""

from ._assets import (
    BUNDLE_FILES,
    ICON_FALLBACK,
    ICON_FILE,
    ICONS_PREFIX,
    SHELL_FALLBACK,
    STATIC_ASSETS,
)
from ._manifest import build_manifest, short_name
from ._service_worker import build_service_worker
from ._shell import build_shell
from ._version import CACHE_NAME_PREFIX, CACHE_VERSION, cache_name

__all__ = [
    "BUNDLE_FILES",
    "CACHE_NAME_PREFIX",
    "CACHE_VERSION",
    "ICON_FALLBACK",
    "ICON_FILE",
    "ICONS_PREFIX",
    "SHELL_FALLBACK",
    "STATIC_ASSETS",
    "build_manifest",
    "build_service_worker",
    "build_shell",
    "cache_name",
    "short_name",
]
