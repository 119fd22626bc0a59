"""File layout shared by the bundle writer, the worker script and the runtime model."""

SHELL_FILE = "index.html"
MANIFEST_FILE = "manifest.json"
WORKER_FILE = "service-worker.js"
ICONS_DIR = "icons"
ICON_FILE = f"{ICONS_DIR}/icon-512x512.png"

# Relative paths of every generated file, in write order.
BUNDLE_FILES = (SHELL_FILE, MANIFEST_FILE, WORKER_FILE, ICON_FILE)

# Precached on install, relative to the worker scope. "./" is the scope root
# itself, which static hosts serve as index.html.
STATIC_ASSETS = (
    "./",
    f"./{SHELL_FILE}",
    f"./{MANIFEST_FILE}",
    f"./{ICON_FILE}",
)

ICONS_PREFIX = f"./{ICONS_DIR}/"
SHELL_FALLBACK = f"./{SHELL_FILE}"
ICON_FALLBACK = f"./{ICON_FILE}"
