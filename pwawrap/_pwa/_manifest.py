"""Web App Manifest for PWA installation.

Defines app metadata for installation on home screens. Field values are
derived from the display name; only the colors come from configuration.
"""

import json

from ._assets import ICON_FILE

# Longest short_name kept intact; longer names are cut and marked.
SHORT_NAME_MAX_CHARS = 12
SHORT_NAME_ELLIPSIS = "..."


def short_name(display_name: str) -> str:
    """Truncate a display name for launchers with little room."""
    if len(display_name) > SHORT_NAME_MAX_CHARS:
        return display_name[:SHORT_NAME_MAX_CHARS] + SHORT_NAME_ELLIPSIS
    return display_name


def build_manifest(display_name: str, theme_color: str, background_color: str) -> str:
    """Render manifest.json for a wrapped site.

    Args:
        display_name: Human-readable app name.
        theme_color: Browser UI color.
        background_color: Splash screen color.

    Returns:
        Pretty-printed JSON document.
    """
    manifest = {
        "name": display_name,
        "short_name": short_name(display_name),
        "description": f"PWA wrapper for {display_name}",
        "start_url": "/",
        "display": "standalone",
        "orientation": "portrait",
        "background_color": background_color,
        "theme_color": theme_color,
        "icons": [
            {
                "src": ICON_FILE,
                "sizes": "512x512",
                "type": "image/png",
                "purpose": "any maskable",
            }
        ],
    }
    return json.dumps(manifest, indent=2, ensure_ascii=False)
