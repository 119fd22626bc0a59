"""HTML template for the shell page.

The shell embeds the wrapped site in a full-viewport iframe and registers
the service worker. Substitution uses string.Template with $variable
placeholders; values are HTML-escaped by build_shell().
"""

import html
from string import Template

from ._assets import ICON_FILE, MANIFEST_FILE
from ._registration import SW_REGISTRATION_JS

_SHELL_TEMPLATE = Template(
    """<!DOCTYPE html>
<html lang="en">
<head>
    <meta charset="UTF-8">
    <meta name="viewport" content="width=device-width, initial-scale=1.0">
    <title>$title</title>
    <link rel="manifest" href="$manifest">
    <link rel="icon" href="$icon" type="image/png">
    <link rel="apple-touch-icon" href="$icon">
    <meta name="theme-color" content="$theme_color">
    <meta http-equiv="Content-Security-Policy" content="frame-ancestors 'self'">
    <style>
        * {
            margin: 0;
            padding: 0;
            box-sizing: border-box;
        }

        body, html {
            width: 100%;
            height: 100%;
            overflow: auto;
        }

        iframe {
            width: 100%;
            height: 100vh;
            min-height: 100vh;
            border: none;
            overflow: auto;
            display: block;
        }
    </style>
</head>
<body>
    <iframe src="$target_url" title="$title"></iframe>
    <script>$registration    </script>
</body>
</html>
"""
)


def build_shell(display_name: str, target_url: str, theme_color: str) -> str:
    """Render index.html for a wrapped site.

    Args:
        display_name: Page title and iframe title.
        target_url: Site loaded in the iframe.
        theme_color: Value for the theme-color meta tag.

    Returns:
        Complete HTML document.
    """
    return _SHELL_TEMPLATE.substitute(
        title=html.escape(display_name, quote=True),
        target_url=html.escape(target_url, quote=True),
        theme_color=html.escape(theme_color, quote=True),
        manifest=MANIFEST_FILE,
        icon=ICON_FILE,
        registration=SW_REGISTRATION_JS,
    )
