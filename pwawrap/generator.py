"""Artifact generation: shell page, manifest, worker script and icon."""

import logging
import re
from pathlib import Path
from urllib.parse import urlparse

from ._pwa import BUNDLE_FILES, build_manifest, build_service_worker, build_shell
from .config import OutputConfig, ThemeConfig
from .models import GeneratedBundle, ProjectSpec, ResolvedIcon
from .security import UnsafeSlugError, validate_project_slug

logger = logging.getLogger(__name__)

_WHITESPACE_RUN = re.compile(r"\s+")


class GenerationError(Exception):
    """Raised when a bundle cannot be generated or written."""

    pass


def slugify(display_name: str) -> str:
    """Derive the output directory name from a display name.

    Lowercases the name and collapses each whitespace run into one hyphen.
    Distinct names may map to the same slug; the later bundle overwrites
    the earlier one.
    """
    return _WHITESPACE_RUN.sub("-", display_name.strip().lower())


class ArtifactGenerator:
    """Composes a ProjectSpec and ResolvedIcon into a GeneratedBundle.

    generate() has no hidden state: the same ProjectSpec, icon and configuration
    always produce byte-identical files.
    """

    def __init__(self, theme: ThemeConfig, output: OutputConfig) -> None:
        self._theme = theme
        self._output = output

    @property
    def cache_version(self) -> str:
        return self._output.cache_version

    def generate(self, spec: ProjectSpec, icon: ResolvedIcon) -> GeneratedBundle:
        """Render all bundle files in memory.

        Args:
            spec: Target URL, display name and icon source.
            icon: Normalized icon (or the placeholder).

        Returns:
            The generated bundle.

        Raises:
            GenerationError: If the name or URL is missing or unusable.
        """
        display_name = spec.display_name.strip()
        if not display_name:
            raise GenerationError("Display name cannot be empty")
        if not spec.target_url:
            raise GenerationError("Target URL cannot be empty")
        try:
            scheme = urlparse(spec.target_url).scheme
        except ValueError as e:
            raise GenerationError(f"Invalid target URL '{spec.target_url}': {e}")
        if scheme not in ("http", "https"):
            raise GenerationError(f"Target URL must start with http:// or https://, got '{spec.target_url}'")

        try:
            slug = validate_project_slug(slugify(display_name))
        except UnsafeSlugError as e:
            raise GenerationError(str(e))

        return GeneratedBundle(
            slug=slug,
            shell_markup=build_shell(display_name, spec.target_url, self._theme.theme_color),
            manifest_document=build_manifest(
                display_name,
                theme_color=self._theme.theme_color,
                background_color=self._theme.background_color,
            ),
            worker_script=build_service_worker(self._output.cache_version),
            icon_png=icon.png,
        )


def write_bundle(bundle: GeneratedBundle, output_root: str | Path) -> tuple[Path, list[Path]]:
    """Write a bundle under <output_root>/<slug>/, overwriting existing files.

    Args:
        bundle: Generated files.
        output_root: Parent directory of all projects.

    Returns:
        Tuple of (project directory, written file paths in BUNDLE_FILES order).

    Raises:
        GenerationError: If a directory or file cannot be written.
    """
    project_dir = Path(output_root) / bundle.slug
    contents = bundle.files()
    written: list[Path] = []

    try:
        for relative in BUNDLE_FILES:
            path = project_dir / relative
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_bytes(contents[relative])
            written.append(path)
    except OSError as e:
        raise GenerationError(f"Failed to write project files to {project_dir}: {e}")

    logger.info("Wrote %d files to %s", len(written), project_dir)
    return project_dir, written
