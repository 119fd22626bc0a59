"""Generation pipeline: resolve metadata, normalize icon, generate and write."""

import logging

from .config import Config
from .generator import ArtifactGenerator, GenerationError, write_bundle
from .icons import IconNormalizer
from .models import GenerationRequest, GenerationResult, ProjectSpec, parse_icon_source
from .resolver import MetadataResolver

logger = logging.getLogger(__name__)


class ProjectBuilder:
    """Runs one generation request at a time, start to finish.

    Requests share no mutable state; concurrent builds of the same slug
    simply overwrite each other's files.
    """

    def __init__(
        self,
        config: Config,
        resolver: MetadataResolver | None = None,
        normalizer: IconNormalizer | None = None,
        generator: ArtifactGenerator | None = None,
    ) -> None:
        self.config = config
        self.resolver = resolver or MetadataResolver(config.fetch)
        self.normalizer = normalizer or IconNormalizer(config.fetch)
        self.generator = generator or ArtifactGenerator(config.theme, config.output)

    def build(self, request: GenerationRequest, resolve_missing: bool = False) -> GenerationResult:
        """Generate and write one project.

        Args:
            request: URL, display name and optional icon reference.
            resolve_missing: When True, an empty name or absent icon is filled
                from the page's resolved title and best icon candidate.

        Returns:
            Successful GenerationResult with the project directory and files.

        Raises:
            GenerationError: If required fields are missing or files cannot be written.
        """
        if not request.url:
            raise GenerationError("Missing required parameters: url and name")

        name = request.name
        icon = request.icon

        if resolve_missing and (not name or icon is None):
            metadata = self.resolver.resolve(request.url)
            if not name:
                name = metadata.title
                logger.info("Using resolved title %r", name)
            if icon is None and metadata.selected_icon is not None:
                icon = metadata.selected_icon.url
                logger.info("Using resolved icon %s", icon)

        if not name:
            raise GenerationError("Missing required parameters: url and name")

        spec = ProjectSpec(target_url=request.url, display_name=name, icon_source=parse_icon_source(icon))
        logger.info("Generating PWA project %r for %s", spec.display_name, spec.target_url)

        resolved_icon = self.normalizer.normalize(spec.icon_source)
        bundle = self.generator.generate(spec, resolved_icon)
        project_dir, written = write_bundle(bundle, self.config.output.root)

        return GenerationResult(
            success=True,
            project_dir=str(project_dir),
            files=tuple(str(path) for path in written),
        )
