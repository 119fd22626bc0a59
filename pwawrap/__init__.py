"""pwawrap - Wrap any web page in an installable PWA shell."""

import argparse
import json
import logging
import signal
import sys
from threading import Event
from typing import Optional

__version__ = "0.1.0"

# Global shutdown event for signal handlers
_shutdown_event: Optional[Event] = None

logger = logging.getLogger(__name__)


def _setup_logging(verbose: bool = False) -> None:
    """Configure logging for the application."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        stream=sys.stdout,
    )


def _handle_shutdown(signum: int, frame: object) -> None:
    """Signal handler for graceful shutdown."""
    sig_name = signal.Signals(signum).name
    logger.info("Received %s, initiating shutdown...", sig_name)
    if _shutdown_event is not None:
        _shutdown_event.set()


def _load_config_or_exit(config_path: Optional[str]):
    """Load the YAML config if given, defaults otherwise; exit 1 on error."""
    from .config import ConfigError, default_config, load_config

    try:
        if config_path is None:
            return default_config()
        config = load_config(config_path)
        logger.info("Configuration loaded from %s", config_path)
        return config
    except ConfigError as e:
        logger.error("Configuration error: %s", e)
        sys.exit(1)


def _override_or_exit(config, section: str, **changes):
    """Return config with one section's fields replaced; exit 1 if invalid."""
    from dataclasses import replace

    from .config import ConfigError

    try:
        return replace(config, **{section: replace(getattr(config, section), **changes)})
    except ConfigError as e:
        logger.error("Configuration error: %s", e)
        sys.exit(1)


def _cmd_generate(args: argparse.Namespace) -> None:
    """Execute the generate command - build one PWA project on disk."""
    from .builder import ProjectBuilder
    from .generator import GenerationError
    from .models import GenerationRequest

    _setup_logging(args.verbose)
    config = _load_config_or_exit(args.config)
    if args.output is not None:
        config = _override_or_exit(config, "output", root=args.output)

    builder = ProjectBuilder(config)
    request = GenerationRequest(url=args.url, name=args.name or "", icon=args.icon)

    try:
        result = builder.build(request, resolve_missing=True)
    except GenerationError as e:
        logger.error("Failed to generate PWA project: %s", e)
        sys.exit(1)

    print(f"PWA project generated successfully at: {result.project_dir}")
    print("Files created:")
    for path in result.files:
        print(f"- {path}")


def _cmd_resolve(args: argparse.Namespace) -> None:
    """Execute the resolve command - print title and icon candidates as JSON."""
    from .resolver import MetadataResolver

    _setup_logging(args.verbose)
    config = _load_config_or_exit(args.config)

    metadata = MetadataResolver(config.fetch).resolve(args.url)
    print(json.dumps(metadata.to_dict(), indent=2, ensure_ascii=False))


def _cmd_serve(args: argparse.Namespace) -> None:
    """Execute the serve command - run the HTTP API until signalled."""
    global _shutdown_event

    from .api import ApiError, ApiServer
    from .builder import ProjectBuilder

    _setup_logging(args.verbose)
    logger.info("pwawrap %s starting...", __version__)

    config = _load_config_or_exit(args.config)
    if args.port is not None:
        config = _override_or_exit(config, "api", port=args.port)

    if not config.api.enabled:
        logger.error("API is disabled in configuration (api.enabled: false)")
        sys.exit(1)

    _shutdown_event = Event()
    signal.signal(signal.SIGTERM, _handle_shutdown)
    signal.signal(signal.SIGINT, _handle_shutdown)

    api_server = ApiServer(config.api, ProjectBuilder(config))
    try:
        api_server.start()
    except ApiError as e:
        logger.error("Failed to start API server: %s", e)
        sys.exit(1)

    try:
        logger.info("Writing projects to %s, waiting for shutdown signal...", config.output.root)
        _shutdown_event.wait()
    except KeyboardInterrupt:
        # Backup handler if signal doesn't work
        logger.info("Keyboard interrupt received")
    finally:
        api_server.stop()
        logger.info("Shutdown complete")


def _add_common_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "-c", "--config",
        default=None,
        help="Path to YAML configuration file (default: built-in defaults)",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable verbose (debug) logging",
    )


def main() -> None:
    """Main entry point for the pwawrap package."""
    parser = argparse.ArgumentParser(
        description="pwawrap - Wrap any web page in an installable PWA shell"
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"pwawrap {__version__}",
    )

    subparsers = parser.add_subparsers(dest="command")

    # Generate subcommand
    generate_parser = subparsers.add_parser(
        "generate",
        help="Generate a PWA project for a URL",
    )
    generate_parser.add_argument("url", help="Site to wrap")
    generate_parser.add_argument(
        "-n", "--name",
        help="Display name (default: resolved page title)",
    )
    generate_parser.add_argument(
        "-i", "--icon",
        help="Icon URL, data URI, local path, or 'default' (default: best icon found on the page)",
    )
    generate_parser.add_argument(
        "-o", "--output",
        help="Output root directory (overrides config)",
    )
    _add_common_arguments(generate_parser)
    generate_parser.set_defaults(func=_cmd_generate)

    # Resolve subcommand
    resolve_parser = subparsers.add_parser(
        "resolve",
        help="Print the resolved title and icon candidates for a URL",
    )
    resolve_parser.add_argument("url", help="Page to inspect")
    _add_common_arguments(resolve_parser)
    resolve_parser.set_defaults(func=_cmd_resolve)

    # Serve subcommand
    serve_parser = subparsers.add_parser(
        "serve",
        help="Run the HTTP API (/get-title, /generate-pwa)",
    )
    serve_parser.add_argument(
        "-p", "--port",
        type=int,
        help="Port to listen on (overrides config)",
    )
    _add_common_arguments(serve_parser)
    serve_parser.set_defaults(func=_cmd_serve)

    args = parser.parse_args()

    if args.command is None:
        parser.print_help()
        sys.exit(2)

    args.func(args)
