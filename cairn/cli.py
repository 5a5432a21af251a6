"""
Main CLI for cairn.

Provides the ``build`` and ``serve`` commands.
"""

from __future__ import annotations

import argparse
import sys

from cairn.core.utils import log, resolve_version


# =============================================================================
# Argument Parsing
# =============================================================================


def _add_build_arguments(parser: argparse.ArgumentParser) -> None:
    """Options shared by ``build`` and ``serve``."""
    parser.add_argument(
        "path",
        nargs="?",
        default=".",
        help="Site directory (default: current directory)",
    )
    parser.add_argument(
        "-c", "--config",
        help="Extra configuration files, comma-separated",
    )
    parser.add_argument(
        "-d", "--drafts",
        action="store_true",
        help="Include drafts",
    )
    parser.add_argument(
        "-p", "--page",
        help="Build a single page (by id)",
    )
    parser.add_argument(
        "--optimize",
        nargs="?",
        const="yes",
        default=None,
        metavar="MODE",
        help='Optimize output files (disable with "no", or list optimizers: html,css,js,images)',
    )
    parser.add_argument(
        "--clear-cache",
        nargs="?",
        const="",
        default=None,
        metavar="PATTERN",
        help="Clear the cache before building (optional regular expression)",
    )
    verbosity = parser.add_mutually_exclusive_group()
    verbosity.add_argument(
        "-v", "--verbose",
        action="count",
        default=0,
        help="Increase verbosity (-vv for debug)",
    )
    verbosity.add_argument(
        "-q", "--quiet",
        action="store_true",
        help="Only print warnings and errors",
    )


def create_parser(version: str = "") -> argparse.ArgumentParser:
    """Create the main argument parser with all subcommands."""

    parser = argparse.ArgumentParser(
        prog="cairn",
        description="Static site builder with a live-reloading dev server",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Commands:
  build       Build the site into the output directory
  serve       Build, serve locally and rebuild on change

Examples:
  cairn build                      # Build the site in the current directory
  cairn build --drafts -v          # Include drafts, show stage timings
  cairn build --optimize           # Minify HTML/CSS/JS and optimize images
  cairn serve --open               # Serve on localhost:8000 and open a browser
  cairn serve --port 8080 -c prod.yml
        """,
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {version}",
    )

    parser.add_argument(
        "--no-color",
        action="store_true",
        help="Disable colored output",
    )

    subparsers = parser.add_subparsers(
        dest="command",
        title="commands",
        metavar="<command>",
    )

    # --- build ---
    build_parser = subparsers.add_parser(
        "build",
        help="Build the site",
        description="Run the build pipeline over the site directory.",
    )
    _add_build_arguments(build_parser)
    build_parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Run the pipeline without writing the output directory",
    )

    # --- serve ---
    serve_parser = subparsers.add_parser(
        "serve",
        help="Serve the site and rebuild on change",
        description="Build the site, serve it locally and rebuild on change.",
    )
    _add_build_arguments(serve_parser)
    serve_parser.add_argument(
        "-o", "--open",
        action="store_true",
        help="Open the web browser once the server is up",
    )
    serve_parser.add_argument(
        "--host",
        default="localhost",
        help="Server host (default: localhost)",
    )
    serve_parser.add_argument(
        "--port",
        type=int,
        default=8000,
        help="Server port (default: 8000); live reload uses port + 1",
    )
    serve_parser.add_argument(
        "--no-ignore-vcs",
        action="store_true",
        help="Watch files ignored by git too (ignore rules come from git itself, "
        "so they only apply inside a git work tree with git on PATH)",
    )
    serve_parser.add_argument(
        "--timeout",
        type=float,
        default=7200,
        help="Build process timeout in seconds (default: 7200)",
    )

    return parser


# =============================================================================
# Main
# =============================================================================


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    version = resolve_version()
    parser = create_parser(version)
    args = parser.parse_args(argv)

    # Handle --no-color
    if args.no_color:
        log.set_color(False)

    # No command specified
    if not args.command:
        parser.print_help()
        return 0

    from cairn.build.orchestrator import verbosity_from_args
    log.set_verbosity(verbosity_from_args(args))

    # Dispatch to command handler
    try:
        if args.command == "build":
            from cairn.build.orchestrator import cmd_build
            return cmd_build(args, version)

        elif args.command == "serve":
            from cairn.serve.command import cmd_serve
            return cmd_serve(args, version)

        else:
            log.error(f"Unknown command: {args.command}")
            return 1

    except KeyboardInterrupt:
        log.warning("Interrupted")
        return 130
    except Exception as e:
        log.error(str(e))
        return 1


if __name__ == "__main__":
    sys.exit(main())
