"""The ``fiasco`` command.

``fiasco [phases...]`` runs the project build defined in ``<root>/fiasco/build.py``.
``fiasco serve`` runs a Fiasco repository server over a local repository.
"""

from __future__ import annotations

import argparse
import importlib.util
import inspect
import logging
import sys
from pathlib import Path
from types import ModuleType
from typing import List, Optional, Type

from fiasco.build.build import BaseBuild
from fiasco.config_loader import find_settings_file, load_build_settings
from fiasco.exceptions import FiascoError

logger = logging.getLogger(__name__)

BUILD_SCRIPT = Path("fiasco") / "build.py"


class BuildLoadError(FiascoError):
    """The build script could not be found, imported or instantiated."""


def load_build_module(script: Path) -> ModuleType:
    if not script.exists():
        raise BuildLoadError(f"No build script at {script}")
    spec = importlib.util.spec_from_file_location(f"fiasco_build_{abs(hash(str(script)))}", script)
    if spec is None or spec.loader is None:
        raise BuildLoadError(f"Cannot import {script}")
    module = importlib.util.module_from_spec(spec)
    try:
        spec.loader.exec_module(module)
    except Exception as exc:
        raise BuildLoadError(f"Error importing {script}: {exc}") from exc
    return module


def find_build_class(module: ModuleType) -> Type[BaseBuild]:
    """The single :class:`BaseBuild` subclass defined in ``module``."""
    found = [
        value
        for _, value in inspect.getmembers(module, inspect.isclass)
        if issubclass(value, BaseBuild) and value is not BaseBuild and value.__module__ == module.__name__
    ]
    if len(found) != 1:
        names = ", ".join(sorted(c.__name__ for c in found)) or "none"
        raise BuildLoadError(f"Expected exactly one BaseBuild subclass in {module.__file__}, found {names}")
    return found[0]


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="fiasco", description="Run a Fiasco project build.")
    parser.add_argument("phases", nargs="*", help="phases to enable, or -phase to disable")
    parser.add_argument("--root", default=".", help="project root folder")
    parser.add_argument("--script", help="build script (default: <root>/fiasco/build.py)")
    parser.add_argument("--settings", help="settings file (default: <root>/fiasco/settings.yaml if present)")
    parser.add_argument("--threads", type=int, default=None, help="builder threads")
    parser.add_argument("--verbose", "-v", action="store_true")
    return parser


def _serve_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="fiasco serve", description="Serve a local repository over HTTP.")
    parser.add_argument("--name", default="server")
    parser.add_argument("--root", help="repository folder (default: the Fiasco cache)")
    parser.add_argument("--host", default="127.0.0.1")
    parser.add_argument("--port", type=int, default=8080)
    parser.add_argument("--verbose", "-v", action="store_true")
    return parser


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def serve(argv: List[str]) -> int:
    args = _serve_parser().parse_args(argv)
    _configure_logging(args.verbose)

    import uvicorn

    from fiasco.repository.local import LocalRepository
    from fiasco.server.app import create_app

    repository = LocalRepository(args.name, args.root)
    logger.info("Serving repository %s from %s", repository.name, repository.root)
    uvicorn.run(
        create_app(repository),
        host=args.host,
        port=args.port,
        log_level="info" if args.verbose else "warning",
    )
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    argv = list(sys.argv[1:] if argv is None else argv)
    if argv and argv[0] == "serve":
        return serve(argv[1:])

    args, unknown = _build_parser().parse_known_args(argv)
    toggles = [a for a in argv if a in args.phases or a in unknown]
    _configure_logging(args.verbose)

    root = Path(args.root)
    script = Path(args.script) if args.script else root / BUILD_SCRIPT
    settings_path = Path(args.settings) if args.settings else find_settings_file(script.parent)
    settings, err = load_build_settings(settings_path)
    if err:
        print(f"fiasco: {err.message}", file=sys.stderr)
        return 1

    try:
        build_class = find_build_class(load_build_module(script))
        build = build_class(root_folder=root, arguments=toggles, settings=settings)
        threads = args.threads or settings.builder_threads
        report = build.build(threads)
    except BuildLoadError as exc:
        print(f"fiasco: {exc}", file=sys.stderr)
        return 1
    except (FiascoError, KeyError) as exc:
        print(f"fiasco: build failed: {exc}", file=sys.stderr)
        return 1

    print(report.summary())
    return 0 if report.succeeded else 1


if __name__ == "__main__":
    raise SystemExit(main())
