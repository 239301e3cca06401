"""CLI parser construction."""

from __future__ import annotations

import argparse
from importlib.metadata import PackageNotFoundError, version


def _package_version() -> str:
    try:
        return version("bootstage")
    except PackageNotFoundError:
        return "0.0.0"


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="bootstage")
    parser.add_argument("--version", action="version", version=f"%(prog)s {_package_version()}")

    subparsers = parser.add_subparsers(dest="command", required=True)

    run_parser = subparsers.add_parser("run", help="Boot the entry stage of a config")
    run_parser.add_argument("--config", default="./bootstage.json", help="Path to bootstage.json")
    run_parser.add_argument(
        "--advance",
        action="store_true",
        help="Deconstruct the entry stage once ready and boot its next stage",
    )
    run_parser.add_argument("--play", action="store_true", help="Fire the play signal of every booted stage")
    run_parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")

    validate_parser = subparsers.add_parser("validate", help="Resolve every step reference without running")
    validate_parser.add_argument("--config", default="./bootstage.json", help="Path to bootstage.json")

    demo_parser = subparsers.add_parser("demo", help="Boot the built-in two-stage demo")
    demo_parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")

    return parser


__all__ = ["build_parser"]
