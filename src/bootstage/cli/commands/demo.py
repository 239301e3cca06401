"""Demo command."""

from __future__ import annotations

import argparse

from bootstage.engine.orchestrator import RunSession


async def run_demo(args: argparse.Namespace) -> list[RunSession]:
    import bootstage.cli as cli

    sessions = await cli._boot_config(cli.DEMO_CONFIG, advance=True, play=True, verbose=args.verbose)
    print(cli._format_run_summary(sessions))
    return sessions


__all__ = ["run_demo"]
