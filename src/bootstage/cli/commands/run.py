"""Run command and its summary formatting."""

from __future__ import annotations

import argparse

from bootstage.cli.common import format_comma_or_none, format_count
from bootstage.contracts.config import BootConfig, StageConfig
from bootstage.contracts.progress import ProgressController
from bootstage.engine.orchestrator import RunSession
from bootstage.sdk import StageProgressFactory


def format_run_summary(sessions: list[RunSession]) -> str:
    lines = ["", "bootstage - run complete", ""]

    for session in sessions:
        main = session.reports.get("main")
        basics = session.reports.get("basics")
        failures = [f"{failure.unit}: {failure.error}" for failure in session.failures]
        warnings = [*(basics.skipped if basics else []), *(main.skipped if main else [])]

        lines.append(f"  Stage:      {session.stage} (generation {session.generation})")
        lines.append(f"  Status:     {'ready' if session.completed else 'incomplete'}")
        if main is not None:
            lines.append(f"  Steps:      {main.succeeded}/{main.total} succeeded")
        lines.append(f"  Failures:   {format_comma_or_none(failures)}")
        lines.append(f"  Warnings:   {format_count(len(warnings), 'warning')}")
        for phase_error in session.errors:
            lines.append(f"  [error] phase '{phase_error.phase}': {phase_error.error}")
        lines.append("")

    return "\n".join(lines)


def _progress_factory(config: BootConfig, *, verbose: bool) -> StageProgressFactory | None:
    if verbose:
        return None

    from bootstage.cli.progress.rich import RichLoadProgress

    settings = config.progress

    def _create(stage: StageConfig) -> ProgressController:
        return RichLoadProgress(
            stage.name,
            seconds_per_unit=settings.seconds_per_unit,
            only_increase=settings.only_increase,
            fade_duration=settings.fade_duration,
        )

    return _create


async def boot_config(config: BootConfig, *, advance: bool, play: bool, verbose: bool) -> list[RunSession]:
    import bootstage.cli as cli

    sessions: list[RunSession] = []
    async with cli.Bootstage(config, progress_factory=_progress_factory(config, verbose=verbose)) as boot:
        stage = await boot.start()
        if play:
            stage.begin_play()
        if stage.session is not None:
            sessions.append(stage.session)

        if advance:
            stage = await boot.advance()
            if play:
                stage.begin_play()
            if stage.session is not None:
                sessions.append(stage.session)

    return sessions


async def run_stages(args: argparse.Namespace) -> list[RunSession]:
    import bootstage.cli as cli

    config = cli.load_config(args.config)
    sessions = await boot_config(config, advance=args.advance, play=args.play, verbose=args.verbose)
    print(cli._format_run_summary(sessions))
    return sessions


__all__ = ["boot_config", "format_run_summary", "run_stages"]
