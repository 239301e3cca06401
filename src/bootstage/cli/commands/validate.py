"""Validate command formatting."""

from __future__ import annotations

import argparse

from bootstage.cli.common import format_count
from bootstage.config import SlotCheck
from bootstage.contracts.exceptions import ConfigError


def format_validate_summary(checks: list[SlotCheck]) -> str:
    lines = ["", "bootstage - validate", ""]

    for check in checks:
        slot = f"{check.stage}.{check.section}[{check.index}]"
        reference = check.reference or "<empty>"
        if check.ok:
            lines.append(f"  [ok]    {slot:<24} {reference} ({format_count(check.steps, 'step')})")
        else:
            lines.append(f"  [error] {slot:<24} {reference}: {check.error}")

    problems = sum(1 for check in checks if not check.ok)
    lines.append("")
    lines.append(f"  Checked:  {format_count(len(checks), 'reference')}, {format_count(problems, 'problem')}")
    lines.append("")
    return "\n".join(lines)


def run_validate(args: argparse.Namespace) -> list[SlotCheck]:
    import bootstage.cli as cli

    config = cli.load_config(args.config)
    checks = cli.validate_stages(config)
    print(cli._format_validate_summary(checks))

    problems = [check for check in checks if not check.ok]
    if problems:
        raise ConfigError(f"{format_count(len(problems), 'invalid step reference')} in {args.config}")
    return checks


__all__ = ["format_validate_summary", "run_validate"]
