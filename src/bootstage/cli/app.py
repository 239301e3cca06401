"""CLI app entrypoint and error mapping."""

from __future__ import annotations

import sys

from bootstage.contracts.exceptions import ConfigError, OrchestrationError


def main(argv: list[str] | None = None) -> int:
    import bootstage.cli as cli

    parser = cli.build_parser()
    args = parser.parse_args(argv)

    if getattr(args, "verbose", False):
        cli.logging.basicConfig(level=cli.logging.DEBUG, format="%(name)s %(message)s", stream=sys.stderr)

    try:
        if args.command == "validate":
            cli._run_validate(args)
        elif args.command == "run":
            cli.asyncio.run(cli._run_stages(args))
        elif args.command == "demo":
            cli.asyncio.run(cli._run_demo(args))
        return 0
    except ConfigError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 3
    except OrchestrationError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 5
    except Exception as exc:  # pragma: no cover - defensive fallback
        print(f"error: {exc}", file=sys.stderr)
        return 1


__all__ = ["main"]
