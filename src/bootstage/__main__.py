"""Allow ``python -m bootstage``."""

from bootstage.cli import main

if __name__ == "__main__":
    raise SystemExit(main())
