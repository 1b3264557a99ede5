from __future__ import annotations

from .app import run
from .logging_setup import configure_logging


def main() -> int:
    """Entry point for ``python -m nback_trainer`` and the console script."""
    configure_logging()
    return run()


if __name__ == "__main__":
    raise SystemExit(main())
