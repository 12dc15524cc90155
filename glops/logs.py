"""Shared logging helpers for glops."""

from __future__ import annotations

import logging


def configure_logging(*, level: int = logging.WARNING, force: bool = False) -> None:
    """Initialise the root logger once with a terse CLI format.

    The CLI passes DEBUG for ``--verbose``; library users normally configure
    logging themselves and never call this.
    """

    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
        datefmt="%H:%M:%S",
        force=force,
    )
