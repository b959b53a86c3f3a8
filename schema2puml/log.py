"""Logging helpers shared by the command line and the catalog builders."""
from __future__ import annotations

import logging


def configure_logging(*, level: int = logging.WARNING, force: bool = False) -> None:
    """Initialise the root logger once.

    Records go to stderr so that a diagram written to stdout stays clean.
    Pass ``force=True`` to reconfigure during tests.
    """

    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
        datefmt="%H:%M:%S",
        force=force,
    )


def sanitize(value: object) -> str:
    """Strip line breaks from catalog-provided values before logging them."""
    return str(value).replace("\r", "").replace("\n", " ")
