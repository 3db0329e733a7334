"""Logging setup for termchat.

Modules log through ``logging.getLogger(__name__)``, so everything lands under
the ``termchat`` logger. ``configure_logging`` attaches a single rich handler
to it; calling it again only changes the level.
"""

from __future__ import annotations

import logging
from typing import Optional, Union

from rich.console import Console
from rich.logging import RichHandler

logger = logging.getLogger("termchat")

_HANDLER_NAME = "termchat-rich"


def configure_logging(level: Union[str, int] = "INFO", console: Optional[Console] = None) -> logging.Logger:
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            raise ValueError(f"Unknown log level: {level}")

    logger.setLevel(level)
    if not any(h.get_name() == _HANDLER_NAME for h in logger.handlers):
        handler = RichHandler(
            console=console or Console(stderr=True),
            show_path=False,
            rich_tracebacks=True,
        )
        handler.set_name(_HANDLER_NAME)
        handler.setFormatter(logging.Formatter("%(name)s: %(message)s"))
        logger.addHandler(handler)
    return logger
