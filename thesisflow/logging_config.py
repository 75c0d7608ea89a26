"""Logging setup shared by the API process and the scripts."""

import logging

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

_configured = False


def configure_logging(level: str = "INFO") -> logging.Logger:
    """Attach one stream handler to the ``thesisflow`` logger tree.

    Calling it again only adjusts the level.
    """

    global _configured
    root = logging.getLogger("thesisflow")
    root.setLevel(level.upper())
    if not _configured and not root.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        root.addHandler(handler)
        _configured = True
    return root
