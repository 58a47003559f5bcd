"""Voice mailbox skill: exchange short messages by talking to a voice assistant.

This package provides a FastAPI application factory named ``create_app``
inside ``mail_skill/server.py`` (see :func:`create_app`).

Typical usage
-------------
from mail_skill import create_app
app = create_app()

or, from the provided launcher:

python scripts/run_server.py --host 127.0.0.1 --port 8080
"""

from __future__ import annotations

from .server import create_app

__all__ = ["create_app", "__version__", "get_version"]

# ---------------------------------------------------------------------
# Version handling
# ---------------------------------------------------------------------
__version__ = "0.1.0"


def get_version() -> str:
    """Return the package version."""
    return __version__
