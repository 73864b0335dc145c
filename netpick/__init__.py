"""NetPick: serve one random Netflix title per request.

The FastAPI application lives in :mod:`app`; this package re-exports it
together with the loaded settings so ``uvicorn netpick:app`` works.
"""

from __future__ import annotations

from app.config import settings
from app.main import app, create_app

__version__ = "1.0.0"

__all__ = ["app", "create_app", "settings", "__version__"]
