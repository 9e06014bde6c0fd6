from __future__ import annotations

from .server import StoreServer, run

__all__ = ["StoreServer", "run"]
