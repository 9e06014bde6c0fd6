from __future__ import annotations

from .client import HttpDocumentStore, HttpSubscription

__all__ = ["HttpDocumentStore", "HttpSubscription"]
