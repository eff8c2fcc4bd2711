"""Remote service clients (credential page, orders, realtime canvas, mutations)."""

from .canvas_feed import CanvasFeed, CanvasUnavailable
from .credential import CredentialError, fetch_access_token
from .orders import OrderStore
from .submitter import ActionSubmitter, RawResponse

__all__ = [
    "ActionSubmitter",
    "CanvasFeed",
    "CanvasUnavailable",
    "CredentialError",
    "OrderStore",
    "RawResponse",
    "fetch_access_token",
]
