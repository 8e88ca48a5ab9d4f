"""API routers."""
from .push_notifications import router as push_notifications_router

__all__ = ["push_notifications_router"]
