"""
Route handlers.
"""
from .media import register_media_routes
from .scan import register_scan_routes

__all__ = ["register_media_routes", "register_scan_routes"]
