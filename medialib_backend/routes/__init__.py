"""
HTTP surface of the media library index.
"""
from .registry import API_PREFIX, register_all_routes, register_routes

__all__ = ["API_PREFIX", "register_all_routes", "register_routes"]
