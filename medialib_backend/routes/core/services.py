"""
Service management and initialization.
"""
import asyncio
from typing import Any, Optional

from ...deps import build_services, dispose_services
from ...shared import ErrorCode, Result, get_logger

logger = get_logger(__name__)

_services: Optional[dict] = None
_services_error: Optional[str] = None
_services_lock: Optional[asyncio.Lock] = None


def _get_services_lock() -> asyncio.Lock:
    global _services_lock
    if _services_lock is None:
        _services_lock = asyncio.Lock()
    return _services_lock


async def _build_services(force: bool = False) -> Optional[dict]:
    global _services, _services_error
    async with _get_services_lock():
        if _services and not force:
            return _services
        if force and _services:
            await dispose_services(_services)
            _services = None

        try:
            services_result = await build_services()
        except Exception as exc:
            _services_error = str(exc)
            logger.error("Failed to initialize services: %s", exc, exc_info=True)
            return None
        if not services_result.ok:
            _services_error = services_result.error or "Initialization failed"
            logger.error("Failed to initialize services: %s", _services_error)
            return None

        _services = services_result.data
        _services_error = None
        index = _services.get("index") if _services else None
        if index is not None:
            await index.load()
        return _services


def set_services(services: Optional[dict]) -> None:
    """Install prebuilt services (server startup, tests)."""
    global _services, _services_error
    _services = services
    _services_error = None


async def shutdown_services() -> None:
    global _services
    if _services:
        await dispose_services(_services)
    _services = None


async def _require_services() -> tuple[Optional[dict[str, Any]], Optional[Result[Any]]]:
    services = await _build_services()
    if services:
        return services, None
    return None, Result.Err(
        ErrorCode.SERVICE_UNAVAILABLE,
        "Services are unavailable",
        detail=_services_error or "Initialization failed",
    )


def get_services_error() -> Optional[str]:
    return _services_error
