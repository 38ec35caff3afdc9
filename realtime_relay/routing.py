import os
import pkgutil
from importlib import import_module

from fastapi import APIRouter

from realtime_relay.logging import logger

# Track registered modules to prevent duplicate logging
_registered_modules: set[str] = set()


def _include_package(main_router: APIRouter, package_dir: str, package: str) -> None:
    for _, module, _ in pkgutil.iter_modules([package_dir]):
        routes = import_module(f".{module}", package=package)
        main_router.include_router(routes.router)

        # Only log on first registration
        if f"{package}.{module}" not in _registered_modules:
            logger.info(f'Register "{module}" routes from {package}')
            _registered_modules.add(f"{package}.{module}")


def collect_subrouters() -> APIRouter:
    """
    Collects the HTTP diagnostics routers and WebSocket consumers.

    Every module under ``api/http`` and ``api/ws/consumers`` exposing a
    ``router`` is imported and included in the returned router.
    """
    main_router = APIRouter()

    package_dir = os.path.dirname(__file__)
    package_name = os.path.basename(package_dir)

    _include_package(
        main_router, f"{package_dir}/api/http", f"{package_name}.api.http"
    )
    _include_package(
        main_router,
        f"{package_dir}/api/ws/consumers",
        f"{package_name}.api.ws.consumers",
    )

    return main_router
