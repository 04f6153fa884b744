from typing import Iterator

from fastapi import APIRouter
from fastapi.routing import APIRoute

from manga_api.api.v1.routes_auth import router as auth_router
from manga_api.api.v1.routes_status import router as status_router
from manga_api.api.v1.routes_users import router as users_router

# (prefix, router, tags); also the source of truth for the route inventory
ROUTERS = (
    ("/auth", auth_router, ["auth"]),
    ("/users", users_router, ["users"]),
    ("/status", status_router, ["status"]),
)

api_router = APIRouter()

for _prefix, _router, _tags in ROUTERS:
    api_router.include_router(_router, prefix=_prefix, tags=_tags)


def iter_api_routes(api_prefix: str = "") -> Iterator[tuple[str, set[str], object]]:
    """Yield ``(full path, methods, endpoint)`` for every route in ``ROUTERS``."""
    for prefix, router, _ in ROUTERS:
        for route in router.routes:
            if isinstance(route, APIRoute):
                yield f"{api_prefix}{prefix}{route.path}", route.methods, route.endpoint
