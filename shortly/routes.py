"""FastAPI route definitions for the Shortly REST API.

API Endpoint Overview
=====================
::
    GET    /health
        └─ HealthResponse (200)

    POST   /links
        ├─ LinkCreate (request body, optional auth)
        └─ LinkResponse (201) or 400/401

    GET    /links
        └─ LinkListResponse (200) or 401

    GET    /links/:id
    PUT    /links/:id
    DELETE /links/:id
        └─ owner-scoped: 200, 400, 401 or 404

    GET    /:shortId
    GET    /:alias/:shortId
        └─ 302 Redirect, 404 or 410

Key Behaviours
===============
- The links router is registered before the redirect router so ``/links``
  is never read as a short identifier.
- Errors are raised as ``ShortlyError`` subclasses and rendered by the
  handlers in ``shortly.main``.
- Redirect failures never redirect.
"""

from typing import Optional

from fastapi import APIRouter, Depends
from fastapi.responses import RedirectResponse

from shortly.dependencies import (
    RequestContext,
    get_base_url,
    get_current_user,
    get_domain_prefix,
    get_link_service,
    get_link_store,
    get_optional_user,
    get_redirect_resolver,
    get_request_context,
)
from shortly.enums import HealthStatus
from shortly.link_service import LinkService
from shortly.models import User
from shortly.resolver import RedirectResolver
from shortly.schemas import (
    ErrorResponse,
    HealthResponse,
    LinkCreate,
    LinkDeleteResponse,
    LinkListResponse,
    LinkResponse,
    LinkUpdate,
)
from shortly.store import LinkStore

__all__ = ["health_router", "links_router", "redirect_router"]

health_router = APIRouter(tags=["health"])
links_router = APIRouter(prefix="/links", tags=["links"])
redirect_router = APIRouter(tags=["redirect"])

_NOT_FOUND = {404: {"model": ErrorResponse, "description": "Link not found"}}
_UNAUTHORIZED = {401: {"model": ErrorResponse, "description": "Not authenticated"}}
_INVALID = {400: {"model": ErrorResponse, "description": "Invalid request"}}


@health_router.get("/health", response_model=HealthResponse)
async def health_check(
    ctx: RequestContext = Depends(get_request_context),
    store: LinkStore = Depends(get_link_store),
) -> HealthResponse:
    db_status = HealthStatus.HEALTHY
    try:
        await store.ping()
    except Exception as e:
        ctx.logger.error(f"Database health check failed: {e}")
        db_status = HealthStatus.UNHEALTHY
    return HealthResponse(status=db_status, database=db_status)


@links_router.post(
    "",
    response_model=LinkResponse,
    status_code=201,
    responses={**_INVALID, **_UNAUTHORIZED},
)
async def create_link(
    payload: LinkCreate,
    ctx: RequestContext = Depends(get_request_context),
    owner: Optional[User] = Depends(get_optional_user),
    service: LinkService = Depends(get_link_service),
    base_url: str = Depends(get_base_url),
) -> LinkResponse:
    link = await service.create(payload, owner)
    ctx.logger.info(f"Link {link.short_id} created in {ctx.get_duration():.1f}ms")
    return service.to_response(link, owner, base_url)


@links_router.get("", response_model=LinkListResponse, responses=_UNAUTHORIZED)
async def list_links(
    owner: User = Depends(get_current_user),
    service: LinkService = Depends(get_link_service),
    base_url: str = Depends(get_base_url),
) -> LinkListResponse:
    links = [service.to_response(link, owner, base_url) for link in await service.list(owner)]
    return LinkListResponse(count=len(links), links=links)


@links_router.get("/{link_id}", response_model=LinkResponse, responses={**_UNAUTHORIZED, **_NOT_FOUND})
async def get_link(
    link_id: str,
    owner: User = Depends(get_current_user),
    service: LinkService = Depends(get_link_service),
    base_url: str = Depends(get_base_url),
) -> LinkResponse:
    link = await service.get(link_id, owner)
    return service.to_response(link, owner, base_url)


@links_router.put(
    "/{link_id}",
    response_model=LinkResponse,
    responses={**_INVALID, **_UNAUTHORIZED, **_NOT_FOUND},
)
async def update_link(
    link_id: str,
    payload: LinkUpdate,
    owner: User = Depends(get_current_user),
    service: LinkService = Depends(get_link_service),
    base_url: str = Depends(get_base_url),
) -> LinkResponse:
    link = await service.update(link_id, owner, payload)
    return service.to_response(link, owner, base_url)


@links_router.delete(
    "/{link_id}",
    response_model=LinkDeleteResponse,
    responses={**_UNAUTHORIZED, **_NOT_FOUND},
)
async def delete_link(
    link_id: str,
    owner: User = Depends(get_current_user),
    service: LinkService = Depends(get_link_service),
) -> LinkDeleteResponse:
    link = await service.delete(link_id, owner)
    return LinkDeleteResponse(
        message="Link deleted successfully",
        id=link_id,
        qr_code_image_url=link.qr_code_image_url,
    )


async def _redirect(
    ctx: RequestContext,
    resolver: RedirectResolver,
    short_id: str,
    alias: Optional[str],
    domain_prefix: Optional[str],
) -> RedirectResponse:
    ctx.logger.info(f"Redirect requested: alias={alias!r} short_id={short_id!r} domain={domain_prefix!r}")
    target = await resolver.resolve(short_id, alias=alias, domain_prefix=domain_prefix)
    return RedirectResponse(url=target, status_code=302)


@redirect_router.get("/{alias}/{short_id}", responses={302: {"description": "Redirect"}, **_NOT_FOUND})
async def redirect_with_alias(
    alias: str,
    short_id: str,
    ctx: RequestContext = Depends(get_request_context),
    resolver: RedirectResolver = Depends(get_redirect_resolver),
    domain_prefix: Optional[str] = Depends(get_domain_prefix),
) -> RedirectResponse:
    return await _redirect(ctx, resolver, short_id, alias, domain_prefix)


@redirect_router.get("/{short_id}", responses={302: {"description": "Redirect"}, **_NOT_FOUND})
async def redirect_to_url(
    short_id: str,
    ctx: RequestContext = Depends(get_request_context),
    resolver: RedirectResolver = Depends(get_redirect_resolver),
    domain_prefix: Optional[str] = Depends(get_domain_prefix),
) -> RedirectResponse:
    return await _redirect(ctx, resolver, short_id, None, domain_prefix)
