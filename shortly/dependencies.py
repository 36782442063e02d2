"""Request-scoped dependency wiring.

Nothing here is a process-wide singleton except the immutable settings and
the logger: every request gets its own database session, link store,
allocator and resolver, built from the pieces below. Tests override
``get_db`` and ``get_short_id_generator`` to inject an isolated database
and a seeded random source.
"""

import logging
import time
import uuid
from dataclasses import dataclass, field
from typing import Optional

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from shortly.config import Settings, get_settings
from shortly.database import get_db
from shortly.domains import extract_domain_prefix
from shortly.exceptions import AuthenticationError
from shortly.identifiers import ShortIdAllocator, ShortIdGenerator
from shortly.link_service import LinkService
from shortly.models import User
from shortly.qrcodes import QRCodeEncoder
from shortly.resolver import RedirectResolver
from shortly.security import decode_access_token, extract_token
from shortly.store import LinkStore


def setup_logger(settings: Settings) -> logging.Logger:
    logger = logging.getLogger("shortly")
    if not logger.handlers:
        handler = logging.StreamHandler()
        formatter = logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
        handler.setFormatter(formatter)
        logger.addHandler(handler)
        logger.setLevel(settings.LOG_LEVEL)
    return logger


# ============================================================================
# LIGHTWEIGHT REQUEST CONTEXT
# ============================================================================


@dataclass
class RequestContext:
    """Per-request resources and tracking information.

    Attributes:
        database: Async database session for this request
        settings: Application settings
        request_id: Unique identifier for this request
        client_ip: Client IP address
        start_time: Request start timestamp
    """

    database: AsyncSession
    settings: Settings
    request_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    client_ip: Optional[str] = None
    start_time: float = field(default_factory=time.time)

    @property
    def logger(self) -> logging.LoggerAdapter:
        return logging.LoggerAdapter(
            setup_logger(self.settings),
            {"request_id": self.request_id, "client_ip": self.client_ip},
        )

    def get_duration(self) -> float:
        """Get request duration in milliseconds."""
        return (time.time() - self.start_time) * 1000


# ============================================================================
# DEPENDENCY FUNCTIONS
# ============================================================================


async def get_request_context(
    request: Request,
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_settings),
) -> RequestContext:
    return RequestContext(
        database=db,
        settings=settings,
        request_id=request.headers.get("x-request-id") or str(uuid.uuid4()),
        client_ip=request.client.host if request.client else None,
    )


def get_link_store(ctx: RequestContext = Depends(get_request_context)) -> LinkStore:
    return LinkStore(ctx.database)


def get_short_id_generator(settings: Settings = Depends(get_settings)) -> ShortIdGenerator:
    return ShortIdGenerator(length=settings.SHORT_ID_LENGTH)


def get_link_service(
    ctx: RequestContext = Depends(get_request_context),
    store: LinkStore = Depends(get_link_store),
    generator: ShortIdGenerator = Depends(get_short_id_generator),
) -> LinkService:
    allocator = ShortIdAllocator(store, generator, max_attempts=ctx.settings.SHORT_ID_MAX_ATTEMPTS)
    encoder = QRCodeEncoder(scale=ctx.settings.QR_CODE_SCALE, border=ctx.settings.QR_CODE_BORDER)
    return LinkService(store, allocator, encoder, logger=ctx.logger)


def get_redirect_resolver(
    ctx: RequestContext = Depends(get_request_context),
    store: LinkStore = Depends(get_link_store),
) -> RedirectResolver:
    return RedirectResolver(store, api_prefix=ctx.settings.API_DOMAIN_PREFIX)


def get_domain_prefix(request: Request, settings: Settings = Depends(get_settings)) -> Optional[str]:
    return extract_domain_prefix(request.headers.get("host"), settings.RESERVED_HOST_PREFIXES)


def get_base_url(request: Request, settings: Settings = Depends(get_settings)) -> str:
    return (settings.BASE_URL or str(request.base_url)).rstrip("/")


async def get_optional_user(
    request: Request,
    ctx: RequestContext = Depends(get_request_context),
    store: LinkStore = Depends(get_link_store),
) -> Optional[User]:
    """Resolve the caller from cookie or bearer token; ``None`` when no credentials are sent.

    Raises:
        AuthenticationError: Credentials were sent but are invalid or name an unknown user.
    """
    token = extract_token(
        request.cookies.get(ctx.settings.AUTH_COOKIE_NAME),
        request.headers.get("authorization"),
    )
    if token is None:
        return None
    user_id = decode_access_token(token, ctx.settings)
    user = await store.get_user(user_id)
    if user is None:
        ctx.logger.warning(f"Token for unknown user {user_id}")
        raise AuthenticationError("User not found")
    return user


async def get_current_user(user: Optional[User] = Depends(get_optional_user)) -> User:
    if user is None:
        raise AuthenticationError()
    return user
