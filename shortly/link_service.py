"""Link lifecycle service: create, list, read, update and delete links.

Creation Flow
=============
::
    ┌─────────────┐
    │ POST /links │
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ Validate    │  (LinkCreate schema)
    │ URL & alias │
    └──────┬──────┘
           ▼
    ┌─────────────┐  TAKEN
    │ Alias free? ├─────────► 400 ValidationError
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ Render QR   │  (only when isQrCode)
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ Allocate    │◄──────────────┐
    │ short id    │               │ IntegrityError and
    └──────┬──────┘               │ alias still free
           ▼                      │
    ┌─────────────┐               │
    │ INSERT link ├───────────────┘
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ 201 + short │
    │ URL         │
    └─────────────┘

Key Behaviours
===============
- Read, update and delete are scoped to the owner. A link owned by someone
  else is reported as not found.
- The public short URL is composed when a response is built, from the base
  URL or the owner's custom domain. Stored records never contain a host.
- Past expiry timestamps are accepted; such links resolve as expired.

Classes:
    LinkService:  Owner-scoped link operations.
"""

import logging
import time
from collections.abc import Sequence
from typing import Optional

from prometheus_client import Counter, Histogram
from sqlalchemy.exc import IntegrityError

from shortly.domains import compose_short_url
from shortly.enums import RequestStatus
from shortly.exceptions import AllocationError, NotFoundError, ValidationError
from shortly.identifiers import ShortIdAllocator
from shortly.models import Link, User, as_utc
from shortly.qrcodes import QRCodeEncoder
from shortly.schemas import LinkCreate, LinkResponse, LinkUpdate
from shortly.store import LinkStore

__all__ = ["LinkService"]

LINK_CREATION_REQUESTS_TOTAL = Counter(
    "shortly_link_creation_requests_total",
    "Total link creation requests",
    ["status"],
)
LINK_CREATION_DURATION = Histogram(
    "shortly_link_creation_duration_seconds",
    "Time taken to create links",
    buckets=[0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0],
)
INSERT_CONFLICTS_TOTAL = Counter(
    "shortly_link_insert_conflicts_total",
    "Inserts rejected by a unique index and retried with a new short id",
)


class LinkService:
    """Owner-scoped link operations.

    Example:
        >>> service = LinkService(store, allocator, QRCodeEncoder())
        >>> link = await service.create(LinkCreate(original_url="https://example.com"))
        >>> service.to_response(link, owner=None, base_url="https://sho.rt").short_url
        'https://sho.rt/aZ3kQ9'
    """

    def __init__(
        self,
        store: LinkStore,
        allocator: ShortIdAllocator,
        qr_encoder: QRCodeEncoder,
        logger: Optional[logging.Logger | logging.LoggerAdapter] = None,
    ):
        self._store = store
        self._allocator = allocator
        self._qr_encoder = qr_encoder
        self._logger = logger or logging.getLogger("shortly")

    async def create(self, payload: LinkCreate, owner: Optional[User] = None) -> Link:
        """Create a link, optionally owned by ``owner``.

        Raises:
            ValidationError: The custom alias is already in use.
            AllocationError: No free short identifier within the retry cap.
        """
        start_time = time.perf_counter()
        try:
            link = await self._create(payload, owner)
        except ValidationError as exc:
            LINK_CREATION_REQUESTS_TOTAL.labels(status=RequestStatus.VALIDATION_ERROR).inc()
            self._logger.warning(f"Link creation rejected: {exc.message}")
            raise
        except Exception as exc:
            LINK_CREATION_REQUESTS_TOTAL.labels(status=RequestStatus.ERROR).inc()
            self._logger.error(f"Link creation error: {exc}")
            raise
        finally:
            LINK_CREATION_DURATION.observe(time.perf_counter() - start_time)

        LINK_CREATION_REQUESTS_TOTAL.labels(status=RequestStatus.SUCCESS).inc()
        self._logger.info(f"Link created: {link.path} (owner={link.owner_user_id or 'anonymous'})")
        return link

    async def _create(self, payload: LinkCreate, owner: Optional[User]) -> Link:
        alias = payload.custom_alias
        if alias and await self._store.alias_exists(alias):
            raise ValidationError("Custom alias already in use")

        qr_code_image_url = None
        if payload.is_qr_code:
            qr_code_image_url = self._qr_encoder.encode(payload.original_url)

        owner_user_id = owner.id if owner is not None else None
        for _ in range(self._allocator.max_attempts):
            short_id = await self._allocator.allocate()
            link = Link(
                original_url=payload.original_url,
                short_id=short_id,
                custom_alias=alias,
                expires_at=as_utc(payload.expires_at),
                owner_user_id=owner_user_id,
                qr_code_image_url=qr_code_image_url,
            )
            try:
                return await self._store.add_link(link)
            except IntegrityError:
                # The rollback expired every loaded instance, the owner included.
                if owner is not None:
                    await self._store.refresh(owner)
                if alias and await self._store.alias_exists(alias):
                    raise ValidationError("Custom alias already in use")
                INSERT_CONFLICTS_TOTAL.inc()
                self._logger.warning(f"Short id {short_id} was taken concurrently, retrying")

        raise AllocationError()

    async def list(self, owner: User) -> Sequence[Link]:
        links = await self._store.list_links_for_owner(owner.id)
        self._logger.debug(f"Listed {len(links)} links for user {owner.id}")
        return links

    async def get(self, link_id: str, owner: User) -> Link:
        link = await self._store.get_owned_link(link_id, owner.id)
        if link is None:
            raise NotFoundError()
        return link

    async def update(self, link_id: str, owner: User, payload: LinkUpdate) -> Link:
        """Apply the fields present in ``payload``; omitted fields are left unchanged."""
        link = await self.get(link_id, owner)
        fields = payload.model_fields_set
        if "original_url" in fields:
            link.original_url = payload.original_url
        if "expires_at" in fields:
            link.expires_at = as_utc(payload.expires_at)
        if "active" in fields:
            link.active = payload.active
        link = await self._store.save_link(link)
        self._logger.info(f"Link updated: {link.id} fields={sorted(fields)}")
        return link

    async def delete(self, link_id: str, owner: User) -> Link:
        link = await self.get(link_id, owner)
        await self._store.delete_link(link)
        self._logger.info(f"Link deleted: {link_id}")
        return link

    def to_response(self, link: Link, owner: Optional[User], base_url: str) -> LinkResponse:
        """Build the API view of ``link``, composing its public short URL."""
        domain_prefix = owner.custom_domain_prefix if owner is not None and owner.has_custom_domain else None
        return LinkResponse(
            id=link.id,
            short_url=compose_short_url(base_url, link.path, domain_prefix),
            short_id=link.short_id,
            custom_alias=link.custom_alias,
            original_url=link.original_url,
            expires_at=as_utc(link.expires_at),
            active=link.active,
            is_expired=link.is_expired(),
            is_premium_url=domain_prefix is not None,
            qr_code_image_url=link.qr_code_image_url,
            created_at=as_utc(link.created_at),
            updated_at=as_utc(link.updated_at),
        )
