"""Redirect resolution across the default and custom-domain namespaces.

Every short identifier is globally unique, so a request can match at most
one link. The strategy chain below decides whether *this* request, arriving
on *this* domain prefix, is allowed to resolve it.

Resolution Chain
================
::
    ┌──────────────────────┐  MATCH   ┌──────────────┐
    │ PremiumOwnerStrategy ├─────────►│ alias check  │
    └──────────┬───────────┘          │ expiry check │
        NO_MATCH│   DENIED ──► 404    │ active check │
                ▼                     └──────┬───────┘
    ┌──────────────────────┐  MATCH          │
    │ DomainTenantStrategy ├────────►────────┤
    └──────────┬───────────┘                 ▼
        NO_MATCH│                    302 original_url
                ▼                    410 expired/inactive
    ┌──────────────────────┐  MATCH
    │ RegularLinkStrategy  ├────────►─── (same checks)
    └──────────┬───────────┘
        NO_MATCH│
                ▼
               404

Key Behaviours
===============
- A premium link requested through a foreign domain prefix is reported as
  not found, exactly like a missing link.
- The reserved API prefix (``"api"`` by default) may resolve any link.
- The regular fallback never returns a link owned by a premium user with a
  custom domain prefix.
- A link is expired only when now is strictly after ``expires_at``.

Classes:
    ResolveRequest:  Inputs taken from the request path and host.
    StrategyResult:  Outcome of a single strategy.
    RedirectResolver:  Runs the chain and applies the link state checks.
"""

import datetime
import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from typing import Optional, Protocol

from prometheus_client import Counter

from shortly.enums import RequestStatus, ResolutionOutcome
from shortly.exceptions import GoneError, NotFoundError
from shortly.models import Link, utcnow
from shortly.store import LinkStore

__all__ = [
    "ResolveRequest",
    "StrategyResult",
    "ResolutionStrategy",
    "PremiumOwnerStrategy",
    "DomainTenantStrategy",
    "RegularLinkStrategy",
    "RedirectResolver",
]

REDIRECT_REQUESTS_TOTAL = Counter(
    "shortly_redirect_requests_total",
    "Redirect resolutions by outcome",
    ["status"],
)

logger = logging.getLogger("shortly")


@dataclass(frozen=True)
class ResolveRequest:
    short_id: str
    alias: Optional[str] = None
    domain_prefix: Optional[str] = None


@dataclass(frozen=True)
class StrategyResult:
    outcome: ResolutionOutcome
    link: Optional[Link] = None

    @classmethod
    def match(cls, link: Link) -> "StrategyResult":
        return cls(ResolutionOutcome.MATCH, link)

    @classmethod
    def no_match(cls) -> "StrategyResult":
        return cls(ResolutionOutcome.NO_MATCH)

    @classmethod
    def denied(cls) -> "StrategyResult":
        return cls(ResolutionOutcome.DENIED)


class ResolutionStrategy(Protocol):
    name: str

    async def __call__(self, store: LinkStore, request: ResolveRequest) -> StrategyResult: ...


class PremiumOwnerStrategy:
    """Links owned by a premium user resolve only on that user's domain or the API domain."""

    name = "premium_owner"

    def __init__(self, api_prefix: str):
        self.api_prefix = api_prefix

    async def __call__(self, store: LinkStore, request: ResolveRequest) -> StrategyResult:
        link = await store.get_link_with_owner(request.short_id)
        if link is None or link.owner is None or not link.owner.has_custom_domain:
            return StrategyResult.no_match()
        if request.domain_prefix == self.api_prefix:
            return StrategyResult.match(link)
        # Host labels are case-insensitive.
        owner_prefix = link.owner.custom_domain_prefix.lower()
        if request.domain_prefix and request.domain_prefix.lower() == owner_prefix:
            return StrategyResult.match(link)
        return StrategyResult.denied()


class DomainTenantStrategy:
    """Look the identifier up inside the premium tenant that owns the request's domain prefix."""

    name = "domain_tenant"

    async def __call__(self, store: LinkStore, request: ResolveRequest) -> StrategyResult:
        if not request.domain_prefix:
            return StrategyResult.no_match()
        tenant = await store.get_premium_user_by_prefix(request.domain_prefix)
        if tenant is None:
            return StrategyResult.no_match()
        link = await store.get_link_for_owner(request.short_id, tenant.id)
        return StrategyResult.match(link) if link is not None else StrategyResult.no_match()


class RegularLinkStrategy:
    """Anonymous links and links of users without a custom domain."""

    name = "regular"

    async def __call__(self, store: LinkStore, request: ResolveRequest) -> StrategyResult:
        link = await store.get_regular_link(request.short_id)
        return StrategyResult.match(link) if link is not None else StrategyResult.no_match()


class RedirectResolver:
    """Resolve a short path to its target URL.

    Args:
        store: Link record store for the current request.
        api_prefix: Domain prefix allowed to resolve every namespace.
        clock: Returns the current UTC time; injected by tests for expiry checks.
        strategies: Ordered chain; defaults to premium owner, domain tenant, regular.
    """

    def __init__(
        self,
        store: LinkStore,
        api_prefix: str = "api",
        clock: Callable[[], datetime.datetime] = utcnow,
        strategies: Optional[Sequence[ResolutionStrategy]] = None,
    ):
        self._store = store
        self._clock = clock
        self.strategies: Sequence[ResolutionStrategy] = strategies or (
            PremiumOwnerStrategy(api_prefix),
            DomainTenantStrategy(),
            RegularLinkStrategy(),
        )

    async def find(self, request: ResolveRequest) -> Link:
        """Run the strategy chain and return the selected link, without state checks."""
        for strategy in self.strategies:
            result = await strategy(self._store, request)
            if result.outcome is ResolutionOutcome.MATCH:
                logger.debug(f"Short id {request.short_id} matched by {strategy.name}")
                return result.link
            if result.outcome is ResolutionOutcome.DENIED:
                logger.info(
                    f"Short id {request.short_id} denied by {strategy.name} "
                    f"for domain prefix {request.domain_prefix!r}"
                )
                break
        raise NotFoundError()

    async def resolve(
        self,
        short_id: str,
        alias: Optional[str] = None,
        domain_prefix: Optional[str] = None,
    ) -> str:
        """Return the original URL for a short path.

        Raises:
            NotFoundError: No link, a foreign domain, or an alias that does not match.
            GoneError: The link has expired or was deactivated.
        """
        request = ResolveRequest(short_id=short_id, alias=alias, domain_prefix=domain_prefix)
        try:
            link = await self.find(request)
            if alias is not None and link.custom_alias != alias:
                raise NotFoundError()
            if link.is_expired(self._clock()):
                raise GoneError("Link has expired")
            if not link.active:
                raise GoneError("Link is inactive")
        except NotFoundError:
            REDIRECT_REQUESTS_TOTAL.labels(status=RequestStatus.NOT_FOUND).inc()
            raise
        except GoneError:
            REDIRECT_REQUESTS_TOTAL.labels(status=RequestStatus.GONE).inc()
            raise

        REDIRECT_REQUESTS_TOTAL.labels(status=RequestStatus.SUCCESS).inc()
        return link.original_url
