"""Service-level tests for the link lifecycle, including insert races."""

import datetime
import random

import pytest
from sqlalchemy import func, select

from shortly.exceptions import AllocationError, NotFoundError, ValidationError
from shortly.identifiers import ShortIdAllocator, ShortIdGenerator
from shortly.link_service import LinkService
from shortly.models import Link
from shortly.qrcodes import QRCodeEncoder
from shortly.schemas import LinkCreate, LinkUpdate
from shortly.store import LinkStore


class SequenceGenerator(ShortIdGenerator):
    def __init__(self, candidates: list[str]):
        super().__init__(length=6)
        self._candidates = iter(candidates)

    def generate(self, length=None) -> str:
        return next(self._candidates)


class RacingStore(LinkStore):
    """Lets a competing writer insert a conflicting link just before our insert."""

    def __init__(self, db, **competitor_fields):
        super().__init__(db)
        self._competitor_fields = competitor_fields
        self.raced = False

    async def add_link(self, link: Link) -> Link:
        if not self.raced:
            self.raced = True
            competitor = Link(original_url="https://competitor.example.com", **self._competitor_fields)
            if competitor.short_id is None:
                competitor.short_id = "other9"
            await super().add_link(competitor)
        return await super().add_link(link)


def make_service(store: LinkStore, generator: ShortIdGenerator, max_attempts: int = 50) -> LinkService:
    return LinkService(store, ShortIdAllocator(store, generator, max_attempts=max_attempts), QRCodeEncoder())


async def count_links(db_session) -> int:
    return (await db_session.execute(select(func.count()).select_from(Link))).scalar_one()


@pytest.mark.asyncio
async def test_create_anonymous_link(db_session) -> None:
    service = make_service(LinkStore(db_session), ShortIdGenerator(rng=random.Random(3)))
    link = await service.create(LinkCreate(original_url="https://example.com"))

    assert link.is_anonymous
    assert len(link.short_id) == 6
    assert link.active is True
    assert link.expires_at is None
    assert link.qr_code_image_url is None
    assert link.created_at is not None


@pytest.mark.asyncio
async def test_created_short_id_did_not_exist_before(db_session, create_link) -> None:
    await create_link("dup001")
    service = make_service(LinkStore(db_session), SequenceGenerator(["dup001", "new002"]))

    link = await service.create(LinkCreate(original_url="https://example.com"))
    assert link.short_id == "new002"


@pytest.mark.asyncio
async def test_taken_alias_fails_without_writing(db_session, create_link) -> None:
    await create_link("abc123", custom_alias="promo")
    service = make_service(LinkStore(db_session), ShortIdGenerator())

    with pytest.raises(ValidationError, match="alias already in use"):
        await service.create(LinkCreate(original_url="https://example.com", custom_alias="promo"))
    assert await count_links(db_session) == 1


@pytest.mark.asyncio
async def test_insert_race_on_short_id_retries_with_new_id(db_session) -> None:
    store = RacingStore(db_session, short_id="race01")
    service = make_service(store, SequenceGenerator(["race01", "next02"]))

    link = await service.create(LinkCreate(original_url="https://example.com"))

    assert store.raced
    assert link.short_id == "next02"
    assert await count_links(db_session) == 2


@pytest.mark.asyncio
async def test_insert_race_on_alias_is_validation_error(db_session) -> None:
    store = RacingStore(db_session, custom_alias="promo")
    service = make_service(store, SequenceGenerator(["mine01", "mine02"]))

    with pytest.raises(ValidationError):
        await service.create(LinkCreate(original_url="https://example.com", custom_alias="promo"))
    assert await count_links(db_session) == 1


@pytest.mark.asyncio
async def test_allocation_exhaustion(db_session, create_link) -> None:
    await create_link("same01")
    service = make_service(LinkStore(db_session), SequenceGenerator(["same01"] * 3), max_attempts=3)

    with pytest.raises(AllocationError):
        await service.create(LinkCreate(original_url="https://example.com"))


@pytest.mark.asyncio
async def test_past_expiry_is_accepted(db_session) -> None:
    service = make_service(LinkStore(db_session), ShortIdGenerator())
    past = datetime.datetime(2020, 1, 1, tzinfo=datetime.timezone.utc)

    link = await service.create(LinkCreate(original_url="https://example.com", expires_at=past))
    assert link.is_expired()


@pytest.mark.asyncio
async def test_qr_code_is_png_data_uri(db_session) -> None:
    service = make_service(LinkStore(db_session), ShortIdGenerator())
    link = await service.create(LinkCreate(original_url="https://example.com", is_qr_code=True))

    assert link.qr_code_image_url.startswith("data:image/png;base64,")


@pytest.mark.asyncio
async def test_ownership_scoping(db_session, create_user) -> None:
    owner = await create_user("owner@example.com")
    intruder = await create_user("intruder@example.com")
    service = make_service(LinkStore(db_session), ShortIdGenerator())
    link = await service.create(LinkCreate(original_url="https://example.com"), owner)

    assert (await service.get(link.id, owner)).id == link.id
    assert [item.id for item in await service.list(owner)] == [link.id]
    assert list(await service.list(intruder)) == []
    with pytest.raises(NotFoundError):
        await service.get(link.id, intruder)
    with pytest.raises(NotFoundError):
        await service.update(link.id, intruder, LinkUpdate(active=False))
    with pytest.raises(NotFoundError):
        await service.delete(link.id, intruder)


@pytest.mark.asyncio
async def test_update_is_partial(db_session, create_user) -> None:
    owner = await create_user("owner@example.com")
    service = make_service(LinkStore(db_session), ShortIdGenerator())
    expiry = datetime.datetime(2030, 6, 1, tzinfo=datetime.timezone.utc)
    link = await service.create(
        LinkCreate(original_url="https://example.com", expires_at=expiry), owner
    )

    link = await service.update(link.id, owner, LinkUpdate(active=False))
    assert link.active is False
    assert link.original_url == "https://example.com"
    assert link.expires_at is not None

    link = await service.update(link.id, owner, LinkUpdate.model_validate({"expiresAt": None}))
    assert link.expires_at is None
    assert link.active is False

    link = await service.update(link.id, owner, LinkUpdate(original_url="https://changed.example.com"))
    assert link.original_url == "https://changed.example.com"


@pytest.mark.asyncio
async def test_delete_removes_link(db_session, create_user) -> None:
    owner = await create_user("owner@example.com")
    service = make_service(LinkStore(db_session), ShortIdGenerator())
    link = await service.create(LinkCreate(original_url="https://example.com"), owner)

    await service.delete(link.id, owner)
    assert await count_links(db_session) == 0


@pytest.mark.asyncio
async def test_response_uses_custom_domain_for_premium_owner(db_session, create_user) -> None:
    premium = await create_user("p@example.com", is_premium=True, custom_domain_prefix="alice")
    service = make_service(LinkStore(db_session), SequenceGenerator(["abc123"]))
    link = await service.create(LinkCreate(original_url="https://example.com", custom_alias="promo"), premium)

    response = service.to_response(link, premium, "https://sho.rt")
    assert response.short_url == "https://alice.sho.rt/promo/abc123"
    assert response.is_premium_url is True

    anonymous = service.to_response(link, None, "https://sho.rt")
    assert anonymous.short_url == "https://sho.rt/promo/abc123"
    assert anonymous.is_premium_url is False
