"""Alias allocation tests with a mocked link store."""

import uuid
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from shortlinks.allocator import AliasAllocation, AliasAllocator
from shortlinks.codec import ALPHABET
from shortlinks.errors import AllocationExhaustedError, ConflictError, InvalidInputError, UpgradeRequiredError
from shortlinks.schemas import PlanSnapshot


def make_plan(custom_alias_enabled: bool = True) -> PlanSnapshot:
    return PlanSnapshot(
        id=uuid.uuid4(),
        name="Pro",
        price_monthly=Decimal("9.99"),
        max_links_per_month=100,
        custom_alias_enabled=custom_alias_enabled,
        qr_enabled=True,
    )


@pytest.fixture
def mock_store() -> MagicMock:
    store = MagicMock()
    store.code_exists = AsyncMock(return_value=False)
    return store


@pytest.mark.asyncio
async def test_allocate_generates_code_from_alphabet(mock_store: MagicMock) -> None:
    allocation = await AliasAllocator(mock_store).allocate(make_plan())

    assert allocation.custom is False
    assert len(allocation.code) == 7
    assert all(c in ALPHABET for c in allocation.code)
    mock_store.code_exists.assert_awaited_once_with(allocation.code)


@pytest.mark.asyncio
async def test_allocate_retries_on_collision(mock_store: MagicMock) -> None:
    mock_store.code_exists.side_effect = [True, True, False]

    with patch("shortlinks.allocator.generate_alias", side_effect=["aaaaaaa", "bbbbbbb", "ccccccc"]):
        allocation = await AliasAllocator(mock_store).allocate(make_plan())

    assert allocation == AliasAllocation(code="ccccccc", custom=False)
    assert mock_store.code_exists.await_count == 3


@pytest.mark.asyncio
async def test_allocate_exhausts_after_bounded_attempts(mock_store: MagicMock) -> None:
    mock_store.code_exists.return_value = True

    with pytest.raises(AllocationExhaustedError) as exc_info:
        await AliasAllocator(mock_store, attempts=10).allocate(make_plan())

    assert exc_info.value.message == "Could not generate a unique alias. Try again."
    assert mock_store.code_exists.await_count == 10


@pytest.mark.asyncio
async def test_allocate_custom_alias(mock_store: MagicMock) -> None:
    allocation = await AliasAllocator(mock_store).allocate(make_plan(), "My-Docs_1")
    assert allocation == AliasAllocation(code="My-Docs_1", custom=True)


@pytest.mark.asyncio
async def test_allocate_custom_alias_requires_plan_feature(mock_store: MagicMock) -> None:
    with pytest.raises(UpgradeRequiredError):
        await AliasAllocator(mock_store).allocate(make_plan(custom_alias_enabled=False), "docs")
    mock_store.code_exists.assert_not_awaited()


@pytest.mark.asyncio
@pytest.mark.parametrize("alias", ["ab", "a" * 33, "no spaces", "bad!"])
async def test_allocate_custom_alias_invalid_shape(mock_store: MagicMock, alias: str) -> None:
    with pytest.raises(InvalidInputError) as exc_info:
        await AliasAllocator(mock_store).allocate(make_plan(), alias)
    assert "3–32 chars" in exc_info.value.message
    mock_store.code_exists.assert_not_awaited()


@pytest.mark.asyncio
@pytest.mark.parametrize("alias", ["health", "Metrics", "shortlinks", "api"])
async def test_allocate_custom_alias_reserved(mock_store: MagicMock, alias: str) -> None:
    with pytest.raises(InvalidInputError):
        await AliasAllocator(mock_store).allocate(make_plan(), alias)


@pytest.mark.asyncio
async def test_allocate_custom_alias_taken(mock_store: MagicMock) -> None:
    mock_store.code_exists.return_value = True

    with pytest.raises(ConflictError) as exc_info:
        await AliasAllocator(mock_store).allocate(make_plan(), "docs")

    assert exc_info.value.message == "Custom alias is already taken."


def test_collision_error_maps_by_alias_origin(mock_store: MagicMock) -> None:
    allocator = AliasAllocator(mock_store)
    assert isinstance(allocator.collision_error(AliasAllocation("docs", custom=True)), ConflictError)
    assert isinstance(
        allocator.collision_error(AliasAllocation("abcdefg", custom=False)), AllocationExhaustedError
    )
