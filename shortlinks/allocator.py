"""Alias allocation under uniqueness and plan constraints.

Flow Diagram — allocate()
=========================
::
    ┌─────────────┐
    │ custom alias │
    │ supplied?    │
    └──────┬──────┘
    ┌─────┴──────────────┐
    │ YES                 │ NO
    ▼                     ▼
┌────────────────┐  ┌──────────────────┐
│ plan allows?   │  │ generate_alias() │◄──┐
│ shape valid?   │  └────────┬─────────┘   │
│ not reserved?  │     TAKEN? │             │
│ not taken?     │  ┌─────┴─────┐          │
└───────┬────────┘  │ YES        │ NO      │
        ▼           ▼            ▼         │
   custom code   attempts left? generated  │
                 ├─ YES ────────────────────┘
                 └─ NO → AllocationExhaustedError

Key Behaviours
===============
- The existence checks are advisory; the live-alias unique index decides.
  A late index violation is translated by collision_error().
- Custom aliases are a scarce, user-chosen resource: taken means Conflict.
- Generated aliases are abundant: blind retry is cheaper than coordination.
"""

import logging
from dataclasses import dataclass

from shortlinks.codec import DEFAULT_ALIAS_LENGTH, generate_alias, is_valid_alias
from shortlinks.errors import (
    AllocationExhaustedError,
    ConflictError,
    InvalidInputError,
    ShortLinkError,
    UpgradeRequiredError,
)
from shortlinks.metrics import ALIAS_COLLISIONS_TOTAL
from shortlinks.schemas import PlanSnapshot
from shortlinks.store import LinkStore

__all__ = ["AliasAllocation", "AliasAllocator", "RESERVED_ALIASES", "DEFAULT_ATTEMPTS"]

DEFAULT_ATTEMPTS = 10

# Top-level routes that would shadow a short code.
RESERVED_ALIASES = frozenset({"health", "metrics", "api", "shortlinks"})


@dataclass(frozen=True)
class AliasAllocation:
    code: str
    custom: bool


class AliasAllocator:
    def __init__(
        self,
        store: LinkStore,
        logger: logging.Logger | logging.LoggerAdapter | None = None,
        length: int = DEFAULT_ALIAS_LENGTH,
        attempts: int = DEFAULT_ATTEMPTS,
    ) -> None:
        assert attempts > 0, f"attempts must be positive, got {attempts!r}"
        self._store = store
        self._logger = logger or logging.getLogger("shortlinks")
        self._length = length
        self._attempts = attempts

    async def allocate(self, plan: PlanSnapshot, custom_alias: str | None = None) -> AliasAllocation:
        if custom_alias is not None:
            return await self._claim_custom(plan, custom_alias)
        return await self._generate_unique()

    def collision_error(self, allocation: AliasAllocation) -> ShortLinkError:
        """Translate a unique-index violation on save into the caller-facing failure."""
        if allocation.custom:
            ALIAS_COLLISIONS_TOTAL.labels(source="custom").inc()
            self._logger.warning(f"Custom alias lost a concurrent insert race: {allocation.code}")
            return ConflictError()
        ALIAS_COLLISIONS_TOTAL.labels(source="generated").inc()
        self._logger.error(f"Generated alias collided on insert: {allocation.code}")
        return AllocationExhaustedError()

    async def _claim_custom(self, plan: PlanSnapshot, alias: str) -> AliasAllocation:
        if not plan.custom_alias_enabled:
            raise UpgradeRequiredError("Upgrade required: Custom alias is not available on your plan.")

        if not is_valid_alias(alias):
            self._logger.warning(f"Invalid custom alias: {alias!r}")
            raise InvalidInputError("Custom alias must be 3–32 chars (letters, numbers, - or _).")

        if alias.lower() in RESERVED_ALIASES:
            self._logger.warning(f"Reserved custom alias requested: {alias}")
            raise InvalidInputError(f"Custom alias '{alias}' is reserved.")

        if await self._store.code_exists(alias):
            ALIAS_COLLISIONS_TOTAL.labels(source="custom").inc()
            self._logger.warning(f"Custom alias taken: {alias}")
            raise ConflictError()

        return AliasAllocation(code=alias, custom=True)

    async def _generate_unique(self) -> AliasAllocation:
        for attempt in range(1, self._attempts + 1):
            candidate = generate_alias(self._length)
            if not await self._store.code_exists(candidate):
                return AliasAllocation(code=candidate, custom=False)
            ALIAS_COLLISIONS_TOTAL.labels(source="generated").inc()
            self._logger.debug(f"Generated alias collision on attempt {attempt}: {candidate}")

        self._logger.error(f"Could not generate a unique alias after {self._attempts} attempts")
        raise AllocationExhaustedError()
