"""Plan enforcement for link creation."""

import datetime
import logging
import uuid

from shortlinks.errors import UpgradeRequiredError
from shortlinks.metrics import QUOTA_REJECTIONS_TOTAL
from shortlinks.schemas import PlanSnapshot
from shortlinks.store import LinkStore
from shortlinks.subscriptions import SubscriptionDirectory

__all__ = ["QuotaGate"]


class QuotaGate:
    """Checks the caller's active plan before a link is allocated.

    The monthly window is the UTC calendar month at call time, counted by
    link creation timestamp. Soft-deleted links still count, so deleting a
    link does not give the quota back.
    """

    def __init__(
        self,
        directory: SubscriptionDirectory,
        store: LinkStore,
        logger: logging.Logger | logging.LoggerAdapter | None = None,
    ) -> None:
        self._directory = directory
        self._store = store
        self._logger = logger or logging.getLogger("shortlinks")

    async def authorize(
        self,
        user_id: uuid.UUID,
        wants_custom_alias: bool,
        wants_qr: bool,
        now: datetime.datetime | None = None,
    ) -> PlanSnapshot:
        """Return the caller's plan, or raise UpgradeRequiredError.

        Raises:
            UpgradeRequiredError: no active plan, monthly cap reached, or a
                requested feature (custom alias, QR) is not on the plan.
        """
        plan = await self._directory.get_active_plan(user_id)
        if plan is None:
            self._reject("no_plan", f"Create blocked: no active plan. UserId={user_id}")
            raise UpgradeRequiredError("Upgrade required: No active plan.")

        now = now or datetime.datetime.now(datetime.UTC)
        created = await self._store.count_created_in_month(user_id, now)
        if created >= plan.max_links_per_month:
            self._reject(
                "monthly_limit",
                f"Create blocked: monthly limit reached. UserId={user_id}, "
                f"Limit={plan.max_links_per_month}, Created={created}",
            )
            raise UpgradeRequiredError(
                f"Upgrade required: You reached the monthly limit ({plan.max_links_per_month} links/month)."
            )

        if wants_custom_alias and not plan.custom_alias_enabled:
            self._reject("custom_alias", f"Create blocked: custom alias not allowed by plan. UserId={user_id}")
            raise UpgradeRequiredError("Upgrade required: Custom alias is not available on your plan.")

        if wants_qr and not plan.qr_enabled:
            self._reject("qr", f"Create blocked: QR not allowed by plan. UserId={user_id}")
            raise UpgradeRequiredError("Upgrade required: QR codes are not available on your plan.")

        return plan

    def _reject(self, reason: str, message: str) -> None:
        QUOTA_REJECTIONS_TOTAL.labels(reason=reason).inc()
        self._logger.warning(message)
