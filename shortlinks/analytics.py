"""Click analytics for the link details view.

Everything here is a pure function of the link and its full click list;
the caller loads the clicks up front.

Key Behaviours
===============
- The histogram always has 7 buckets, oldest first, ending at today (UTC);
  empty days are reported with a count of 0.
- Referrers are reduced to a host (or "Direct") and grouped
  case-insensitively; ties in the top list keep first-seen order.
- Raw referrer and user-agent strings are never returned.

Functions:
    normalize_referrer():  Reduce a raw Referer header to a host or "Direct".
    summarize_user_agent():  Reduce a raw User-Agent to "browser • os[ • Mobile]".
    clicks_last_days():  Zero-filled daily histogram.
    top_referrers():  Ranked referrer groups.

Classes:
    AnalyticsAggregator:  Builds the ShortLinkDetails view.
"""

import datetime
from collections.abc import Callable, Sequence
from urllib.parse import urlsplit

from shortlinks.codec import build_short_url
from shortlinks.models import LinkClick, ShortLink
from shortlinks.schemas import ClickEventView, DailyClicks, ShortLinkDetails, TopReferrer

__all__ = [
    "DIRECT_REFERRER",
    "UNKNOWN_USER_AGENT",
    "HISTOGRAM_DAYS",
    "TOP_REFERRERS_LIMIT",
    "RECENT_EVENTS_LIMIT",
    "normalize_referrer",
    "summarize_user_agent",
    "clicks_last_days",
    "unique_referrer_count",
    "top_referrers",
    "recent_events",
    "AnalyticsAggregator",
]

DIRECT_REFERRER = "Direct"
UNKNOWN_USER_AGENT = "Unknown"
HISTOGRAM_DAYS = 7
TOP_REFERRERS_LIMIT = 10
RECENT_EVENTS_LIMIT = 100


def as_utc(value: datetime.datetime) -> datetime.datetime:
    # SQLite hands back naive datetimes; everything stored is UTC.
    if value.tzinfo is None:
        return value.replace(tzinfo=datetime.UTC)
    return value.astimezone(datetime.UTC)


def normalize_referrer(raw: str | None) -> str:
    if not raw:
        return DIRECT_REFERRER

    try:
        parts = urlsplit(raw)
        host = parts.hostname if parts.scheme and parts.netloc else None
    except ValueError:
        host = None
    if host:
        return host

    remainder = raw
    lowered = remainder.lower()
    if lowered.startswith("http://"):
        remainder = remainder[len("http://"):]
    elif lowered.startswith("https://"):
        remainder = remainder[len("https://"):]

    remainder = remainder.split("/", 1)[0]
    return remainder or DIRECT_REFERRER


def _contains(haystack: str, needle: str) -> bool:
    return needle.lower() in haystack


def summarize_user_agent(ua: str | None) -> str:
    if not ua:
        return UNKNOWN_USER_AGENT

    u = ua.lower()

    if _contains(u, "Edg/"):
        browser = "Edge"
    elif _contains(u, "Chrome/"):
        browser = "Chrome"
    elif _contains(u, "Firefox/"):
        browser = "Firefox"
    elif _contains(u, "Safari/"):
        browser = "Safari"
    else:
        browser = "Other"

    if _contains(u, "Windows"):
        os_name = "Windows"
    elif _contains(u, "Mac OS X"):
        os_name = "macOS"
    elif _contains(u, "Android"):
        os_name = "Android"
    elif _contains(u, "iPhone") or _contains(u, "iPad"):
        os_name = "iOS"
    elif _contains(u, "Linux"):
        os_name = "Linux"
    else:
        os_name = "Other"

    mobile = _contains(u, "Mobile") or os_name in ("Android", "iOS")
    if mobile:
        return f"{browser} • {os_name} • Mobile"
    return f"{browser} • {os_name}"


def clicks_last_days(
    clicks: Sequence[LinkClick],
    today: datetime.date,
    days: int = HISTOGRAM_DAYS,
) -> list[DailyClicks]:
    first_day = today - datetime.timedelta(days=days - 1)
    counts: dict[datetime.date, int] = {}
    for click in clicks:
        day = as_utc(click.clicked_at).date()
        if first_day <= day <= today:
            counts[day] = counts.get(day, 0) + 1

    histogram = []
    for offset in range(days):
        day = first_day + datetime.timedelta(days=offset)
        histogram.append(DailyClicks(date=day.isoformat(), count=counts.get(day, 0)))
    return histogram


def unique_referrer_count(referrers: Sequence[str]) -> int:
    return len({r.casefold() for r in referrers})


def top_referrers(referrers: Sequence[str], limit: int = TOP_REFERRERS_LIMIT) -> list[TopReferrer]:
    # dicts keep insertion order, so groups stay in first-seen order
    groups: dict[str, TopReferrer] = {}
    for referrer in referrers:
        key = referrer.casefold()
        group = groups.get(key)
        if group is None:
            groups[key] = TopReferrer(referrer=referrer, count=1)
        else:
            group.count += 1
    ranked = sorted(groups.values(), key=lambda g: g.count, reverse=True)
    return ranked[:limit]


def recent_events(clicks: Sequence[LinkClick], limit: int = RECENT_EVENTS_LIMIT) -> list[ClickEventView]:
    newest_first = sorted(clicks, key=lambda c: as_utc(c.clicked_at), reverse=True)
    return [
        ClickEventView(
            id=click.id,
            clicked_at=as_utc(click.clicked_at),
            referrer=normalize_referrer(click.referrer),
            ua=summarize_user_agent(click.user_agent),
        )
        for click in newest_first[:limit]
    ]


class AnalyticsAggregator:
    def __init__(
        self,
        base_url: str,
        clock: Callable[[], datetime.datetime] | None = None,
    ) -> None:
        self._base_url = base_url
        self._clock = clock or (lambda: datetime.datetime.now(datetime.UTC))

    def compute(
        self,
        link: ShortLink,
        clicks: Sequence[LinkClick],
        now: datetime.datetime | None = None,
    ) -> ShortLinkDetails:
        today = as_utc(now or self._clock()).date()
        referrers = [normalize_referrer(c.referrer) for c in clicks]
        qr_code = link.qr_code

        return ShortLinkDetails(
            id=link.id,
            alias=link.short_code,
            short_url=build_short_url(self._base_url, link.short_code),
            original_url=link.original_url,
            created_at=as_utc(link.created_at),
            qr_enabled=qr_code is not None,
            qr_url=qr_code.file_url if qr_code is not None else None,
            total_clicks=link.total_clicks,
            unique_referrers=unique_referrer_count(referrers),
            clicks_last_7_days=clicks_last_days(clicks, today),
            top_referrers=top_referrers(referrers),
            recent_events=recent_events(clicks),
        )
