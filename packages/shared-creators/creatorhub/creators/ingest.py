"""Sample order ingestion.

Pages through the shop's order feed, keeps only sample orders and links the
receiving creator to its third-party user id. For sample orders the order's
``user_id`` is the creator's marketplace user id, not a customer.
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable, Generator
from datetime import UTC, datetime
from typing import Any

from creatorhub.creators.client import ORDER_SEARCH_PATH, Pacer, QuotaBudget, RequestExecutor
from creatorhub.creators.config import EnrichmentSettings, RunType, StopReason
from creatorhub.creators.exceptions import (
    AuthenticationError,
    CreatorSyncError,
    QuotaExceededError,
)
from creatorhub.creators.identity import IdentitySignals, MatchResolver
from creatorhub.creators.masking import normalize_phone, parse_name
from creatorhub.creators.merge import MergePolicy
from creatorhub.creators.models import Creator
from creatorhub.creators.stats import RunStats
from creatorhub.creators.store.base import CreatorStore

logger = logging.getLogger(__name__)

# district_info level names mapped onto creator fields
DISTRICT_LEVELS = {
    "City": "city",
    "State": "state",
    "Country": "country",
}


def contact_from_recipient(recipient: dict[str, Any] | None) -> dict[str, Any]:
    """Map an order's ``recipient_address`` onto creator contact fields.

    Values are passed through as received (possibly masked); the merge
    policy decides what may be written.
    """
    recipient = recipient or {}
    first_name, last_name = parse_name(recipient.get("name"))
    contact: dict[str, Any] = {
        "phone": normalize_phone(recipient.get("phone_number")),
        "first_name": first_name,
        "last_name": last_name,
        "address_line_1": recipient.get("address_line1"),
        "zipcode": recipient.get("postal_code"),
    }

    for district in recipient.get("district_info") or []:
        if not isinstance(district, dict):
            continue
        field_name = DISTRICT_LEVELS.get(district.get("address_level_name", ""))
        if field_name and field_name not in contact:
            contact[field_name] = district.get("address_name")

    return contact


def parse_create_time(value: Any) -> datetime | None:
    """Convert an order ``create_time`` (Unix seconds) to a UTC datetime."""
    if value is None or isinstance(value, bool):
        return None
    try:
        return datetime.fromtimestamp(int(value), tz=UTC)
    except (TypeError, ValueError, OverflowError, OSError):
        return None


class OrderFeedPager:
    """Lazy, finite iterator over order feed pages.

    Each iteration yields one page of raw orders. Iteration ends with
    ``stop_reason`` set to why it ended. A pager can only be iterated once.

    Example:
        >>> pager = OrderFeedPager(api, Pacer(0.3), QuotaBudget(10_000), max_pages=50)
        >>> for orders in pager:
        ...     handle(orders)
        >>> pager.stop_reason
        <StopReason.TOKEN_ABSENT: 'token_absent'>
    """

    def __init__(
        self,
        executor: RequestExecutor,
        pacer: Pacer,
        quota: QuotaBudget,
        page_size: int = 100,
        max_pages: int = 50,
        stop_event: threading.Event | None = None,
        max_seconds: float | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        """Initialize the pager.

        Args:
            executor: Authenticated shop API executor.
            pacer: Pacer shared with the rest of the run.
            quota: Daily request budget.
            page_size: Orders requested per page.
            max_pages: Hard page cap.
            stop_event: Cooperative stop signal, checked between pages.
            max_seconds: Time budget for the whole iteration.
            clock: Monotonic clock, injectable for tests.
        """
        self.executor = executor
        self.pacer = pacer
        self.quota = quota
        self.page_size = page_size
        self.max_pages = max_pages
        self.stop_event = stop_event
        self.max_seconds = max_seconds
        self._clock = clock

        self.pages_fetched = 0
        self.stop_reason: StopReason | None = None
        self._started = False

    def __iter__(self) -> Generator[list[dict[str, Any]], None, None]:
        if self._started:
            raise RuntimeError("OrderFeedPager cannot be restarted")
        self._started = True
        return self._pages()

    def _should_stop(self, started: float) -> bool:
        if self.stop_event is not None and self.stop_event.is_set():
            return True
        if self.max_seconds is not None and self._clock() - started >= self.max_seconds:
            return True
        return False

    def _pages(self) -> Generator[list[dict[str, Any]], None, None]:
        started = self._clock()
        page_token: str | None = None

        while True:
            if self._should_stop(started):
                logger.info(f"Order feed stopped after {self.pages_fetched} pages")
                self.stop_reason = StopReason.STOPPED
                return

            if self.pages_fetched >= self.max_pages:
                logger.info(f"Reached max pages limit ({self.max_pages})")
                self.stop_reason = StopReason.PAGE_CAP
                return

            params: dict[str, Any] = {"page_size": self.page_size}
            if page_token:
                params["page_token"] = page_token

            try:
                self.quota.consume()
                self.pacer.wait()
                data = self.executor.request("POST", ORDER_SEARCH_PATH, body={}, params=params)
            except QuotaExceededError as e:
                logger.warning(f"Order feed stopped: {e}")
                self.stop_reason = StopReason.QUOTA_EXCEEDED
                return
            except AuthenticationError as e:
                logger.error(f"Order feed authentication failed: {e}")
                self.stop_reason = StopReason.API_ERROR
                return
            except CreatorSyncError as e:
                logger.error(f"Order feed API error: {e}")
                self.stop_reason = StopReason.API_ERROR
                return

            self.pages_fetched += 1
            orders = data.get("orders") or []
            yield [o for o in orders if isinstance(o, dict)]

            page_token = data.get("next_page_token")
            if not page_token:
                self.stop_reason = StopReason.TOKEN_ABSENT
                return


class SourceIngestor:
    """Link sample-order recipients to creators.

    Per sample order:

    - no ``user_id``: skipped
    - resolved to a creator that already has a user id: already linked
    - resolved to an unlinked creator: user id set and missing contact
      backfilled (matched)
    - unresolved but the user id is already stored: already linked
    - otherwise a new creator is created from unmasked fields (created)

    Re-running over unchanged orders produces no new matched or created
    counts.

    Example:
        >>> ingestor = SourceIngestor(store, api, settings, QuotaBudget(10_000))
        >>> stats = ingestor.sync(max_pages=5)
        >>> stats.created, stats.stop_reason
    """

    def __init__(
        self,
        store: CreatorStore,
        executor: RequestExecutor,
        settings: EnrichmentSettings,
        quota: QuotaBudget,
        resolver: MatchResolver | None = None,
        merge_policy: MergePolicy | None = None,
        pacer: Pacer | None = None,
        brand_id: str | None = None,
    ):
        self.store = store
        self.executor = executor
        self.brand_id = brand_id
        self.settings = settings
        self.quota = quota
        self.resolver = resolver or MatchResolver(store)
        self.merge_policy = merge_policy or MergePolicy(
            default_country=settings.default_country,
            enrichment_source=settings.enrichment_source,
        )
        self.pacer = pacer or Pacer(settings.api_delay_seconds)

    def sync(
        self,
        max_pages: int | None = None,
        stop_event: threading.Event | None = None,
        stats: RunStats | None = None,
    ) -> RunStats:
        """Page through the order feed and process every sample order.

        Args:
            max_pages: Page cap; defaults to ``settings.sample_sync_pages``.
            stop_event: Cooperative stop signal, checked between pages.
            stats: Counters to add to; a new SAMPLE_SYNC ``RunStats`` if None.

        Returns:
            The run's counters with ``stop_reason`` set.
        """
        stats = stats or RunStats(run_type=RunType.SAMPLE_SYNC)
        max_pages = max_pages if max_pages is not None else self.settings.sample_sync_pages
        logger.info(f"Starting sample orders sync (max_pages: {max_pages})")

        pager = OrderFeedPager(
            self.executor,
            self.pacer,
            self.quota,
            page_size=self.settings.page_size,
            max_pages=max_pages,
            stop_event=stop_event,
            max_seconds=self.settings.max_run_seconds,
        )

        for orders in pager:
            stats.increment("pages")
            for order in orders:
                if order.get("is_sample_order") is True:
                    self._process_order(order, stats)

        stats.stop_reason = pager.stop_reason
        return stats

    def _process_order(self, order: dict[str, Any], stats: RunStats) -> None:
        order_id = order.get("id")
        try:
            self.process_order(order, stats)
        except CreatorSyncError as e:
            logger.warning(f"Failed to process sample order {order_id}: {e}")
            stats.increment("errors")
        except Exception:
            logger.exception(f"Unexpected error processing sample order {order_id}")
            stats.increment("errors")

    def process_order(self, order: dict[str, Any], stats: RunStats) -> None:
        """Resolve, link or create the creator behind one sample order.

        Raises:
            ValidationError: If a store write violates a constraint.
        """
        user_id = order.get("user_id")
        if not user_id:
            stats.increment("skipped")
            return

        user_id = str(user_id)
        recipient = order.get("recipient_address") or {}
        signals = IdentitySignals.from_recipient(recipient, user_id)
        contact = contact_from_recipient(recipient)
        sample_at = parse_create_time(order.get("create_time"))

        result = self.resolver.resolve(signals)
        if result.is_match and result.creator is not None:
            creator = result.creator
            decision = self.merge_policy.link(creator, user_id, contact)
            if decision.already_linked:
                stats.increment("already_linked")
                self._touch_sample(creator, sample_at)
                return

            changes = dict(decision.changes)
            if self._is_newer_sample(creator, sample_at):
                changes["last_sample_at"] = sample_at
            self.store.update(creator.id, changes)
            logger.debug(
                f"Linked creator {creator.id} ({creator.full_name}) to user_id {user_id} "
                f"via {result.matched_by}"
            )
            stats.increment("matched")
            return

        existing = self.store.get_by_external_user_id(user_id)
        if existing is not None:
            stats.increment("already_linked")
            self._touch_sample(existing, sample_at)
            return

        attrs = self.merge_policy.creation_attrs(user_id, contact)
        if self.brand_id:
            attrs["brand_id"] = self.brand_id
        if sample_at is not None:
            attrs["last_sample_at"] = sample_at
        created = self.store.create(attrs)
        logger.debug(f"Created creator {created.id} from sample order for user_id {user_id}")
        stats.increment("created")

    @staticmethod
    def _is_newer_sample(creator: Creator, sample_at: datetime | None) -> bool:
        if sample_at is None:
            return False
        return creator.last_sample_at is None or sample_at > creator.last_sample_at

    def _touch_sample(self, creator: Creator, sample_at: datetime | None) -> None:
        if creator.id is not None and self._is_newer_sample(creator, sample_at):
            self.store.update(creator.id, {"last_sample_at": sample_at})
