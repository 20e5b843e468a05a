"""Client-visible state of a user's collection list.

Hey future me - this is an explicit state machine with PURE transition functions. Every
function below takes a CollectionState and returns a new one (the dataclass is frozen), so the
transitions can be tested without any I/O and there is exactly one place that decides what a
"pagination failed" or "remove failed" looks like.

States:
    INITIAL_LOADING --page_loaded--> READY
    INITIAL_LOADING --load_failed--> ERROR --retry--> INITIAL_LOADING
    READY --begin_pagination--> PAGINATING --page_loaded--> READY
    PAGINATING --load_failed--> READY (items kept, error surfaced)

Mutations (add/remove) are optimistic: the list changes immediately. A failed remove is
reconciled by a FULL reload of everything loaded so far (resync), never by patching the item
back in - we don't know what else changed in the meantime. A confirmed remove refetches the
last loaded page so the item that slid across the page boundary is not skipped.

CollectionStateMachine at the bottom is the async driver that wires these transitions to the
actual loader/remover calls and guards against overlapping page fetches.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, replace
from enum import Enum

from mushee.domain.entities import CollectionItem, CollectionPage, IngestionOutcome
from mushee.domain.exceptions import DomainException
from mushee.domain.value_objects import ScoreId

logger = logging.getLogger(__name__)


class CollectionStatus(str, Enum):
    """Lifecycle of the collection list."""

    INITIAL_LOADING = "initial_loading"
    READY = "ready"
    PAGINATING = "paginating"
    ERROR = "error"


@dataclass(frozen=True)
class CollectionState:
    """Immutable snapshot of the collection list."""

    status: CollectionStatus
    items: tuple[CollectionItem, ...] = ()
    page: int = 0  # number of pages loaded so far
    page_size: int = 50
    total: int = 0
    error: str | None = None

    @property
    def has_more(self) -> bool:
        return self.page * self.page_size < self.total

    @property
    def score_ids(self) -> list[ScoreId]:
        return [item.score_id for item in self.items]

    def contains(self, score_id: ScoreId) -> bool:
        return any(item.score_id == score_id for item in self.items)


def initial_state(page_size: int = 50) -> CollectionState:
    """Fresh state waiting for the first page."""
    if page_size < 1:
        raise ValueError("page_size must be at least 1")
    return CollectionState(status=CollectionStatus.INITIAL_LOADING, page_size=page_size)


def page_loaded(state: CollectionState, page: CollectionPage) -> CollectionState:
    """Apply a successfully fetched page.

    The first page replaces the list, later pages append. Items already present (e.g. added
    optimistically while the page was in flight) are not duplicated.
    """
    if state.status == CollectionStatus.INITIAL_LOADING:
        return replace(
            state,
            status=CollectionStatus.READY,
            items=tuple(page.items),
            page=1,
            total=page.total_count,
            error=None,
        )
    if state.status == CollectionStatus.PAGINATING:
        known = set(state.score_ids)
        appended = tuple(item for item in page.items if item.score_id not in known)
        return replace(
            state,
            status=CollectionStatus.READY,
            items=state.items + appended,
            page=state.page + 1,
            total=page.total_count,
            error=None,
        )
    # Stale response for a fetch we no longer wait for
    return state


def load_failed(state: CollectionState, message: str) -> CollectionState:
    """Apply a failed fetch."""
    if state.status == CollectionStatus.INITIAL_LOADING:
        return replace(state, status=CollectionStatus.ERROR, error=message)
    if state.status == CollectionStatus.PAGINATING:
        return replace(state, status=CollectionStatus.READY, error=message)
    return state


def begin_pagination(state: CollectionState) -> CollectionState:
    """Move to PAGINATING if there is another page to load.

    Returns the state unchanged when not READY (a fetch is already running) or nothing is
    left to load - callers compare statuses to know whether to fetch.
    """
    if state.status != CollectionStatus.READY or not state.has_more:
        return state
    return replace(state, status=CollectionStatus.PAGINATING, error=None)


def retry(state: CollectionState) -> CollectionState:
    """Go back to INITIAL_LOADING after an initial load failed."""
    if state.status != CollectionStatus.ERROR:
        return state
    return initial_state(state.page_size)


def item_added(state: CollectionState, item: CollectionItem) -> CollectionState:
    """Optimistically prepend an item and bump the total."""
    if state.contains(item.score_id):
        return state
    return replace(state, items=(item, *state.items), total=state.total + 1)


def item_removed(state: CollectionState, score_id: ScoreId) -> CollectionState:
    """Optimistically drop an item and decrement the total."""
    if not state.contains(score_id):
        return state
    return replace(
        state,
        items=tuple(item for item in state.items if item.score_id != score_id),
        total=max(state.total - 1, 0),
    )


def gap_filled(state: CollectionState, refetched: CollectionPage) -> CollectionState:
    """Merge a refetch of the last loaded page after a confirmed remove.

    A remove shifts the store's offsets left by one, so the item that slid into the last
    loaded page would never show up in the next page. Appending the unknown items of the
    refetched page closes that gap and keeps `page * page_size` aligned with the store.
    """
    if state.status not in (CollectionStatus.READY, CollectionStatus.PAGINATING):
        return state
    known = set(state.score_ids)
    appended = tuple(item for item in refetched.items if item.score_id not in known)
    return replace(state, items=state.items + appended, total=refetched.total_count)


def resynced(
    state: CollectionState,
    reloaded: CollectionPage,
    pages_loaded: int,
    error: str | None,
) -> CollectionState:
    """Replace the whole list with a fresh reload (after a failed mutation)."""
    return replace(
        state,
        status=CollectionStatus.READY,
        items=tuple(reloaded.items),
        page=pages_loaded,
        total=reloaded.total_count,
        error=error,
    )


PageLoader = Callable[[int, int], Awaitable[CollectionPage]]
ItemRemover = Callable[[ScoreId], Awaitable[None]]


class CollectionStateMachine:
    """Async driver around the pure transitions.

    Args:
        load_page: async (page, page_size) -> CollectionPage
        remove_item: async (score_id) -> None, raises a DomainException on failure
        page_size: fixed page size for every fetch
    """

    def __init__(
        self,
        load_page: PageLoader,
        remove_item: ItemRemover,
        page_size: int = 50,
    ) -> None:
        self._load_page = load_page
        self._remove_item = remove_item
        self._state = initial_state(page_size)
        self._fetch_in_flight = False
        # Bumped by every full (re)load. A response fetched under an older generation
        # belongs to a list that no longer exists and is dropped.
        self._generation = 0
        self._pending_removals: set[asyncio.Task[None]] = set()

    @property
    def state(self) -> CollectionState:
        return self._state

    def _start_generation(self) -> int:
        self._generation += 1
        self._fetch_in_flight = True
        return self._generation

    def _is_current(self, generation: int) -> bool:
        return generation == self._generation

    async def load(self) -> CollectionState:
        """(Re)load the first page from scratch."""
        generation = self._start_generation()
        self._state = initial_state(self._state.page_size)
        try:
            page = await self._load_page(1, self._state.page_size)
        except DomainException as e:
            if self._is_current(generation):
                logger.warning("Collection load failed: %s", e.message)
                self._state = load_failed(self._state, e.message)
        else:
            if self._is_current(generation):
                self._state = page_loaded(self._state, page)
        finally:
            if self._is_current(generation):
                self._fetch_in_flight = False
        return self._state

    async def load_next_page(self) -> bool:
        """Fetch and append the next page.

        Returns False without fetching when a fetch is already in flight, the list isn't
        READY, or everything is loaded.
        """
        if self._fetch_in_flight:
            return False
        next_state = begin_pagination(self._state)
        if next_state.status != CollectionStatus.PAGINATING:
            return False

        generation = self._generation
        self._state = next_state
        self._fetch_in_flight = True
        try:
            page = await self._load_page(self._state.page + 1, self._state.page_size)
        except DomainException as e:
            if self._is_current(generation):
                logger.warning("Collection pagination failed: %s", e.message)
                self._state = load_failed(self._state, e.message)
        else:
            if self._is_current(generation):
                self._state = page_loaded(self._state, page)
            else:
                logger.debug("Dropping page fetched for a collection that was reloaded")
        finally:
            if self._is_current(generation):
                self._fetch_in_flight = False
        return True

    async def retry(self) -> CollectionState:
        """Retry after a failed initial load."""
        if self._state.status != CollectionStatus.ERROR:
            return self._state
        return await self.load()

    def add(self, item: CollectionItem) -> CollectionState:
        """Optimistically show an item the store has already linked."""
        self._state = item_added(self._state, item)
        return self._state

    def add_ingested(self, outcome: IngestionOutcome) -> CollectionState:
        """Show a freshly ingested upload (no-op when it was already in the collection)."""
        if not outcome.link_created:
            return self._state
        return self.add(CollectionItem(score=outcome.score, added_at=outcome.linked_at))

    def remove(self, score_id: ScoreId) -> asyncio.Task[None]:
        """Optimistically remove an item; the store call runs in the background.

        Returns the background task so callers (and tests) can await the reconciliation.
        """
        self._state = item_removed(self._state, score_id)
        task = asyncio.create_task(self._remove_and_reconcile(score_id))
        self._pending_removals.add(task)
        task.add_done_callback(self._pending_removals.discard)
        return task

    async def _remove_and_reconcile(self, score_id: ScoreId) -> None:
        try:
            await self._remove_item(score_id)
        except DomainException as e:
            logger.warning(
                "Removing score %s failed, resyncing collection: %s", score_id, e.message
            )
            await self.resync(error=e.message)
        else:
            await self._fill_gap()

    async def _fill_gap(self) -> None:
        """Pull in the item that slid into the loaded range after a confirmed remove."""
        state = self._state
        loaded_range = min(state.page * state.page_size, state.total)
        if state.page == 0 or len(state.items) >= loaded_range:
            return

        generation = self._generation
        try:
            page = await self._load_page(state.page, state.page_size)
        except DomainException as e:
            logger.warning("Refetching page %d after remove failed: %s", state.page, e.message)
            if self._is_current(generation):
                self._state = replace(self._state, error=e.message)
            return
        if self._is_current(generation):
            self._state = gap_filled(self._state, page)

    async def resync(self, error: str | None = None) -> CollectionState:
        """Reload every page loaded so far, one fixed-size page at a time.

        Pages are fetched at the same page size as pagination so the loader's page-size
        ceiling holds no matter how much has been loaded.
        """
        pages_wanted = max(self._state.page, 1)
        page_size = self._state.page_size
        generation = self._start_generation()

        items: list[CollectionItem] = []
        seen: set[ScoreId] = set()
        total = 0
        pages_loaded = 0
        try:
            for page_number in range(1, pages_wanted + 1):
                page = await self._load_page(page_number, page_size)
                for item in page.items:
                    if item.score_id not in seen:
                        seen.add(item.score_id)
                        items.append(item)
                total = page.total_count
                pages_loaded = page_number
                if page_number * page_size >= total:
                    break
        except DomainException as e:
            if self._is_current(generation):
                logger.error("Collection resync failed: %s", e.message)
                self._state = replace(
                    self._state, status=CollectionStatus.ERROR, error=e.message
                )
                self._fetch_in_flight = False
            return self._state

        if self._is_current(generation):
            self._state = resynced(
                self._state, CollectionPage(items=items, total_count=total), pages_loaded, error
            )
            self._fetch_in_flight = False
        return self._state
