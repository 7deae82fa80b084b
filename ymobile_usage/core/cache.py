"""
Usage cache and pipeline entry point.

CacheStore keeps the single most recent snapshot with a time-to-live and
decides whether a fresh fetch is needed. UsageFetcher runs the
authenticate -> fetch -> parse -> compute sequence for one fetch.
"""

import asyncio
import json
import logging
import sqlite3
from datetime import datetime, timedelta
from typing import Callable, Dict, Optional

import httpx

from ..config.loader import AppSettings
from ..log import get_logger, mask_secret
from ..storage.models import CachedSnapshot, Credentials, FetchResult, UsageSnapshot
from ..storage.repository import KeyValueStore
from .auth import SessionAuthenticator
from .calculator import compute
from .credentials import CredentialStore
from .errors import CacheError, UsageError
from .http import create_client
from .parser import PageParser, get_parser
from .portal import PortalDataClient

CACHE_KEY = "ymobile_cache"
DEFAULT_TTL = timedelta(minutes=15)
NO_CREDENTIALS_MESSAGE = "No credentials saved. Log in first."


class UsageFetcher:
    """Runs one full acquisition against the portal.

    A new HTTP client is opened per fetch, so the SessionContext and its
    cookies are discarded when the fetch completes or fails.
    """

    def __init__(
        self,
        settings: AppSettings,
        parser: Optional[PageParser] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        clock: Callable[[], datetime] = datetime.now,
        logger: Optional[logging.Logger] = None
    ):
        self.settings = settings
        self.logger = logger or get_logger(__name__)
        self.parser = parser or get_parser(settings.portal.layout, logger=self.logger)
        self.transport = transport
        self.clock = clock

    async def fetch(self, credentials: Credentials) -> UsageSnapshot:
        """Authenticate, fetch, parse and compute.

        Raises:
            UsageError: Any pipeline failure
        """
        async with create_client(self.settings.portal, transport=self.transport) as client:
            session = await SessionAuthenticator(client, self.settings.portal, self.logger).authenticate(credentials)
            html = await PortalDataClient(client, self.settings.portal, self.logger).fetch_usage_html(session)

        raw = self.parser.parse(html)
        snapshot = compute(raw, now=self.clock(), timestamp_format=self.settings.display.timestamp_format)
        self.logger.info(
            f"Fetched usage: {snapshot.remaining_gb}GB of {snapshot.total_gb}GB remaining "
            f"({snapshot.percentage}% used)"
        )
        return snapshot


class CacheStore:
    """Holds the latest snapshot and serves the pipeline's get_data.

    Concurrent get_data calls for the same identifier share one in-flight
    fetch, so overlapping callers cause a single network sequence and a
    single cache write.
    """

    def __init__(
        self,
        store: KeyValueStore,
        credentials: CredentialStore,
        fetcher: UsageFetcher,
        ttl: timedelta = DEFAULT_TTL,
        clock: Callable[[], datetime] = datetime.now,
        logger: Optional[logging.Logger] = None
    ):
        self.store = store
        self.credentials = credentials
        self.fetcher = fetcher
        self.ttl = ttl
        self.clock = clock
        self.logger = logger or get_logger(__name__)
        self._lock: Optional[asyncio.Lock] = None
        self._lock_loop: Optional[asyncio.AbstractEventLoop] = None
        self._in_flight: Dict[str, "asyncio.Task[FetchResult]"] = {}

    async def get(self) -> Optional[CachedSnapshot]:
        """Return the cached snapshot while it is still fresh.

        Absent, expired, unreadable and corrupt entries all yield None.
        """
        try:
            cached = await self._read()
        except CacheError as e:
            self.logger.warning(f"Cache read failed, treating as miss: {e}")
            return None

        if cached is None:
            self.logger.debug("Cache empty")
            return None

        now = self.clock()
        if not cached.is_valid(now, self.ttl):
            self.logger.info("Cache expired")
            return None

        remaining = self.ttl - cached.age(now)
        self.logger.info(f"Using cached usage (refresh in {int(remaining.total_seconds() // 60)} min)")
        return cached

    async def put(self, snapshot: UsageSnapshot) -> CachedSnapshot:
        """Overwrite the cache with snapshot, stamped with the current time.

        A write failure is logged and otherwise ignored.
        """
        cached = CachedSnapshot(snapshot=snapshot, stored_at=self.clock())
        try:
            await self._write(cached)
        except CacheError as e:
            self.logger.warning(f"Cache write failed: {e}")
        return cached

    async def clear(self) -> None:
        try:
            await self.store.remove(CACHE_KEY)
        except (sqlite3.Error, OSError) as e:
            self.logger.warning(f"Cache clear failed: {e}")

    async def peek(self) -> Optional[CachedSnapshot]:
        """Return the stored entry regardless of age, or None."""
        try:
            return await self._read()
        except CacheError as e:
            self.logger.warning(f"Cache read failed: {e}")
            return None

    async def get_data(self, force_refresh: bool = False) -> FetchResult:
        """Return the latest snapshot, fetching from the portal when needed.

        Never raises for pipeline failures; they come back as a failed
        FetchResult with a human-readable message.

        Args:
            force_refresh: Skip the cache and always fetch

        Returns:
            FetchResult with the snapshot or the error text
        """
        if not force_refresh:
            cached = await self.get()
            if cached is not None:
                return FetchResult.ok(cached.snapshot, from_cache=True)

        try:
            credentials = await self.credentials.load()
        except UsageError as e:
            self.logger.error(f"Could not load credentials: {e}")
            return FetchResult.failure(str(e))
        except (sqlite3.Error, OSError) as e:
            self.logger.error(f"Could not read credential storage: {e}")
            return FetchResult.failure(f"Could not read credential storage: {e}")

        if credentials is None:
            self.logger.warning("No credentials available")
            return FetchResult.failure(NO_CREDENTIALS_MESSAGE)

        async with self._get_lock():
            task = self._in_flight.get(credentials.identifier)
            if task is not None and task.done():
                task = None
            if task is None:
                if not force_refresh:
                    cached = await self.get()
                    if cached is not None:
                        return FetchResult.ok(cached.snapshot, from_cache=True)
                task = asyncio.ensure_future(self._refresh(credentials))
                self._in_flight[credentials.identifier] = task
                task.add_done_callback(
                    lambda done, key=credentials.identifier: self._forget(key, done)
                )
            else:
                self.logger.debug("Joining in-flight fetch")

        return await asyncio.shield(task)

    def _get_lock(self) -> asyncio.Lock:
        """Return the lock for the running event loop.

        A CacheStore may be driven by several successive loops (one per
        asyncio.run call); lock and in-flight tasks never cross loops.
        """
        loop = asyncio.get_running_loop()
        if self._lock is None or self._lock_loop is not loop:
            self._lock = asyncio.Lock()
            self._lock_loop = loop
            self._in_flight = {}
        return self._lock

    def _forget(self, key: str, task: "asyncio.Task[FetchResult]") -> None:
        if self._in_flight.get(key) is task:
            del self._in_flight[key]

    async def _refresh(self, credentials: Credentials) -> FetchResult:
        self.logger.info(f"Starting usage fetch for {mask_secret(credentials.identifier)}")
        try:
            snapshot = await self.fetcher.fetch(credentials)
        except UsageError as e:
            self.logger.error(f"Usage fetch failed: {e}")
            return FetchResult.failure(str(e))
        except ArithmeticError as e:
            self.logger.error(f"Usage figures could not be calculated: {e!r}")
            return FetchResult.failure(f"Usage figures could not be calculated: {e!r}")

        await self.put(snapshot)
        return FetchResult.ok(snapshot)

    async def _read(self) -> Optional[CachedSnapshot]:
        try:
            raw = await self.store.get(CACHE_KEY)
        except (sqlite3.Error, OSError) as e:
            raise CacheError(f"read failed: {e}")
        if raw is None:
            return None
        try:
            return CachedSnapshot.from_dict(json.loads(raw))
        except (ValueError, KeyError, TypeError) as e:
            raise CacheError(f"corrupt cache entry: {e}")

    async def _write(self, cached: CachedSnapshot) -> None:
        try:
            await self.store.set(CACHE_KEY, json.dumps(cached.to_dict()))
        except (sqlite3.Error, OSError) as e:
            raise CacheError(f"write failed: {e}")
