"""Address to coordinates resolution with a persistent cache."""

from __future__ import annotations

import logging
import threading
import time
from pathlib import Path
from typing import Optional

import httpx

from ..config import settings
from ..models.domain import Coordinates
from ..persistence.filesystem import FileStorage

logger = logging.getLogger(__name__)

# Derived points stay inside metropolitan France.
LAT_BOUNDS = (42.0, 51.2)
LNG_BOUNDS = (-4.8, 8.5)


def derive_coordinates(address: str) -> Coordinates:
    """Deterministic pseudo-geocode: the same string always maps to the same point."""

    digest = 0
    for char in address:
        digest = (digest * 31 + ord(char)) & 0xFFFFFFFF
    lat = LAT_BOUNDS[0] + (digest % 900) / 100
    lng = LNG_BOUNDS[0] + ((digest >> 3) % 1330) / 100
    return Coordinates(
        lat=min(LAT_BOUNDS[1], max(LAT_BOUNDS[0], lat)),
        lng=min(LNG_BOUNDS[1], max(LNG_BOUNDS[0], lng)),
    )


class Geocoder:
    """Resolves free-text addresses, caching every positive result by exact string.

    Lookup order: cache, then the HTTP geocoder when ``base_url`` is configured,
    otherwise :func:`derive_coordinates`. A remote miss or a remote failure
    yields None and is not cached.
    """

    def __init__(
        self,
        *,
        cache_file: Path | None = None,
        storage: FileStorage | None = None,
        base_url: str | None = None,
        timeout: float | None = None,
        max_retries: int | None = None,
        backoff_seconds: float | None = None,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.cache_file = cache_file
        self.storage = storage
        self.base_url = base_url.rstrip("/") if base_url else None
        self.timeout = timeout if timeout is not None else settings.geocoder_timeout_seconds
        self.max_retries = max_retries if max_retries is not None else settings.geocoder_max_retries
        self.backoff_seconds = backoff_seconds if backoff_seconds is not None else settings.geocoder_backoff_seconds
        self.transport = transport
        self._lock = threading.Lock()
        self._cache: dict[str, Coordinates] = self._load_cache()

    def _load_cache(self) -> dict[str, Coordinates]:
        if self.cache_file is None or self.storage is None:
            return {}
        try:
            raw = self.storage.read_json(self.cache_file, default={}) or {}
        except ValueError as exc:
            logger.warning(f"Ignoring unreadable geocache {self.cache_file}: {exc}")
            return {}
        cache: dict[str, Coordinates] = {}
        for address, point in raw.items():
            try:
                cache[address] = Coordinates(lat=float(point["lat"]), lng=float(point["lng"]))
            except (KeyError, TypeError, ValueError):
                logger.warning(f"Skipping invalid geocache entry for '{address}'")
        logger.info(f"Loaded {len(cache)} cached addresses from {self.cache_file}")
        return cache

    def _persist(self) -> None:
        if self.cache_file is None or self.storage is None:
            return
        snapshot = {address: {"lat": point.lat, "lng": point.lng} for address, point in self._cache.items()}
        self.storage.write_json(self.cache_file, snapshot)

    def cached(self, address: str) -> Optional[Coordinates]:
        with self._lock:
            return self._cache.get(address)

    def resolve(self, address: str | None) -> Optional[Coordinates]:
        if address is None or not address.strip():
            return None

        hit = self.cached(address)
        if hit is not None:
            return hit

        point = self._lookup_remote(address) if self.base_url else derive_coordinates(address)
        if point is None:
            return None

        with self._lock:
            stored = self._cache.setdefault(address, point)
            if stored is point:
                self._persist()
        return stored

    def _lookup_remote(self, address: str) -> Optional[Coordinates]:
        params = {"q": address, "format": "json", "limit": 1}
        url = f"{self.base_url}/search"
        client = httpx.Client(timeout=httpx.Timeout(self.timeout, connect=5.0), transport=self.transport)
        try:
            attempt = 0
            while True:
                try:
                    response = client.get(url, params=params)
                    response.raise_for_status()
                    results = response.json()
                    if not results:
                        logger.info(f"Geocoder returned no match for '{address}'")
                        return None
                    first = results[0]
                    return Coordinates(lat=float(first["lat"]), lng=float(first["lon"]))
                except (httpx.TimeoutException, httpx.NetworkError, httpx.HTTPStatusError) as exc:
                    attempt += 1
                    if attempt > self.max_retries:
                        logger.warning(f"Geocoding '{address}' failed after {attempt} attempts: {exc}")
                        return None
                    wait_time = self.backoff_seconds * (2 ** (attempt - 1))
                    logger.debug(f"Geocoder error, retrying in {wait_time:.1f}s (attempt {attempt}/{self.max_retries})")
                    time.sleep(wait_time)
                except (KeyError, IndexError, TypeError, ValueError) as exc:
                    logger.warning(f"Unexpected geocoder payload for '{address}': {exc}")
                    return None
        finally:
            client.close()


def build_geocoder(storage: FileStorage | None = None) -> Geocoder:
    """Geocoder configured from settings."""

    if settings.geocache_file is None:
        return Geocoder(base_url=settings.geocoder_base_url)
    return Geocoder(
        cache_file=settings.geocache_file,
        storage=storage or FileStorage(root=settings.geocache_file.parent),
        base_url=settings.geocoder_base_url,
    )
