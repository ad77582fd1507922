"""Wiring of the dispatch services around one store."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from ..config import settings
from ..data.seed_repository import load_seed
from ..db.supabase import get_supabase_client
from ..errors import NotificationNotFound
from ..models.domain import NotificationEntry
from ..persistence.locks import LockManager
from ..persistence.store import DispatchStore, InMemoryStore
from ..persistence.supabase_store import SupabaseStore
from .assignment import AssignmentService
from .audit import AuditEmitter, Clock, utcnow
from .geocoding import Geocoder, build_geocoder
from .lifecycle import LifecycleService
from .queries import DispatchQueries
from .reorder import ReorderService
from .scheduling import ConflictChecker, EligibilityEvaluator, NearestDriverSelector
from .zones import ZoneCatalog, default_zone_catalog

logger = logging.getLogger(__name__)


@dataclass
class DispatchEngine:
    store: DispatchStore
    locks: LockManager
    audit: AuditEmitter
    checker: ConflictChecker
    evaluator: EligibilityEvaluator
    selector: NearestDriverSelector
    assignments: AssignmentService
    lifecycle: LifecycleService
    reorders: ReorderService
    queries: DispatchQueries
    geocoder: Geocoder
    zones: ZoneCatalog

    def mark_notification_read(self, notification_id: str) -> NotificationEntry:
        notification = self.store.get_notification(notification_id)
        if notification is None:
            raise NotificationNotFound(notification_id)
        return self.audit.mark_read(notification)


def build_store() -> DispatchStore:
    """Store selected by ``DISPATCH_STORE_BACKEND``, seeded when a seed file is set."""

    if settings.store_backend == "supabase":
        client = get_supabase_client()
        if client is None:
            raise ValueError("Supabase store selected but DISPATCH_SUPABASE_URL/DISPATCH_SUPABASE_KEY are not set.")
        logger.info("Using Supabase record store")
        return SupabaseStore(client)

    store = InMemoryStore()
    if settings.seed_file is not None:
        load_seed(store, settings.seed_file)
    return store


def build_engine(
    store: DispatchStore | None = None,
    *,
    geocoder: Geocoder | None = None,
    zones: ZoneCatalog | None = None,
    lock_strategy: str | None = None,
    clock: Clock = utcnow,
) -> DispatchEngine:
    store = store if store is not None else build_store()
    locks = LockManager(lock_strategy or settings.lock_strategy)
    geocoder = geocoder or build_geocoder()
    zones = zones or default_zone_catalog()

    audit = AuditEmitter(store, clock)
    checker = ConflictChecker(store)
    evaluator = EligibilityEvaluator(checker)
    selector = NearestDriverSelector(store, evaluator)
    assignments = AssignmentService(store, locks, evaluator, audit, clock)
    return DispatchEngine(
        store=store,
        locks=locks,
        audit=audit,
        checker=checker,
        evaluator=evaluator,
        selector=selector,
        assignments=assignments,
        lifecycle=LifecycleService(store, locks, audit, clock),
        reorders=ReorderService(store, locks, geocoder, selector, assignments, audit, zones, clock),
        queries=DispatchQueries(store, checker, evaluator),
        geocoder=geocoder,
        zones=zones,
    )
