"""
Sync orchestrator: hydrates local stores from the database once per session
and reconciles divergent copies.

Reconciliation is a three-way comparison per record between the local copy,
the remote copy and the baseline fingerprint taken at the last successful
sync:

- both copies equal: in sync
- only one side changed since the baseline: that side wins
- both sides changed (or no baseline and they differ): conflict, left for
  ``resolve_conflict`` to settle

With conflict detection disabled, conflicts fall back to the cloud copy.
"""
from functools import partial
from typing import Dict, List, Optional, Sequence
import asyncio
import logging
import time

from makercost.adapters.base import DatabaseAdapter, Record
from makercost.core.exceptions import ConflictError, MakerCostError, NotAuthenticatedError
from makercost.core.identity import IdentityProvider
from makercost.core.notifications import Notifier
from makercost.core.structured_logging import log_sync_event
from makercost.core.tasks import DebouncedTask, SingleFlight
from makercost.schemas.sync import SyncConflict, SyncState, SyncStatus
from makercost.stores.base import LocalStore, changed_fields, fingerprint

logger = logging.getLogger(__name__)


class ReconcilePlan:
    """What one store needs to do to match its remote copy"""

    def __init__(self, store: str):
        self.store = store
        self.pull: List[Record] = []
        self.drop_local: List[str] = []
        self.push: List[Record] = []
        self.delete_remote: List[str] = []
        self.synced: Dict[str, Optional[str]] = {}
        self.conflicts: List[SyncConflict] = []


def plan_reconciliation(
    store: str,
    local: Dict[str, Record],
    remote: Dict[str, Record],
    baseline: Dict[str, str],
    defaults: Optional[Dict[str, str]] = None,
    detect_conflicts: bool = True
) -> ReconcilePlan:
    """
    Compare local and remote records against the last synced fingerprints.

    Args:
        store: Store name, recorded on conflicts
        local: Local records by id
        remote: Remote records by id, normalized like the local ones
        baseline: Fingerprints of each record at the last successful sync
        defaults: Fingerprints of untouched default records, used as the
            baseline for records that were never synced
        detect_conflicts: When False, conflicts resolve to the remote copy
    """
    defaults = defaults or {}
    plan = ReconcilePlan(store)

    for record_id in sorted(set(local) | set(remote)):
        local_record = local.get(record_id)
        remote_record = remote.get(record_id)
        local_fp = fingerprint(local_record)
        remote_fp = fingerprint(remote_record)
        base_fp = baseline.get(record_id) or defaults.get(record_id)

        if local_fp == remote_fp:
            if baseline.get(record_id) != local_fp:
                plan.synced[record_id] = local_fp
            continue

        if local_record is not None and remote_record is not None:
            if local_fp == base_fp:
                plan.pull.append(remote_record)
                plan.synced[record_id] = remote_fp
                continue
            if remote_fp == base_fp:
                plan.push.append(local_record)
                plan.synced[record_id] = local_fp
                continue
        elif local_record is not None:
            if record_id not in baseline:
                # Untouched defaults stay local until the user edits them
                if local_fp != defaults.get(record_id):
                    plan.push.append(local_record)
                    plan.synced[record_id] = local_fp
                continue
            if local_fp == base_fp:
                plan.drop_local.append(record_id)
                plan.synced[record_id] = None
                continue
        else:
            if base_fp is None:
                plan.pull.append(remote_record)
                plan.synced[record_id] = remote_fp
                continue
            if remote_fp == base_fp:
                plan.delete_remote.append(record_id)
                plan.synced[record_id] = None
                continue

        if detect_conflicts:
            plan.conflicts.append(SyncConflict(
                store=store,
                entity_id=record_id,
                local=local_record,
                remote=remote_record,
                changed_fields=changed_fields(local_record, remote_record),
            ))
        elif remote_record is not None:
            plan.pull.append(remote_record)
            plan.synced[record_id] = remote_fp
        else:
            plan.drop_local.append(record_id)
            plan.synced[record_id] = None

    return plan


class SyncOrchestrator:
    """
    Runs sync passes over a set of stores.

    Passes are single-flight: a trigger while one is running is dropped
    unless forced. Every pass is bounded by ``timeout`` seconds.
    """

    def __init__(
        self,
        adapter: DatabaseAdapter,
        identity: IdentityProvider,
        notifier: Notifier,
        stores: Sequence[LocalStore],
        settle_delay: float = 1.0,
        timeout: float = 5.0,
        conflict_detection: bool = True
    ):
        self.adapter = adapter
        self.identity = identity
        self.notifier = notifier
        self.stores: Dict[str, LocalStore] = {store.name: store for store in stores}
        self.conflict_detection = conflict_detection
        self.timeout = timeout
        self._state = SyncState()
        self._session = 0
        self._mutex = SingleFlight("sync", timeout=timeout)
        self._settle = DebouncedTask(self._sync_after_login, settle_delay, name="sync-settle")
        self._unsubscribe = identity.subscribe(self._on_auth_change)

    @property
    def state(self) -> SyncState:
        return self._state.model_copy(deep=True)

    @property
    def status(self) -> SyncStatus:
        return self._state.status

    @property
    def is_syncing(self) -> bool:
        return self._mutex.running

    def close(self) -> None:
        self._settle.cancel()
        self._unsubscribe()

    # ============= AUTH TRANSITIONS =============

    def _on_auth_change(self, previous: Optional[str], current: Optional[str]) -> None:
        if current is None:
            self.reset()
            return
        if previous is not None:
            # Switching accounts is a new session
            self.reset()
        try:
            self._settle.schedule()
        except RuntimeError:
            logger.info("No running event loop, sync after login deferred to manual sync")

    async def _sync_after_login(self) -> None:
        if self._state.has_synced_session:
            return
        await self.sync()

    async def wait_for_settle(self) -> None:
        await self._settle.wait()

    def reset(self) -> None:
        """Back to idle; the next login runs a full pass again"""
        self._settle.cancel()
        # Passes still in flight belong to the previous session and are discarded
        self._session += 1
        self._mutex = SingleFlight("sync", timeout=self.timeout)
        self._state = SyncState()
        log_sync_event("reset", SyncStatus.IDLE.value)

    def _is_stale(self, session: int) -> bool:
        if session == self._session:
            return False
        logger.info("Discarding sync pass from a previous session")
        return True

    # ============= SYNC PASS =============

    async def sync(self, force: bool = False) -> SyncState:
        """
        Run one sync pass.

        A pass that outlives its session (logout or account switch) leaves
        neither state nor records behind.

        Args:
            force: Run even when another pass is in flight

        Returns:
            The sync state after the pass (unchanged when the call was dropped)
        """
        if self._mutex.running and not force:
            log_sync_event("skipped", self._state.status.value, forced=force)
            return self.state

        if not self.identity.is_authenticated:
            error = NotAuthenticatedError()
            self._state.last_error = error.message
            log_sync_event("skipped", self._state.status.value, error=error.message)
            return self.state

        session = self._session
        start = time.time()
        self._state.status = SyncStatus.SYNCING
        log_sync_event("start", SyncStatus.SYNCING.value, forced=force)

        try:
            conflicts = await self._mutex.run(partial(self._run_pass, session), force=force)
        except Exception as e:
            if not self._is_stale(session):
                self._record_failure(e, start)
            return self.state

        if self._is_stale(session):
            return self.state

        self._state.has_synced_session = True
        self._state.conflicts = conflicts
        if conflicts:
            error = ConflictError(conflicts)
            self._state.status = SyncStatus.CONFLICT
            self._state.last_error = error.message
            self.notifier.notify(error.message, "warning")
        else:
            self._state.status = SyncStatus.SYNCED
            self._state.last_error = None
        log_sync_event(
            "finish",
            self._state.status.value,
            duration_ms=self._elapsed(start),
            conflicts=len(conflicts),
            forced=force
        )
        return self.state

    def _record_failure(self, error: Exception, start: float) -> None:
        if isinstance(error, asyncio.TimeoutError):
            self._fail(f"Sync timed out after {self.timeout:g}s", start)
        elif isinstance(error, NotAuthenticatedError):
            self._state.status = SyncStatus.IDLE
            self._state.last_error = error.message
            log_sync_event("finish", SyncStatus.IDLE.value, duration_ms=self._elapsed(start), error=error.message)
        elif isinstance(error, MakerCostError):
            self._fail(error.message, start)
        else:
            logger.error(f"Unexpected sync failure: {str(error)}", exc_info=error)
            self._fail(str(error) or type(error).__name__, start)

    def _fail(self, message: str, start: float) -> None:
        self._state.status = SyncStatus.ERROR
        self._state.last_error = message
        log_sync_event("finish", SyncStatus.ERROR.value, duration_ms=self._elapsed(start), error=message)
        self.notifier.notify(f"Sync failed: {message}", "error")

    @staticmethod
    def _elapsed(start: float) -> int:
        return int((time.time() - start) * 1000)

    async def _run_pass(self, session: int) -> List[SyncConflict]:
        stores = list(self.stores.values())
        loaded = await asyncio.gather(*(self.adapter.load_all(store.entity) for store in stores))
        if self._is_stale(session):
            return []

        plans = []
        for store, records in zip(stores, loaded):
            remote = self._normalize_remote(store, records)
            plans.append(plan_reconciliation(
                store.name,
                store.records(),
                remote,
                store.baseline,
                defaults=store.default_fingerprints(),
                detect_conflicts=self.conflict_detection,
            ))

        remote_writes = []
        for store, plan in zip(stores, plans):
            remote_writes.extend(self.adapter.save(store.entity, record) for record in plan.push)
            remote_writes.extend(self.adapter.delete(store.entity, record_id) for record_id in plan.delete_remote)
        if remote_writes:
            await asyncio.gather(*remote_writes)
        if self._is_stale(session):
            return []

        conflicts: List[SyncConflict] = []
        for store, plan in zip(stores, plans):
            if plan.pull or plan.drop_local or plan.synced:
                store.apply_sync_result(upserts=plan.pull, removals=plan.drop_local, synced=plan.synced)
            conflicts.extend(plan.conflicts)
            logger.info(
                f"Synced {store.name}: pulled={len(plan.pull)} pushed={len(plan.push)} "
                f"dropped={len(plan.drop_local)} deleted_remote={len(plan.delete_remote)} "
                f"conflicts={len(plan.conflicts)}"
            )
        return conflicts

    def _normalize_remote(self, store: LocalStore, records: List[Record]) -> Dict[str, Record]:
        remote: Dict[str, Record] = {}
        for record in records:
            try:
                normalized = store.normalize(record)
            except MakerCostError as e:
                logger.warning(f"Skipping invalid remote {store.entity} record {record.get('id')}: {e.message}")
                continue
            remote[normalized["id"]] = normalized
        return remote

    # ============= CONFLICTS =============

    async def resolve_conflict(self, winner: str) -> SyncState:
        """
        Settle every open conflict in favour of ``winner`` ('local' or
        'cloud'), then force a sync pass.
        """
        if winner not in ("local", "cloud"):
            raise ValueError("winner must be 'local' or 'cloud'")

        session = self._session
        conflicts = list(self._state.conflicts)
        logger.info(f"Resolving {len(conflicts)} conflict(s) in favour of {winner}")
        try:
            for conflict in conflicts:
                await self._resolve_one(conflict, winner, session)
        except (MakerCostError, asyncio.TimeoutError) as e:
            if self._is_stale(session):
                return self.state
            message = getattr(e, "message", None) or "Timed out writing the local copy"
            self._state.status = SyncStatus.ERROR
            self._state.last_error = message
            log_sync_event("resolve", SyncStatus.ERROR.value, error=message)
            self.notifier.notify(f"Could not resolve conflicts: {message}", "error")
            return self.state

        if self._is_stale(session):
            return self.state
        self._state.conflicts = []
        return await self.sync(force=True)

    async def _resolve_one(self, conflict: SyncConflict, winner: str, session: int) -> None:
        store = self.stores.get(conflict.store)
        if store is None:
            logger.warning(f"Conflict for unknown store {conflict.store} dropped")
            return

        record_id = conflict.entity_id
        if winner == "local":
            local_record = store.records().get(record_id)
            if local_record is not None:
                await asyncio.wait_for(self.adapter.save(store.entity, local_record), timeout=self.timeout)
            else:
                await asyncio.wait_for(self.adapter.delete(store.entity, record_id), timeout=self.timeout)
            if self._is_stale(session):
                return
            store.apply_sync_result(synced={record_id: fingerprint(local_record)})
        else:
            remote_record = conflict.remote
            if remote_record is not None:
                store.apply_sync_result(upserts=[remote_record], synced={record_id: fingerprint(remote_record)})
            else:
                store.apply_sync_result(removals=[record_id], synced={record_id: None})
