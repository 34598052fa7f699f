"""SyncCoordinator: optimistic local state, offline queueing and replay."""

from __future__ import annotations

import asyncio
import logging
import threading
from contextlib import contextmanager
from dataclasses import replace
from typing import Any, Awaitable, Callable, Iterator, Optional, TypeVar

from routinesync.config import SyncConfig
from routinesync.connectivity import ConnectivityEvent, ConnectivityMonitor
from routinesync.controller import RemoteDataService
from routinesync.errors import (
    InvalidStateError,
    NetworkUnavailableError,
    NotFoundError,
    PartialSyncFailure,
    RemoteRejectedError,
    RoutineSyncError,
    StaleDataError,
    StorageCorruptError,
)
from routinesync.local import IdAliasTable, LocalCache, RoutineSnapshot
from routinesync.local.store import DurableKeyValueStore
from routinesync.local.validators import (
    validate_routine_exists,
    validate_routine_input,
    validate_routine_updates,
    validate_slot_exists,
    validate_slot_input,
    validate_slot_updates,
)
from routinesync.models import (
    ActionResult,
    ReplayResult,
    Routine,
    RoutineInput,
    RoutineSlot,
    SlotInput,
    SyncState,
)
from routinesync.pending import (
    AddSlot,
    CreateRoutine,
    DeleteRoutine,
    DeleteSlot,
    PendingAction,
    PendingActionQueue,
    UpdateRoutine,
    UpdateSlot,
    apply_action,
    entity_ids,
    rebase,
)
from routinesync.util.ids import (
    is_temp_id,
    new_idempotency_key,
    new_temp_routine_id,
    new_temp_slot_id,
)
from routinesync.util.time import now_utc

logger = logging.getLogger(__name__)

T = TypeVar("T")
StateListener = Callable[[SyncState], None]

_ROUTINE_SERVER_FIELDS: tuple[str, ...] = (
    "name",
    "semester",
    "description",
    "is_active",
    "created_at",
    "created_by",
)


class SyncCoordinator:
    """
    Sole owner and writer of the routine collection shown to the UI.

    Every read and write decides between the remote service and the local
    cache/queue:
        - online: call the remote service and mirror the result locally;
        - offline (or remote unavailable): mutate locally, assign temporary ids,
          queue a PendingAction for replay.

    Policy:
        - NetworkUnavailableError from the remote switches the call to the
          offline path; it never reaches the caller.
        - RemoteRejectedError undoes the optimistic change (unless a newer local
          change exists) and is raised to the caller.
        - A mutation that cannot be written to the pending queue raises
          StorageCorruptError and leaves the collection as it was.
        - Recoverable conditions (StaleDataError, unreadable or unwritable
          cache, PartialSyncFailure) are recorded in state.last_error, not raised.
        - Queued actions backing off after a failure are replayed by a timer
          once due, without waiting for a connectivity change.
    """

    def __init__(
        self,
        remote: RemoteDataService,
        store: DurableKeyValueStore,
        monitor: ConnectivityMonitor,
        *,
        config: Optional[SyncConfig] = None,
        clock: Callable[[], Any] = now_utc,
    ) -> None:
        self._config = config or SyncConfig()
        self._remote = remote
        self._monitor = monitor
        self._cache = LocalCache(store, key=self._config.cache_key)
        self._queue = PendingActionQueue(store, key=self._config.queue_key)
        self._aliases = IdAliasTable(store, key=self._config.aliases_key)
        self._retry = self._config.retry_policy()
        self._clock = clock

        self._snapshot = RoutineSnapshot()
        self._epoch = 0
        self._in_flight: dict[str, int] = {}
        self._tombstones: set[str] = set()

        self._is_loading = False
        self._last_error: Optional[RoutineSyncError] = None
        self._state = SyncState()
        self._listeners: list[StateListener] = []

        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._unsubscribe_monitor: Optional[Callable[[], None]] = None
        self._replay_task: Optional[asyncio.Task[ReplayResult]] = None
        self._background: set[asyncio.Task[Any]] = set()
        self._retry_timer: Optional[asyncio.TimerHandle] = None
        self._handoffs = 0
        self._handoff_lock = threading.Lock()
        self._load_generation = 0

    # ----------------------------
    # Lifecycle
    # ----------------------------
    @property
    def started(self) -> bool:
        return self._loop is not None

    async def start(self) -> SyncState:
        """
        Restore the last persisted state and start following connectivity.

        Never raises for unreadable storage: the unreadable part starts empty
        and StorageCorruptError is recorded in state.last_error.
        """
        if self.started:
            return self._state

        self._loop = asyncio.get_running_loop()

        for restore in (self._aliases.load, self._queue.load):
            try:
                restore()
            except StorageCorruptError as exc:
                self._last_error = exc

        try:
            cached = self._cache.read_strict()
        except StorageCorruptError as exc:
            self._last_error = exc
            cached = []

        self._snapshot = RoutineSnapshot.from_routines(cached)
        self._epoch = max((r.version for r in self._snapshot.routines), default=0)
        self._unsubscribe_monitor = self._monitor.subscribe(self._on_connectivity)
        self._publish()

        logger.info(
            "Sync coordinator started: %d cached routines, %d pending actions",
            len(self._snapshot),
            len(self._queue),
        )
        if self._monitor.is_online() and len(self._queue):
            self._spawn(self._reconnect_sync())
        return self._state

    async def stop(self) -> None:
        if self._unsubscribe_monitor is not None:
            self._unsubscribe_monitor()
            self._unsubscribe_monitor = None
        self._cancel_retry()

        tasks = list(self._background)
        if self._replay_task is not None:
            tasks.append(self._replay_task)
        for task in tasks:
            task.cancel()
        for task in tasks:
            try:
                await task
            except asyncio.CancelledError:
                pass
        self._background.clear()
        self._replay_task = None
        self._loop = None

    async def wait_idle(self) -> None:
        """
        Wait for syncs started in the background by connectivity changes or
        due retries. Retries whose backoff has not elapsed yet are not waited for.
        """
        while True:
            if self._handoffs:
                # A connectivity change is still on its way onto the loop.
                await asyncio.sleep(0)
                continue
            pending = [t for t in self._background if not t.done()]
            if not pending:
                return
            await asyncio.gather(*pending, return_exceptions=True)

    # ----------------------------
    # Observable state
    # ----------------------------
    @property
    def state(self) -> SyncState:
        return self._state

    @property
    def pending_count(self) -> int:
        return len(self._queue)

    def subscribe(self, listener: StateListener) -> Callable[[], None]:
        """Call listener with every new SyncState. Returns an unsubscribe callable."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            try:
                self._listeners.remove(listener)
            except ValueError:
                pass

        return unsubscribe

    # ----------------------------
    # Reads
    # ----------------------------
    async def load(self) -> SyncState:
        """
        Refresh the collection.

        online: fetch from remote, re-apply still-queued actions on top, persist.
        remote failure: fall back to the cache and record StaleDataError.
        offline: read the cache.
        A load superseded by a newer load() discards its result on arrival.
        """
        self._require_started()
        self._load_generation += 1
        generation = self._load_generation
        epoch_at_start = self._epoch

        self._is_loading = True
        self._publish()
        try:
            await self._load_into_snapshot(generation, epoch_at_start)
        finally:
            if generation == self._load_generation:
                self._is_loading = False
                self._publish()
        return self._state

    async def _load_into_snapshot(self, generation: int, epoch_at_start: int) -> None:
        if not self._monitor.is_online():
            self._restore_from_cache()
            return

        try:
            fetched = await self._call_remote(self._remote.fetch_all())
        except RoutineSyncError as exc:
            if generation != self._load_generation:
                return
            logger.warning("Fetching routines failed; showing cached data: %s", exc)
            self._restore_from_cache(stale=StaleDataError("Showing cached routines", cause=exc))
            return

        if generation != self._load_generation:
            logger.debug("Discarding superseded load (generation %d)", generation)
            return

        self._apply_fetched(fetched, epoch_at_start)
        if isinstance(self._last_error, (StaleDataError, StorageCorruptError)):
            self._last_error = None
        self._persist_snapshot()
        logger.info("Loaded %d routines from remote", len(fetched))

    # ----------------------------
    # Routine mutations
    # ----------------------------
    async def create_routine(self, value: RoutineInput) -> Routine:
        self._require_started()
        validate_routine_input(value)
        key = new_idempotency_key()

        failure: Optional[NetworkUnavailableError] = None
        if self._monitor.is_online():
            try:
                created = await self._call_remote(self._remote.create_routine(value, key))
            except NetworkUnavailableError as exc:
                logger.info("Create routine falling back to offline queue: %s", exc)
                failure = exc
            else:
                if not self._snapshot.has(created.id):
                    self._snapshot.insert_front(created.copy())
                self._touch(created.id)
                self._commit()
                return self._snapshot.get(created.id).copy()

        action = CreateRoutine(
            local_id=new_temp_routine_id(),
            input=value,
            idempotency_key=key,
            created_at=self._clock(),
        )
        self._enqueue(action, failure)
        apply_action(self._snapshot, action)
        self._touch(action.local_id)
        self._commit()
        return self._snapshot.get(action.local_id).copy()

    async def update_routine(self, routine_id: str, updates: dict[str, Any]) -> Routine:
        self._require_started()
        cleaned = validate_routine_updates(updates)
        routine_id = self._aliases.resolve(routine_id)
        validate_routine_exists(self._snapshot, routine_id)

        previous = self._snapshot.get(routine_id).copy()
        action = UpdateRoutine(routine_id=routine_id, updates=cleaned, created_at=self._clock())
        send = self._should_send({routine_id})
        if not send:
            self._enqueue(action)
        apply_action(self._snapshot, action)
        version = self._touch(routine_id)
        self._commit()
        if not send:
            return self._snapshot.get(routine_id).copy()

        with self._tracking(routine_id):
            try:
                server = await self._call_remote(self._remote.update_routine(routine_id, cleaned))
            except NetworkUnavailableError as exc:
                logger.info("Update routine falling back to offline queue: %s", exc)
                self._enqueue_or_rollback(action, exc, routine_id, version, previous)
                return self._current_or(routine_id, previous)
            except RemoteRejectedError:
                self._rollback(routine_id, version, previous)
                raise

        if server is not None and self._is_current(routine_id, version):
            self._merge_server_routine(routine_id, server)
            self._commit()
        return self._current_or(routine_id, previous)

    async def delete_routine(self, routine_id: str) -> None:
        self._require_started()
        routine_id = self._aliases.resolve(routine_id)
        validate_routine_exists(self._snapshot, routine_id)

        position = self._snapshot.position_by_id[routine_id]
        previous = self._snapshot.get(routine_id).copy()
        action = DeleteRoutine(routine_id=routine_id, created_at=self._clock())
        send = self._should_send({routine_id})
        if not send:
            self._enqueue(action)
        apply_action(self._snapshot, action)
        self._next_epoch()
        self._commit()
        if not send:
            return

        self._tombstones.add(routine_id)
        try:
            with self._tracking(routine_id):
                await self._call_remote(self._remote.delete_routine(routine_id))
        except NotFoundError:
            logger.debug("Routine %s was already deleted remotely", routine_id)
        except NetworkUnavailableError as exc:
            logger.info("Delete routine falling back to offline queue: %s", exc)
            try:
                self._enqueue(action, exc)
            except StorageCorruptError:
                self._restore_routine(position, previous)
                raise
            self._publish()
        except RemoteRejectedError:
            self._restore_routine(position, previous)
            raise
        finally:
            self._tombstones.discard(routine_id)

    # ----------------------------
    # Slot mutations
    # ----------------------------
    async def add_slot(self, routine_id: str, value: SlotInput) -> RoutineSlot:
        self._require_started()
        validate_slot_input(value)
        routine_id = self._aliases.resolve(routine_id)
        validate_routine_exists(self._snapshot, routine_id)
        key = new_idempotency_key()

        failure: Optional[NetworkUnavailableError] = None
        if self._should_send({routine_id}):
            try:
                with self._tracking(routine_id):
                    slot = await self._call_remote(self._remote.add_slot(routine_id, value, key))
            except NetworkUnavailableError as exc:
                logger.info("Add slot falling back to offline queue: %s", exc)
                failure = exc
            else:
                if self._snapshot.has(routine_id):
                    slot.routine_id = routine_id
                    if not self._snapshot.has_slot(routine_id, slot.id):
                        self._snapshot.append_slot(routine_id, _copy_slot(slot))
                    self._touch(routine_id)
                    self._commit()
                return slot

        # The routine may have gone away while the remote call was in flight.
        validate_routine_exists(self._snapshot, routine_id)
        action = AddSlot(
            routine_id=routine_id,
            local_id=new_temp_slot_id(),
            input=value,
            idempotency_key=key,
            created_at=self._clock(),
        )
        self._enqueue(action, failure)
        apply_action(self._snapshot, action)
        self._touch(routine_id)
        self._commit()
        return _copy_slot(self._snapshot.get_slot(routine_id, action.local_id))

    async def update_slot(
        self,
        routine_id: str,
        slot_id: str,
        updates: dict[str, Any],
    ) -> RoutineSlot:
        self._require_started()
        cleaned = validate_slot_updates(updates)
        routine_id = self._aliases.resolve(routine_id)
        slot_id = self._aliases.resolve(slot_id)
        validate_slot_exists(self._snapshot, routine_id, slot_id)

        previous = self._snapshot.get(routine_id).copy()
        action = UpdateSlot(
            routine_id=routine_id,
            slot_id=slot_id,
            updates=cleaned,
            created_at=self._clock(),
        )
        send = self._should_send({routine_id, slot_id})
        if not send:
            self._enqueue(action)
        apply_action(self._snapshot, action)
        version = self._touch(routine_id)
        updated = _copy_slot(self._snapshot.get_slot(routine_id, slot_id))
        self._commit()
        if not send:
            return updated

        with self._tracking(routine_id):
            try:
                server = await self._call_remote(
                    self._remote.update_slot(routine_id, slot_id, cleaned)
                )
            except NetworkUnavailableError as exc:
                logger.info("Update slot falling back to offline queue: %s", exc)
                self._enqueue_or_rollback(action, exc, routine_id, version, previous)
                return updated
            except RemoteRejectedError:
                self._rollback(routine_id, version, previous)
                raise

        if (
            server is not None
            and self._is_current(routine_id, version)
            and self._snapshot.has_slot(routine_id, slot_id)
        ):
            server.routine_id = routine_id
            self._snapshot.replace_slot(routine_id, server)
            self._commit()
            return _copy_slot(server)
        return updated

    async def delete_slot(self, routine_id: str, slot_id: str) -> None:
        self._require_started()
        routine_id = self._aliases.resolve(routine_id)
        slot_id = self._aliases.resolve(slot_id)
        validate_slot_exists(self._snapshot, routine_id, slot_id)

        previous = self._snapshot.get(routine_id).copy()
        action = DeleteSlot(routine_id=routine_id, slot_id=slot_id, created_at=self._clock())
        send = self._should_send({routine_id, slot_id})
        if not send:
            self._enqueue(action)
        apply_action(self._snapshot, action)
        version = self._touch(routine_id)
        self._commit()
        if not send:
            return

        with self._tracking(routine_id):
            try:
                await self._call_remote(self._remote.delete_slot(routine_id, slot_id))
            except NotFoundError:
                logger.debug("Slot %s was already deleted remotely", slot_id)
            except NetworkUnavailableError as exc:
                logger.info("Delete slot falling back to offline queue: %s", exc)
                self._enqueue_or_rollback(action, exc, routine_id, version, previous)
            except RemoteRejectedError:
                self._rollback(routine_id, version, previous)
                raise

    # ----------------------------
    # Replay
    # ----------------------------
    async def replay_pending(self, *, force: bool = False) -> ReplayResult:
        """
        Replay queued actions in FIFO order.

        A call made while a replay is in flight joins that replay instead of
        starting a second one. force=True ignores backoff and exhaustion.
        """
        self._require_started()
        if self._replay_task is None or self._replay_task.done():
            self._replay_task = asyncio.get_running_loop().create_task(self._replay(force))
        return await asyncio.shield(self._replay_task)

    async def trigger_manual_sync(self) -> ReplayResult:
        """replay_pending(force=True) followed by load()."""
        result = await self.replay_pending(force=True)
        await self.load()
        return result

    async def _replay(self, force: bool) -> ReplayResult:
        if not self._monitor.is_online():
            return ReplayResult(status="skipped", remaining=len(self._queue))

        entries = self._queue.drain()
        if not entries:
            return ReplayResult(status="success")

        logger.info("Replaying %d pending actions", len(entries))
        now = self._clock()
        results: list[ActionResult] = []
        id_map: dict[str, str] = {}
        blocked: set[str] = set()
        not_synced: list[str] = []
        network_down = False
        storage_error: Optional[StorageCorruptError] = None

        for index, action in enumerate(entries):
            keys = {self._aliases.resolve(i) for i in entity_ids(action)}
            ordered_behind = network_down or bool(keys & blocked)
            if ordered_behind or not self._retry.is_due(action, now, force=force):
                # Entries merely waiting out their backoff do not count as failures.
                if ordered_behind or action.exhausted:
                    not_synced.append(action.action_id)
                blocked |= keys
                results.append(_skipped_result(action))
                continue

            if force and action.exhausted:
                self._retry.reset(action)

            try:
                try:
                    server_id = await self._replay_one(action)
                except StorageCorruptError:
                    raise
                except RoutineSyncError as exc:
                    logger.warning(
                        "Replay of %s %s failed: %s", action.kind.value, action.action_id, exc
                    )
                    self._retry.record_failure(action, exc, self._clock())
                    self._queue.update(action)
                    blocked |= keys
                    not_synced.append(action.action_id)
                    results.append(_failed_result(action, exc))
                    if isinstance(exc, NetworkUnavailableError):
                        network_down = True
                    continue

                self._queue.remove(action.action_id)
            except StorageCorruptError as exc:
                # Queue bookkeeping cannot be trusted; leave the rest for the next pass.
                logger.warning("Replay stopped on a storage failure: %s", exc)
                storage_error = exc
                for rest in entries[index:]:
                    not_synced.append(rest.action_id)
                    results.append(_skipped_result(rest))
                break

            if server_id is not None and isinstance(action, (CreateRoutine, AddSlot)):
                id_map[action.local_id] = server_id
            results.append(_success_result(action, server_id))

        try:
            self._prune_aliases()
        except StorageCorruptError as exc:
            logger.warning("Could not prune id aliases: %s", exc)
        summary = _summarize_results(results)
        remaining = len(self._queue)

        error: Optional[PartialSyncFailure] = None
        if not_synced:
            error = PartialSyncFailure(
                f"{len(not_synced)} of {len(results)} queued actions did not sync",
                failed_action_ids=not_synced,
                details={"summary": dict(summary)},
                cause=storage_error,
            )
            self._last_error = error
        elif isinstance(self._last_error, PartialSyncFailure) and remaining == 0:
            self._last_error = None

        self._persist_snapshot()
        self._publish()
        self._schedule_retry()
        logger.info(
            "Replay finished: %d succeeded, %d failed, %d skipped, %d remaining",
            summary["success"],
            summary["failed"],
            summary["skipped"],
            remaining,
        )
        return ReplayResult(
            status="partial" if error else "success",
            results=results,
            id_map=id_map,
            summary=summary,
            remaining=remaining,
            error=error,
        )

    async def _replay_one(self, action: PendingAction) -> Optional[str]:
        """Issue the remote call for one action. Returns the server id for creates."""
        if isinstance(action, CreateRoutine):
            known = self._aliases.get(action.local_id)
            if known is not None:
                # Confirmed before a crash; only the queue trim was lost.
                if self._snapshot.rename_routine(action.local_id, known):
                    self._persist_snapshot()
                return known
            created = await self._call_remote(
                self._remote.create_routine(action.input, action.idempotency_key)
            )
            self._reconcile_routine(action.local_id, created)
            return created.id

        if isinstance(action, UpdateRoutine):
            routine_id = self._require_resolved(action.routine_id)
            await self._call_remote(self._remote.update_routine(routine_id, action.updates))
            return None

        if isinstance(action, DeleteRoutine):
            routine_id = self._require_resolved(action.routine_id)
            try:
                await self._call_remote(self._remote.delete_routine(routine_id))
            except NotFoundError:
                pass
            return None

        if isinstance(action, AddSlot):
            routine_id = self._require_resolved(action.routine_id)
            known = self._aliases.get(action.local_id)
            if known is not None:
                if self._snapshot.rename_slot(routine_id, action.local_id, known):
                    self._persist_snapshot()
                return known
            slot = await self._call_remote(
                self._remote.add_slot(routine_id, action.input, action.idempotency_key)
            )
            self._reconcile_slot(routine_id, action.local_id, slot)
            return slot.id

        if isinstance(action, UpdateSlot):
            routine_id = self._require_resolved(action.routine_id)
            slot_id = self._require_resolved(action.slot_id)
            await self._call_remote(self._remote.update_slot(routine_id, slot_id, action.updates))
            return None

        if isinstance(action, DeleteSlot):
            routine_id = self._require_resolved(action.routine_id)
            slot_id = self._require_resolved(action.slot_id)
            try:
                await self._call_remote(self._remote.delete_slot(routine_id, slot_id))
            except NotFoundError:
                pass
            return None

        raise InvalidStateError("Unsupported action", details={"action": repr(action)})

    # ----------------------------
    # Reconciliation
    # ----------------------------
    def _reconcile_routine(self, temp_id: str, created: Routine) -> None:
        # Alias first: once it is durable, a crash before the queue trim is harmless.
        self._aliases.add(temp_id, created.id)
        if self._snapshot.rename_routine(temp_id, created.id):
            routine = self._snapshot.get(created.id)
            routine.created_at = created.created_at or routine.created_at
            routine.created_by = created.created_by
        self._persist_snapshot()
        logger.info("Reconciled routine %s -> %s", temp_id, created.id)

    def _reconcile_slot(self, routine_id: str, temp_id: str, slot: RoutineSlot) -> None:
        self._aliases.add(temp_id, slot.id)
        self._snapshot.rename_slot(routine_id, temp_id, slot.id)
        self._persist_snapshot()
        logger.debug("Reconciled slot %s -> %s", temp_id, slot.id)

    def _prune_aliases(self) -> None:
        referenced: set[str] = set()
        for action in self._queue.drain():
            referenced |= entity_ids(action)
        self._aliases.discard(set(self._aliases.as_dict()) - referenced)

    def _require_resolved(self, local_id: str) -> str:
        resolved = self._aliases.resolve(local_id)
        if is_temp_id(resolved):
            raise InvalidStateError(
                "Temporary id has no server id yet",
                details={"local_id": local_id},
            )
        return resolved

    # ----------------------------
    # Internals
    # ----------------------------
    def _apply_fetched(self, fetched: list[Routine], epoch_at_start: int) -> None:
        fresh = RoutineSnapshot.from_routines(fetched)
        rebase(fresh, self._queue.drain(), self._aliases.resolve)

        # Local changes made while the fetch was in flight win over the response.
        for local in reversed(self._snapshot.routines):
            if local.version <= epoch_at_start and local.id not in self._in_flight:
                continue
            if fresh.has(local.id):
                fresh.replace(local.copy())
            else:
                fresh.insert_front(local.copy())

        for routine_id in self._tombstones:
            fresh.remove(routine_id)

        for routine in fresh.routines:
            if self._snapshot.has(routine.id):
                routine.version = max(routine.version, self._snapshot.get(routine.id).version)

        self._snapshot = fresh

    def _restore_from_cache(self, *, stale: Optional[StaleDataError] = None) -> None:
        try:
            cached = self._cache.read_strict()
        except StorageCorruptError as exc:
            snapshot = RoutineSnapshot()
            rebase(snapshot, self._queue.drain(), self._aliases.resolve)
            self._snapshot = snapshot
            self._last_error = exc
            self._persist_snapshot()
            return

        self._snapshot = RoutineSnapshot.from_routines(cached)
        self._epoch = max([self._epoch] + [r.version for r in self._snapshot.routines])
        if stale is not None:
            self._last_error = stale

    def _merge_server_routine(self, routine_id: str, server: Routine) -> None:
        routine = self._snapshot.get(routine_id)
        for name in _ROUTINE_SERVER_FIELDS:
            setattr(routine, name, getattr(server, name))

    def _should_send(self, ids: set[str]) -> bool:
        """
        True if a mutation on ids can go straight to the remote service.

        It must be queued instead when offline, when any id is still temporary,
        or when earlier queued actions touch the same entities (replay order).
        """
        if not self._monitor.is_online():
            return False
        if any(is_temp_id(i) for i in ids):
            return False
        for action in self._queue.drain():
            if {self._aliases.resolve(i) for i in entity_ids(action)} & ids:
                return False
        return True

    def _enqueue(self, action: PendingAction, failure: Optional[RoutineSyncError] = None) -> None:
        """
        Durably queue action. Callers apply it to the snapshot only afterwards,
        so a StorageCorruptError from the queue leaves local state untouched.

        failure is the error of a send that already went out; it counts as the
        first attempt and schedules the retry.
        """
        if failure is not None:
            self._retry.record_failure(action, failure, self._clock())
        self._queue.enqueue(action)
        logger.info("Queued %s for replay", action.kind.value)
        if failure is not None:
            self._schedule_retry()

    def _enqueue_or_rollback(
        self,
        action: PendingAction,
        failure: RoutineSyncError,
        routine_id: str,
        version: int,
        previous: Routine,
    ) -> None:
        try:
            self._enqueue(action, failure)
        except StorageCorruptError:
            self._rollback(routine_id, version, previous)
            raise
        self._publish()

    def _rollback(self, routine_id: str, version: int, previous: Routine) -> None:
        """Undo an optimistic change unless a newer local change superseded it."""
        if self._is_current(routine_id, version):
            previous.version = self._next_epoch()
            self._snapshot.replace(previous)
            self._commit()

    def _restore_routine(self, position: int, previous: Routine) -> None:
        if self._snapshot.has(previous.id):
            return
        previous.version = self._next_epoch()
        self._snapshot.insert_at(position, previous)
        self._commit()

    def _touch(self, routine_id: str) -> int:
        version = self._next_epoch()
        if self._snapshot.has(routine_id):
            self._snapshot.get(routine_id).version = version
        return version

    def _next_epoch(self) -> int:
        self._epoch += 1
        return self._epoch

    def _is_current(self, routine_id: str, version: int) -> bool:
        return self._snapshot.has(routine_id) and self._snapshot.get(routine_id).version == version

    def _current_or(self, routine_id: str, fallback: Routine) -> Routine:
        if self._snapshot.has(routine_id):
            return self._snapshot.get(routine_id).copy()
        return fallback

    @contextmanager
    def _tracking(self, routine_id: str) -> Iterator[None]:
        self._in_flight[routine_id] = self._in_flight.get(routine_id, 0) + 1
        try:
            yield
        finally:
            count = self._in_flight.get(routine_id, 1) - 1
            if count <= 0:
                self._in_flight.pop(routine_id, None)
            else:
                self._in_flight[routine_id] = count

    async def _call_remote(self, awaitable: Awaitable[T]) -> T:
        """Await a remote call; anything that is not a RoutineSyncError counts as offline."""
        try:
            return await awaitable
        except RoutineSyncError:
            raise
        except Exception as exc:
            raise NetworkUnavailableError("Remote call failed", cause=exc) from exc

    def _commit(self) -> None:
        self._persist_snapshot()
        self._publish()

    def _persist_snapshot(self) -> None:
        """Write the snapshot to the cache. A failed write is recorded, not raised."""
        try:
            self._cache.write(self._snapshot.routines)
        except OSError as exc:
            logger.warning("Failed to write local cache: %s", exc)
            self._last_error = StorageCorruptError(
                "Failed to write local cache",
                details={"key": self._cache.key},
                cause=exc,
            )

    def _publish(self) -> None:
        self._state = SyncState(
            routines=tuple(self._snapshot.to_list()),
            is_loading=self._is_loading,
            last_error=self._last_error,
            is_offline=not self._monitor.is_online(),
            pending_count=len(self._queue),
        )
        for listener in list(self._listeners):
            try:
                listener(self._state)
            except Exception:
                logger.exception("State listener %r failed", listener)

    def _require_started(self) -> None:
        if self._loop is None:
            raise InvalidStateError("Coordinator is not started. Call start() first.")

    def _on_connectivity(self, event: ConnectivityEvent) -> None:
        loop = self._loop
        if loop is None or loop.is_closed():
            return
        self._count_handoff(1)
        try:
            loop.call_soon_threadsafe(self._handle_connectivity, event.online)
        except RuntimeError:
            # Loop closed between the check and the call.
            self._count_handoff(-1)

    def _handle_connectivity(self, online: bool) -> None:
        try:
            if self._loop is None:
                return
            self._publish()
            if online:
                self._spawn(self._reconnect_sync())
            else:
                self._cancel_retry()
        finally:
            self._count_handoff(-1)

    def _count_handoff(self, delta: int) -> None:
        # Incremented on the monitor's thread, decremented on the loop.
        with self._handoff_lock:
            self._handoffs += delta

    # ----------------------------
    # Retry scheduling
    # ----------------------------
    def _schedule_retry(self) -> None:
        """Arm a timer for the earliest queued action whose backoff is pending."""
        if self._loop is None or not self._monitor.is_online():
            self._cancel_retry()
            return

        # Entries ordered behind an exhausted or backing-off entry wait for it.
        blocked: set[str] = set()
        due = []
        for action in self._queue.drain():
            keys = {self._aliases.resolve(i) for i in entity_ids(action)}
            if keys & blocked or action.exhausted:
                blocked |= keys
                continue
            if action.next_attempt_at is not None:
                due.append(action.next_attempt_at)
                blocked |= keys

        self._cancel_retry()
        if not due:
            return

        delay = max(0.0, (min(due) - self._clock()).total_seconds())
        self._retry_timer = self._loop.call_later(delay, self._retry_due)
        logger.debug("Next replay attempt in %.2fs", delay)

    def _retry_due(self) -> None:
        self._retry_timer = None
        if self._loop is not None:
            self._spawn(self._retry_sync())

    def _cancel_retry(self) -> None:
        if self._retry_timer is not None:
            self._retry_timer.cancel()
            self._retry_timer = None

    async def _retry_sync(self) -> None:
        try:
            await self.replay_pending()
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.exception("Scheduled replay failed")

    def _spawn(self, coro: Awaitable[Any]) -> None:
        task = asyncio.ensure_future(coro)
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    async def _reconnect_sync(self) -> None:
        try:
            await self.replay_pending()
            await self.load()
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.exception("Background sync after reconnect failed")


def _copy_slot(slot: RoutineSlot) -> RoutineSlot:
    return replace(slot)


def _success_result(action: PendingAction, server_id: Optional[str]) -> ActionResult:
    return ActionResult(
        action_id=action.action_id,
        seq=action.seq,
        kind=action.kind.value,
        status="success",
        local_id=getattr(action, "local_id", None),
        server_id=server_id,
    )


def _failed_result(action: PendingAction, exc: RoutineSyncError) -> ActionResult:
    return ActionResult(
        action_id=action.action_id,
        seq=action.seq,
        kind=action.kind.value,
        status="failed",
        error_type=exc.__class__.__name__,
        error_message=str(exc),
        error_details=dict(exc.details) or None,
        local_id=getattr(action, "local_id", None),
    )


def _skipped_result(action: PendingAction) -> ActionResult:
    return ActionResult(
        action_id=action.action_id,
        seq=action.seq,
        kind=action.kind.value,
        status="skipped",
        error_message=action.last_error,
        local_id=getattr(action, "local_id", None),
    )


def _summarize_results(results: list[ActionResult]) -> dict[str, int]:
    summary: dict[str, int] = {"success": 0, "failed": 0, "skipped": 0}
    for r in results:
        summary[r.status] = summary.get(r.status, 0) + 1
    return summary
