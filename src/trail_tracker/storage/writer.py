"""Single-writer queue for backup checkpoints.

Callers never wait on persistence. Jobs are executed in submission order by
one worker thread, and only the newest pending job is actually applied: the
slot holds a single record, so an older checkpoint that is still queued when a
newer write or clear arrives is dropped instead of being written late.
"""
from __future__ import annotations

import itertools
import logging
import queue
import threading
from typing import Any, Callable, Dict, Optional, Tuple

from trail_tracker.errors import PersistenceUnavailable
from trail_tracker.storage.base import BackupStore

log = logging.getLogger(__name__)

StatusListener = Callable[[bool, Optional[Exception]], None]

_STOP = object()


class BackupWriter:
    def __init__(
        self,
        store: BackupStore,
        run_async: bool = True,
        on_status: Optional[StatusListener] = None,
    ) -> None:
        self.store = store
        self.run_async = run_async
        self.on_status = on_status

        self.crash_safe = True
        self.last_error: Optional[Exception] = None
        self.written_seq = 0
        self.skipped = 0

        self._seq = itertools.count(1)
        self._latest_seq = 0
        self._queue: "queue.Queue[Any]" = queue.Queue()
        self._cond = threading.Condition()
        self._pending = 0
        self._thread: Optional[threading.Thread] = None

    # ---- submission -----------------------------------------------------

    def submit_write(self, record: Dict[str, Any]) -> int:
        return self._submit("write", record)

    def submit_clear(self) -> int:
        return self._submit("clear", None)

    def _submit(self, op: str, record: Optional[Dict[str, Any]]) -> int:
        with self._cond:
            seq = next(self._seq)
            self._latest_seq = seq
            if self.run_async:
                self._pending += 1
        job = (seq, op, record)
        if not self.run_async:
            self._run(job)
            return seq
        self._ensure_thread()
        self._queue.put(job)
        return seq

    def _ensure_thread(self) -> None:
        if self._thread is not None and self._thread.is_alive():
            return
        self._thread = threading.Thread(target=self._loop, name="backup-writer", daemon=True)
        self._thread.start()

    # ---- worker ---------------------------------------------------------

    def _loop(self) -> None:
        while True:
            job = self._queue.get()
            if job is _STOP:
                self._queue.task_done()
                return
            try:
                with self._cond:
                    stale = job[0] < self._latest_seq
                if stale:
                    self.skipped += 1
                    log.debug("Checkpoint #%d superseded, skipping", job[0])
                else:
                    self._run(job)
            finally:
                self._queue.task_done()
                with self._cond:
                    self._pending -= 1
                    if self._pending == 0:
                        self._cond.notify_all()

    def _run(self, job: Tuple[int, str, Optional[Dict[str, Any]]]) -> None:
        seq, op, record = job
        try:
            if op == "write":
                self.store.write(record or {})
            else:
                self.store.clear()
        except PersistenceUnavailable as exc:
            log.warning("Backup %s #%d failed (%s); session is not crash-safe", op, seq, exc)
            self._set_status(False, exc)
            return
        except Exception as exc:
            log.exception("Backup %s #%d failed unexpectedly", op, seq)
            self._set_status(False, exc)
            return
        self.written_seq = seq
        log.debug("Backup %s #%d done (%s)", op, seq, self.store.name)
        self._set_status(True, None)

    def _set_status(self, ok: bool, error: Optional[Exception]) -> None:
        changed = ok != self.crash_safe
        self.crash_safe = ok
        self.last_error = error
        if changed and self.on_status is not None:
            try:
                self.on_status(ok, error)
            except Exception:
                log.exception("Backup status listener failed")

    # ---- lifecycle ------------------------------------------------------

    def flush(self, timeout: Optional[float] = None) -> bool:
        """Block until every submitted job has been handled."""
        with self._cond:
            return self._cond.wait_for(lambda: self._pending == 0, timeout)

    def close(self, timeout: Optional[float] = 5.0) -> None:
        self.flush(timeout)
        if self._thread is not None and self._thread.is_alive():
            self._queue.put(_STOP)
            self._thread.join(timeout)
        self._thread = None
