# src/cratestitch/watch.py
"""Debounced watch loop.

One actor (`WatchSession`) owns the state machine. Change notifications,
pipeline completions and interrupts reach it through a queue; the debounce
timer is a deadline read from an injected clock. The pipeline runs through a
runner so a long build never blocks the queue, and at most one run is in
flight at a time.

    IDLE --change--> SCHEDULED --deadline--> RUNNING --ok--> IDLE
                        ^  |change (reset)      |--error--> FAILED --> IDLE
                        |__|                    |--change--> (queued, rescheduled)
    any state --interrupt/cancel--> TERMINATED
"""

from __future__ import annotations

import queue
import threading
import time
from collections.abc import Callable, Iterable
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Generic, Protocol, TypeVar

from .constants import DEFAULT_POLL_INTERVAL, MANIFEST_NAME, SOURCE_SUFFIX
from .logs import getAppLogger


T = TypeVar("T")


class WatchState(Enum):
    IDLE = "idle"
    SCHEDULED = "scheduled"
    RUNNING = "running"
    FAILED = "failed"
    TERMINATED = "terminated"


# --------------------------------------------------------------------------- #
# events
# --------------------------------------------------------------------------- #


@dataclass(frozen=True)
class FileChanged:
    paths: frozenset[Path] = field(default_factory=frozenset)


@dataclass(frozen=True)
class PipelineFinished:
    result: Any = None
    error: BaseException | None = None


@dataclass(frozen=True)
class Interrupt:
    pass


WatchEvent = FileChanged | PipelineFinished | Interrupt


# --------------------------------------------------------------------------- #
# capabilities
# --------------------------------------------------------------------------- #


class CancellationToken:
    """Cooperative stop signal shared between the session and its owner."""

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def wait(self, timeout: float | None = None) -> bool:
        """Sleep up to `timeout` seconds; return True once cancelled."""
        return self._event.wait(timeout)


class Clock(Protocol):
    def now(self) -> float: ...


class MonotonicClock:
    def now(self) -> float:
        return time.monotonic()


class VirtualClock:
    """Manually advanced clock for deterministic tests."""

    def __init__(self, start: float = 0.0) -> None:
        self._now = start

    def now(self) -> float:
        return self._now

    def advance(self, seconds: float) -> None:
        self._now += seconds


class PipelineRunner(Protocol):
    def submit(
        self,
        job: Callable[[], Any],
        done: Callable[[PipelineFinished], None],
    ) -> None: ...

    def shutdown(self, *, wait: bool = True) -> None: ...


class InlineRunner:
    """Run the pipeline synchronously on the caller's thread."""

    def submit(
        self,
        job: Callable[[], Any],
        done: Callable[[PipelineFinished], None],
    ) -> None:
        try:
            result = job()
        except Exception as e:  # noqa: BLE001
            done(PipelineFinished(error=e))
        else:
            done(PipelineFinished(result=result))

    def shutdown(self, *, wait: bool = True) -> None:  # noqa: ARG002
        return None


class ThreadRunner:
    """Run the pipeline on a single background worker."""

    def __init__(self) -> None:
        self._executor = ThreadPoolExecutor(
            max_workers=1, thread_name_prefix="cratestitch-pipeline"
        )

    def submit(
        self,
        job: Callable[[], Any],
        done: Callable[[PipelineFinished], None],
    ) -> None:
        def _report(future: Future[Any]) -> None:
            error = future.exception()
            if error is not None:
                done(PipelineFinished(error=error))
            else:
                done(PipelineFinished(result=future.result()))

        self._executor.submit(job).add_done_callback(_report)

    def shutdown(self, *, wait: bool = True) -> None:
        self._executor.shutdown(wait=wait)


# --------------------------------------------------------------------------- #
# session
# --------------------------------------------------------------------------- #


class WatchSession(Generic[T]):
    """Debounced re-run of `pipeline` in response to file changes."""

    def __init__(  # noqa: PLR0913
        self,
        pipeline: Callable[[], T],
        *,
        debounce: float,
        token: CancellationToken,
        clock: Clock | None = None,
        runner: PipelineRunner | None = None,
        on_success: Callable[[T], None] | None = None,
        on_failure: Callable[[BaseException], None] | None = None,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
    ) -> None:
        self.pipeline = pipeline
        self.debounce = debounce
        self.token = token
        self.clock = clock or MonotonicClock()
        self.runner = runner or InlineRunner()
        self.on_success = on_success
        self.on_failure = on_failure
        self.poll_interval = poll_interval

        self.state = WatchState.IDLE
        self.pending: set[Path] = set()
        self.deadline: float | None = None
        self.last_output: T | None = None
        self.runs = 0
        self.failures = 0
        self._changed_while_running: set[Path] = set()
        self._rerun = False
        self._events: queue.Queue[WatchEvent] = queue.Queue()

    # --- inputs (safe from any thread) -------------------------------------

    def notify(self, paths: Iterable[Path] = ()) -> None:
        self._events.put(FileChanged(frozenset(paths)))

    def interrupt(self) -> None:
        self.token.cancel()
        self._events.put(Interrupt())

    # --- actor -------------------------------------------------------------

    @property
    def terminated(self) -> bool:
        return self.state is WatchState.TERMINATED

    def _schedule(self) -> None:
        self.state = WatchState.SCHEDULED
        self.deadline = self.clock.now() + self.debounce

    def _terminate(self) -> None:
        if self.state is not WatchState.TERMINATED:
            getAppLogger().debug("[watch] terminating from %s", self.state.value)
        self.state = WatchState.TERMINATED
        self.deadline = None

    def _on_change(self, event: FileChanged) -> None:
        logger = getAppLogger()
        if self.state is WatchState.RUNNING:
            self._changed_while_running.update(event.paths)
            self._rerun = True
            logger.trace("[watch] change queued while running")
            return
        self.pending.update(event.paths)
        self._schedule()
        logger.trace("[watch] change -> scheduled (deadline %.3f)", self.deadline)

    def _on_finished(self, event: PipelineFinished) -> None:
        logger = getAppLogger()
        if self.state is WatchState.TERMINATED:
            if event.error is None:
                self.last_output = event.result
            return
        if event.error is not None:
            self.state = WatchState.FAILED
            self.failures += 1
            logger.debug("[watch] run failed: %s", event.error)
            if self.on_failure is not None:
                self.on_failure(event.error)
        else:
            self.last_output = event.result
            if self.on_success is not None:
                self.on_success(event.result)
        self.state = WatchState.IDLE

        if self._rerun:
            self.pending = self._changed_while_running
            self._changed_while_running = set()
            self._rerun = False
            self._schedule()
            logger.trace("[watch] changes arrived during the run -> rescheduled")

    def handle(self, event: WatchEvent) -> None:
        """Apply one event to the state machine."""
        if isinstance(event, Interrupt):
            self._terminate()
        elif isinstance(event, PipelineFinished):
            self._on_finished(event)
        elif not self.terminated:
            self._on_change(event)

    def tick(self) -> bool:
        """Start the pipeline when the debounce deadline has passed."""
        if self.token.cancelled:
            self._terminate()
            return False
        if self.state is not WatchState.SCHEDULED or self.deadline is None:
            return False
        if self.clock.now() < self.deadline:
            return False

        logger = getAppLogger()
        self.state = WatchState.RUNNING
        self.deadline = None
        changed = sorted(self.pending)
        self.pending = set()
        self.runs += 1
        logger.debug("[watch] run #%d for %d changed file(s)", self.runs, len(changed))
        self.runner.submit(self.pipeline, self._events.put)
        return True

    def step(self, timeout: float | None = 0.0) -> bool:
        """Handle at most one queued event, then check the timer.

        `timeout=0` never blocks; `None` waits for an event indefinitely.
        Returns True when an event was handled.
        """
        handled = False
        try:
            if timeout == 0:
                event = self._events.get_nowait()
            else:
                event = self._events.get(timeout=timeout)
        except queue.Empty:
            pass
        else:
            self.handle(event)
            handled = True
        self.tick()
        return handled

    def pump(self) -> None:
        """Handle every queued event and due timer without blocking."""
        while self.step(0) or not self._events.empty():
            pass

    def _wait_timeout(self) -> float:
        if self.deadline is None:
            return self.poll_interval
        remaining = self.deadline - self.clock.now()
        return max(0.0, min(remaining, self.poll_interval))

    def run(self) -> T | None:
        """Consume events until interrupted; return the last successful output.

        A run that is in flight when the interrupt arrives finishes first.
        """
        logger = getAppLogger()
        try:
            while not self.terminated:
                self.step(self._wait_timeout())
        finally:
            self.runner.shutdown(wait=True)
            # record the outcome of a run that finished during shutdown
            while not self._events.empty():
                self.handle(self._events.get_nowait())
            logger.debug(
                "[watch] session ended after %d run(s), %d failure(s)",
                self.runs,
                self.failures,
            )
        return self.last_output


# --------------------------------------------------------------------------- #
# change source
# --------------------------------------------------------------------------- #


def _watched_files(watch_dir: Path, extra: Iterable[Path]) -> list[Path]:
    files = sorted(p for p in watch_dir.rglob(f"*{SOURCE_SUFFIX}") if p.is_file())
    files.extend(p for p in extra if p.is_file())
    return files


def _mtimes_of(files: Iterable[Path]) -> dict[Path, float]:
    mtimes: dict[Path, float] = {}
    for f in files:
        try:
            mtimes[f] = f.stat().st_mtime
        except FileNotFoundError:
            continue  # removed between glob and stat
    return mtimes


class PollingChangeSource:
    """Poll modification times under a directory and notify a session.

    Every scan re-globs the directory, so new and deleted files are noticed.
    """

    def __init__(
        self,
        session: WatchSession[Any],
        watch_dir: Path,
        *,
        interval: float = DEFAULT_POLL_INTERVAL,
        extra_files: Iterable[Path] = (),
    ) -> None:
        self.session = session
        self.watch_dir = watch_dir
        self.interval = interval
        self.extra_files = list(extra_files)
        self._mtimes: dict[Path, float] = {}
        self._thread: threading.Thread | None = None

    def snapshot(self) -> None:
        self._mtimes = _mtimes_of(_watched_files(self.watch_dir, self.extra_files))

    def scan(self) -> list[Path]:
        """Return files changed, added or removed since the last scan."""
        logger = getAppLogger()
        files = _watched_files(self.watch_dir, self.extra_files)
        logger.trace("[watch] checking %d file(s) for changes", len(files))

        current = _mtimes_of(files)
        changed = [
            f
            for f, mtime in current.items()
            if f not in self._mtimes or mtime > self._mtimes[f]
        ]
        changed.extend(f for f in self._mtimes if f not in current)
        self._mtimes = current
        return changed

    def _loop(self) -> None:
        token = self.session.token
        while not token.wait(self.interval):
            changed = self.scan()
            if changed:
                getAppLogger().info(
                    "🔁 Detected %d modified file(s). Rebuilding...", len(changed)
                )
                self.session.notify(changed)

    def start(self) -> None:
        self.snapshot()
        self._thread = threading.Thread(
            target=self._loop, name="cratestitch-watch", daemon=True
        )
        self._thread.start()

    def join(self, timeout: float | None = None) -> None:
        if self._thread is not None:
            self._thread.join(timeout)


def default_extra_files(project_root: Path) -> list[Path]:
    """Files outside the watched directory that still affect the bundle."""
    return [project_root / MANIFEST_NAME]
