"""
Scheduler service for per-host latency polling.

This module runs one independent polling loop per monitored host on an
APScheduler background scheduler. Each loop is an interval job bound to a
HostTask, the host's cancellation handle; removing a host is a single
lookup-and-cancel in the task map. Automatic and on-demand traceroutes run
as one-shot jobs sharing the same handle, on a separate executor so a long
trace never holds a polling worker.
"""

from contextlib import contextmanager
from datetime import datetime, timezone
import logging
import threading
import time
import traceback
from typing import Callable, Dict, Optional

from apscheduler.executors.pool import ThreadPoolExecutor
from apscheduler.jobstores.base import JobLookupError
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger

from ..config import settings as default_settings
from ..errors import HostLimitReached, HostNotFound, InvalidHost, ProbeError, TraceFailure
from ..models import AlertKind, TraceResult
from ..monitoring import (
    AlertLog,
    HealthTracker,
    HealthUpdate,
    HostRegistry,
    Membership,
    TraceCache,
    normalize_host,
)
from ..scanner import Prober, Tracer

logger = logging.getLogger(__name__)


class HostTask:
    """Cancellation handle and bookkeeping for one host's loop.

    Every state write made on behalf of the host happens inside ``commit()``,
    which holds the same lock ``cancel()`` takes. Once cancelled, commits
    report the task as dead and callers skip their writes.
    """

    def __init__(self, host: str):
        self.host = host
        self.cancelled = threading.Event()
        self.tracing = threading.Event()
        self._commit_lock = threading.Lock()
        self._idle = threading.Condition()
        self._active = 0

    @property
    def poll_job_id(self) -> str:
        return f"poll:{self.host}"

    @property
    def trace_job_id(self) -> str:
        return f"trace:{self.host}"

    def cancel(self) -> None:
        with self._commit_lock:
            self.cancelled.set()

    @contextmanager
    def commit(self):
        """Yield True while the task is live; writes must be skipped on False."""
        with self._commit_lock:
            yield not self.cancelled.is_set()

    @contextmanager
    def running(self):
        """Track in-flight work so removal can wait for it to finish."""
        with self._idle:
            self._active += 1
        try:
            yield
        finally:
            with self._idle:
                self._active -= 1
                self._idle.notify_all()

    def wait_idle(self, timeout: Optional[float] = None) -> bool:
        with self._idle:
            return self._idle.wait_for(lambda: self._active == 0, timeout)

    def __repr__(self):
        return f"<HostTask(host='{self.host}', cancelled={self.cancelled.is_set()})>"


class MonitorScheduler:
    """Background scheduler running one polling loop per host."""

    def __init__(
        self,
        registry: HostRegistry,
        tracker: HealthTracker,
        alerts: AlertLog,
        traces: TraceCache,
        prober: Prober,
        tracer: Tracer,
        config=None,
    ):
        """Initialize the scheduler service."""
        self.config = config or default_settings
        self.registry = registry
        self.tracker = tracker
        self.alerts = alerts
        self.traces = traces
        self.prober = prober
        self.tracer = tracer

        self.scheduler = BackgroundScheduler(
            timezone="UTC",
            executors={
                "default": ThreadPoolExecutor(self.config.max_hosts),  # One worker per host loop
                "traces": ThreadPoolExecutor(self.config.trace_workers),
                "housekeeping": ThreadPoolExecutor(1),
            },
            job_defaults={
                "coalesce": True,  # Collapse missed ticks into one
                "max_instances": 1,  # One run per host at a time
                "misfire_grace_time": 30,
            },
        )
        self._tasks: Dict[str, HostTask] = {}
        self._stalled = set()
        self._lock = threading.Lock()
        self._running = False
        logger.info("MonitorScheduler initialized")

    @property
    def running(self) -> bool:
        return self._running

    @property
    def join_timeout(self) -> float:
        """Upper bound on how long one in-flight probe or hop probe can block."""
        probe_bound = self.config.probe_timeout_seconds + 1
        hop_bound = self.config.trace_samples_per_hop * self.config.trace_per_hop_timeout + 2
        return max(probe_bound, hop_bound)

    def start(self):
        """Start the scheduler and spawn loops for every registered host."""
        with self._lock:
            if self._running:
                logger.warning("Scheduler already running")
                return

            for host in self.registry.list():
                task = self._tasks.get(host)
                if task is None or task.cancelled.is_set():
                    task = HostTask(host)
                    self._tasks[host] = task
                self._add_poll_job(task)

            self.scheduler.start()
            self._running = True
            self._add_stall_monitor_job()
            logger.info(f"Scheduler started with {len(self._tasks)} host loop(s)")

    def stop(self):
        """Cancel every loop and wait for running jobs to complete."""
        with self._lock:
            if not self._running:
                return

            for task in self._tasks.values():
                task.cancel()
            self.scheduler.shutdown(wait=True)
            self._running = False
            logger.info("Scheduler stopped")

    def add_host(self, host: str, on_added: Optional[Callable[[str], None]] = None) -> Membership:
        """Register ``host`` and spawn its polling loop.

        Args:
            host: Host identifier
            on_added: Called under the scheduler lock once the host is
                registered and before its first probe can run

        Raises:
            InvalidHost: Malformed host identifier
            HostLimitReached: ``max_hosts`` loops are already running
        """
        host = normalize_host(host)
        with self._lock:
            if host not in self.registry and len(self.registry) >= self.config.max_hosts:
                raise HostLimitReached(
                    f"Cannot monitor {host}: limit of {self.config.max_hosts} hosts reached"
                )
            result = self.registry.add(host)
            if result == Membership.ADDED:
                if on_added is not None:
                    on_added(host)
                task = HostTask(host)
                self._tasks[host] = task
                try:
                    self._add_poll_job(task)
                except Exception:
                    self._tasks.pop(host, None)
                    self.registry.remove(host)
                    raise
        return result

    def remove_host(self, host: str) -> Membership:
        """Unregister ``host``, cancel its loop and drop its state.

        Returns once the loop has exited, or after ``join_timeout`` if a probe
        is still blocked; writes from such a straggler are no-ops.
        """
        try:
            host = normalize_host(host)
        except InvalidHost:
            return Membership.NOT_FOUND

        with self._lock:
            result = self.registry.remove(host)
            if result == Membership.NOT_FOUND:
                return result

            task = self._tasks.pop(host, None)
            if task is not None:
                self._remove_job(task.poll_job_id)
                self._remove_job(task.trace_job_id)
                task.cancel()
            self.tracker.discard(host)
            self.traces.discard(host)
            self._stalled.discard(host)

        if task is not None and not task.wait_idle(self.join_timeout):
            logger.warning(f"Loop for {host} still busy after {self.join_timeout}s; detached")
        logger.info(f"Stopped polling {host}")
        return result

    def request_trace(self, host: str) -> bool:
        """Schedule an on-demand trace for a monitored host.

        Returns:
            True if a trace was scheduled, False if one is already running

        Raises:
            HostNotFound: Host is not monitored
        """
        with self._lock:
            task = self._tasks.get(host)
        if task is None:
            raise HostNotFound(f"Host {host} is not monitored")
        if task.tracing.is_set():
            logger.info(f"Traceroute to {host} already running")
            return False
        self.tracker.note_trace_requested(host)
        return self._schedule_trace(task)

    def poll_host(self, host: str) -> Optional[HealthUpdate]:
        """Run one polling tick for ``host`` in the calling thread."""
        with self._lock:
            task = self._tasks.get(host)
        if task is None:
            raise HostNotFound(f"Host {host} is not monitored")
        return self._poll(task)

    def run_trace(self, host: str) -> Optional[TraceResult]:
        """Run a trace for ``host`` in the calling thread."""
        with self._lock:
            task = self._tasks.get(host)
        if task is None:
            raise HostNotFound(f"Host {host} is not monitored")
        return self._trace(task)

    def _add_poll_job(self, task: HostTask):
        self.scheduler.add_job(
            func=self._poll,
            trigger=IntervalTrigger(seconds=self.config.poll_interval_seconds, timezone="UTC"),
            id=task.poll_job_id,
            name=f"Poll: {task.host}",
            args=[task],
            next_run_time=datetime.now(timezone.utc),
            replace_existing=True,
        )
        logger.debug(f"Added job {task.poll_job_id} every {self.config.poll_interval_seconds}s")

    def _schedule_trace(self, task: HostTask) -> bool:
        if task.cancelled.is_set() or task.tracing.is_set():
            return False
        self.scheduler.add_job(
            func=self._trace,
            id=task.trace_job_id,
            name=f"Trace: {task.host}",
            args=[task],
            executor="traces",
            replace_existing=True,
        )
        logger.info(f"Scheduled traceroute to {task.host}")
        return True

    def _remove_job(self, job_id: str):
        try:
            self.scheduler.remove_job(job_id)
        except JobLookupError:
            logger.debug(f"Job {job_id} not found in scheduler")

    def _emit(self, update: HealthUpdate):
        for message, kind in update.alerts:
            self.alerts.add(message, kind)

    def _poll(self, task: HostTask) -> Optional[HealthUpdate]:
        """Loop body: probe, classify, alert, maybe trace.

        This method is called by APScheduler on every tick of the host's job.
        """
        host = task.host
        if task.cancelled.is_set():
            return None

        with task.running():
            update = None
            try:
                try:
                    latency = self.prober.probe(host, self.config.probe_timeout_seconds)
                except ProbeError as e:
                    logger.debug(f"Probe to {host} failed: {e}")
                    with task.commit() as live:
                        if not live:
                            return None
                        update = self.tracker.record_failure(host, e)
                        self._emit(update)
                else:
                    with task.commit() as live:
                        if not live:
                            return None
                        update = self.tracker.record_success(host, latency)
                        self._emit(update)
                    if update.trace_requested:
                        self._schedule_trace(task)
            except Exception as e:
                logger.error(f"Polling loop for {host} failed: {e}")
                logger.error(traceback.format_exc())
                with task.commit() as live:
                    if live:
                        self.alerts.add(f"Internal error while polling {host}: {e}", AlertKind.ERROR)
            return update

    def _trace(self, task: HostTask) -> Optional[TraceResult]:
        """Trace the route to the task's host and store the result."""
        if task.cancelled.is_set():
            return None

        with task.running():
            task.tracing.set()
            try:
                return self._trace_and_store(task)
            finally:
                task.tracing.clear()

    def _trace_and_store(self, task: HostTask) -> Optional[TraceResult]:
        host = task.host
        try:
            result = self.tracer.trace(
                host,
                max_hops=self.config.trace_max_hops,
                per_hop_timeout=self.config.trace_per_hop_timeout,
                should_stop=task.cancelled.is_set,
            )
        except TraceFailure as e:
            if task.cancelled.is_set():
                logger.debug(f"Traceroute to {host} cancelled")
                return None
            logger.warning(f"Traceroute to {host} failed: {e}")
            with task.commit() as live:
                if live:
                    self.alerts.add(f"Traceroute to {host} failed: {e}", AlertKind.TRACEROUTE)
            return None
        except Exception as e:
            logger.error(f"Traceroute to {host} crashed: {e}")
            logger.error(traceback.format_exc())
            with task.commit() as live:
                if live:
                    self.alerts.add(f"Internal error while tracing {host}: {e}", AlertKind.ERROR)
            return None

        with task.commit() as live:
            if not live:
                return None
            self.traces.put(result)
            self.tracker.mark_traced(host, result.completed_at)
            if result.problems:
                details = "; ".join(problem.description for problem in result.problems)
                self.alerts.add(f"Traceroute to {host}: {details}", AlertKind.TRACEROUTE)
            else:
                self.alerts.add(
                    f"Traceroute to {host} completed: {result.hop_count} hops, no problems",
                    AlertKind.INFO,
                )
        return result

    def _add_stall_monitor_job(self):
        """Add the stalled-loop monitor that runs every minute."""
        try:
            self.scheduler.add_job(
                func=self.check_stalled_loops,
                trigger=IntervalTrigger(seconds=60, timezone="UTC"),
                id="stall_monitor",
                name="Stalled Loop Monitor",
                executor="housekeeping",
                replace_existing=True,
            )
            logger.info("Added stalled loop monitoring job (runs every 60s)")
        except Exception as e:
            logger.error(f"Failed to add stall monitor job: {e}")

    def check_stalled_loops(self, now: Optional[float] = None) -> int:
        """Alert once per episode for hosts whose loop stopped completing probes.

        A loop is stalled when its last completed probe is older than three
        poll intervals plus the probe timeout, which happens when the worker
        pool is exhausted.

        Returns:
            Number of newly stalled hosts
        """
        now = now if now is not None else time.time()
        limit = 3 * self.config.poll_interval_seconds + self.config.probe_timeout_seconds
        records = self.tracker.records()
        newly_stalled = 0

        with self._lock:
            tasks = dict(self._tasks)

        for host, task in tasks.items():
            record = records.get(host)
            if record is None or record.last_probe_at is None:
                continue
            stalled = now - record.last_probe_at > limit
            if stalled and host not in self._stalled:
                with task.commit() as live:
                    if live:
                        self._stalled.add(host)
                        self.alerts.add(
                            f"Polling for {host} stalled: no probe completed in "
                            f"{now - record.last_probe_at:.0f}s",
                            AlertKind.ERROR,
                        )
                        newly_stalled += 1
                        logger.warning(f"Polling loop for {host} appears stalled")
            elif not stalled:
                self._stalled.discard(host)

        return newly_stalled
