"""Task scheduler: independent repeating tasks on a `schedule.Scheduler`."""
import logging
import math
import random
import threading
import time
from collections import deque
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Callable, Optional

import schedule

from models.health import TaskResult
from models.settings import SchedulerSettings
from utils.constants import utcnow

logger = logging.getLogger("fxbias.scheduler")


class TaskAlreadyRunningError(RuntimeError):
    """The task's previous run is still in flight."""


class UnknownTaskError(KeyError):
    """No task registered under that name."""


@dataclass
class ScheduledTask:
    name: str
    interval_seconds: float
    handler: Callable
    enabled: bool = True
    running: bool = False
    run_count: int = 0
    failure_count: int = 0
    rerun_requested: bool = False
    last_run: Optional[object] = None
    next_run: Optional[object] = None
    job: Optional[schedule.Job] = None
    history: deque = field(default_factory=deque)


class TaskScheduler:
    """Runs named tasks at fixed intervals without letting a task overlap itself.

    Each fire is a one-shot job: it hands the handler to a worker pool and
    cancels itself. When the handler finishes, success or failure, the next
    fire is registered `interval` seconds later, so a slow run pushes the
    schedule back instead of stacking up. Handler exceptions are recorded as
    failed results and never leave the scheduler.
    """

    def __init__(self, settings=None):
        self.settings = settings or SchedulerSettings()
        self._scheduler = schedule.Scheduler()
        self._tasks = {}
        self._lock = threading.RLock()
        self._running = False
        self._thread = None
        self._executor = None

    # ── Registration ─────────────────────────────────────

    def add_task(self, name, interval_seconds, handler, enabled=True):
        task = ScheduledTask(
            name=name,
            interval_seconds=interval_seconds,
            handler=handler,
            enabled=enabled,
            history=deque(maxlen=self.settings.history_size),
        )
        with self._lock:
            if name in self._tasks:
                self._cancel_job(self._tasks[name])
            self._tasks[name] = task
            if self._running and enabled:
                self._schedule_next(task, self._initial_delay())
        logger.debug(f"Task {name} registered (every {interval_seconds}s)")
        return task

    @property
    def task_names(self):
        with self._lock:
            return list(self._tasks)

    def _get(self, name):
        task = self._tasks.get(name)
        if task is None:
            raise UnknownTaskError(name)
        return task

    # ── Lifecycle ────────────────────────────────────────

    def start(self):
        """Start firing tasks in a background thread."""
        with self._lock:
            if self._running:
                return
            self._running = True
            self._executor = ThreadPoolExecutor(
                max_workers=self.settings.max_workers, thread_name_prefix="fxbias-task")
            for task in self._tasks.values():
                if task.enabled:
                    self._schedule_next(task, self._initial_delay())

        self._thread = threading.Thread(target=self._run_loop, name="fxbias-scheduler", daemon=True)
        self._thread.start()
        logger.info(f"Scheduler started with {len(self._tasks)} tasks")

    def stop(self):
        """Stop firing. In-flight handlers are allowed to finish."""
        with self._lock:
            if not self._running:
                return
            self._running = False
            self._scheduler.clear()
            for task in self._tasks.values():
                task.job = None
                task.next_run = None
        if self._thread:
            self._thread.join(timeout=max(5, self.settings.tick_seconds * 2))
            self._thread = None
        if self._executor:
            self._executor.shutdown(wait=False)
            self._executor = None
        logger.info("Scheduler stopped")

    @property
    def running(self):
        return self._running

    def _run_loop(self):
        while self._running:
            try:
                with self._lock:
                    self._scheduler.run_pending()
            except Exception as e:
                logger.error(f"Scheduler tick failed: {type(e).__name__}: {e}")
            time.sleep(self.settings.tick_seconds)

    def _initial_delay(self):
        jitter = random.uniform(0, self.settings.jitter_seconds) if self.settings.jitter_seconds else 0
        return self.settings.initial_delay_seconds + jitter

    # ── Firing ───────────────────────────────────────────

    def _schedule_next(self, task, delay):
        seconds = max(1, int(math.ceil(delay)))
        task.job = self._scheduler.every(seconds).seconds.do(self._fire, task.name)
        task.next_run = utcnow() + timedelta(seconds=seconds)

    def _cancel_job(self, task):
        if task.job is not None:
            self._scheduler.cancel_job(task.job)
            task.job = None
            task.next_run = None

    def _fire(self, name):
        with self._lock:
            task = self._tasks.get(name)
            if task is None or not self._running or not task.enabled:
                return schedule.CancelJob
            task.job = None
            task.next_run = None

            if task.running:
                logger.info(f"Task {name} still running, skipping this fire")
                task.history.append(TaskResult(task=name, success=True, skipped=True))
                self._schedule_next(task, task.interval_seconds)
                return schedule.CancelJob

            task.running = True
            future = self._executor.submit(self._execute, task)
        future.add_done_callback(lambda _: self._after_run(name))
        return schedule.CancelJob

    def _after_run(self, name):
        with self._lock:
            task = self._tasks.get(name)
            if task is None or not self._running or not task.enabled or task.job is not None:
                return
            delay = 1 if task.rerun_requested else task.interval_seconds
            task.rerun_requested = False
            self._schedule_next(task, delay)

    def _execute(self, task):
        """Run a handler, converting anything it raises into a failed result."""
        start = time.monotonic()
        try:
            outcome = task.handler()
            result = outcome if isinstance(outcome, TaskResult) else TaskResult(task=task.name, success=True)
            result.task = task.name
        except Exception as e:
            logger.error(f"Task {task.name} failed: {type(e).__name__}: {e}")
            result = TaskResult(task=task.name, success=False, errors=[f"{type(e).__name__}: {e}"])
        if not result.elapsed_ms:
            result.elapsed_ms = int((time.monotonic() - start) * 1000)

        with self._lock:
            task.running = False
            task.last_run = result.timestamp
            task.run_count += 1
            if not result.success:
                task.failure_count += 1
            task.history.append(result)

        if result.success:
            logger.info(f"Task {task.name} completed in {result.elapsed_ms}ms ({result.data_points} records)")
        else:
            logger.warning(f"Task {task.name} finished with errors: {result.errors}")
        return result

    # ── Operator controls ────────────────────────────────

    def trigger(self, name):
        """Run a task now, in the caller's thread. Rejects if it is already running."""
        with self._lock:
            task = self._get(name)
            if task.running:
                raise TaskAlreadyRunningError(name)
            task.running = True
        logger.info(f"Task {name} triggered manually")
        return self._execute(task)

    def request_run(self, name, reason=None):
        """Bring a task's next fire forward to the next second.

        A task that is mid-run gets one extra fire right after it finishes.
        Returns False when the scheduler is stopped or the task is disabled.
        """
        with self._lock:
            task = self._get(name)
            if not self._running or not task.enabled:
                return False
            if task.running and task.job is None:
                task.rerun_requested = True
            else:
                self._cancel_job(task)
                self._schedule_next(task, 1)
        logger.info(f"Task {name} brought forward" + (f" ({reason})" if reason else ""))
        return True

    def set_enabled(self, name, enabled):
        with self._lock:
            task = self._get(name)
            task.enabled = bool(enabled)
            if not enabled:
                self._cancel_job(task)
            elif self._running and task.job is None and not task.running:
                self._schedule_next(task, task.interval_seconds)
        logger.info(f"Task {name} {'enabled' if enabled else 'disabled'}")

    # ── Introspection ────────────────────────────────────

    def is_running(self, name):
        with self._lock:
            return self._get(name).running

    def get_history(self, name, limit=10):
        """Most recent results first."""
        with self._lock:
            history = list(self._get(name).history)
        return list(reversed(history))[:limit]

    def get_status(self):
        with self._lock:
            status = {}
            for name, task in self._tasks.items():
                last = task.history[-1] if task.history else None
                status[name] = {
                    "interval_seconds": task.interval_seconds,
                    "enabled": task.enabled,
                    "running": task.running,
                    "run_count": task.run_count,
                    "failure_count": task.failure_count,
                    "last_run": task.last_run.isoformat() if task.last_run else None,
                    "next_run": task.next_run.isoformat() if task.next_run else None,
                    "last_result": last.to_dict() if last else None,
                }
            return status
