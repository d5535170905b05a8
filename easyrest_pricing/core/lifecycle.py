"""Process lifecycle: listener supervision, periodic sweep, graceful shutdown.

State machine::

    RUNNING --signal/shutdown()--> DRAINING --drain done--> STOPPED (exit 0)
                                        \\--deadline hit--> forced exit (exit 1)

While RUNNING the HTTP listener accepts requests and the rate limit sweep
runs every ``sweep_interval_seconds``. On SIGINT/SIGTERM the listener is told
to stop accepting connections, in-flight requests are allowed to finish and
the price source releases its resources, even when the listener crashed.
A deadline races that drain. If the deadline wins, the drain is cancelled
and ``force_exit(1)`` runs straight away, without waiting for the cancelled
drain. The sweep keeps running while draining and is cancelled once the
lifecycle stops.
"""

from __future__ import annotations

import asyncio
import contextlib
import enum
import logging
import os
import signal
from typing import Callable, Iterable, Iterator, Protocol

import uvicorn

from easyrest_pricing.adapters.price_source.base import AbstractPriceSource
from easyrest_pricing.adapters.rate_limit.base import AbstractRateLimitStore
from easyrest_pricing.core.errors import ShutdownForcedError

logger = logging.getLogger(__name__)

DEFAULT_SWEEP_INTERVAL_SECONDS = 60.0
DEFAULT_SHUTDOWN_TIMEOUT_SECONDS = 10.0
CANCEL_GRACE_SECONDS = 1.0

HANDLED_SIGNALS = (signal.SIGINT, signal.SIGTERM)


class LifecycleState(str, enum.Enum):
    RUNNING = "running"
    DRAINING = "draining"
    STOPPED = "stopped"


class Listener(Protocol):
    """What the lifecycle needs from an HTTP server (uvicorn.Server fits)."""

    should_exit: bool

    async def serve(self) -> None: ...


class ManagedServer(uvicorn.Server):
    """uvicorn server that leaves signal handling to ServerLifecycle."""

    def install_signal_handlers(self) -> None:
        return

    @contextlib.contextmanager
    def capture_signals(self) -> Iterator[None]:
        yield


class ServerLifecycle:
    """Owns the listener, the rate limit sweep and shutdown sequencing.

    Attributes:
        state: Current LifecycleState.
    """

    def __init__(
        self,
        server: Listener | None,
        *,
        rate_limiter: AbstractRateLimitStore,
        price_source: AbstractPriceSource,
        sweep_interval_seconds: float = DEFAULT_SWEEP_INTERVAL_SECONDS,
        shutdown_timeout_seconds: float = DEFAULT_SHUTDOWN_TIMEOUT_SECONDS,
        force_exit: Callable[[int], object] = os._exit,
        handled_signals: Iterable[signal.Signals] = HANDLED_SIGNALS,
    ) -> None:
        """Wire the lifecycle to the components it supervises.

        Args:
            server: HTTP listener; None when only timers/resources are managed.
            rate_limiter: Store swept every ``sweep_interval_seconds``.
            price_source: Released once in-flight requests are done.
            sweep_interval_seconds: Period of the rate limit sweep.
            shutdown_timeout_seconds: Hard deadline for the drain.
            force_exit: Called with 1 when the deadline wins (os._exit by default).
            handled_signals: Signals that start the drain.
        """
        if sweep_interval_seconds <= 0:
            raise ValueError("sweep_interval_seconds must be > 0")
        if shutdown_timeout_seconds <= 0:
            raise ValueError("shutdown_timeout_seconds must be > 0")

        self._server = server
        self._rate_limiter = rate_limiter
        self._price_source = price_source
        self._sweep_interval = sweep_interval_seconds
        self._shutdown_timeout = shutdown_timeout_seconds
        self._force_exit = force_exit
        self._signals = tuple(handled_signals)

        self._state = LifecycleState.RUNNING
        self._serve_task: asyncio.Task | None = None
        self._sweep_task: asyncio.Task | None = None
        self._shutdown_task: asyncio.Task | None = None
        self._completion: asyncio.Future[int] | None = None

    @property
    def state(self) -> LifecycleState:
        return self._state

    @property
    def accepting(self) -> bool:
        """True while new price requests may be admitted."""
        return self._state is LifecycleState.RUNNING

    @property
    def sweeping(self) -> bool:
        return self._sweep_task is not None and not self._sweep_task.done()

    def _ensure_completion(self) -> asyncio.Future[int]:
        if self._completion is None:
            self._completion = asyncio.get_running_loop().create_future()
        return self._completion

    def _finish(self, exit_code: int) -> None:
        completion = self._ensure_completion()
        if not completion.done():
            completion.set_result(exit_code)

    # -- sweep ---------------------------------------------------------------

    def start_sweeper(self) -> None:
        """Start the periodic rate limit sweep (idempotent)."""
        if self.sweeping:
            return
        self._sweep_task = asyncio.create_task(self._sweep_loop(), name="rate-limit-sweep")

    async def _sweep_loop(self) -> None:
        while True:
            await asyncio.sleep(self._sweep_interval)
            try:
                removed = self._rate_limiter.sweep()
            except Exception as exc:
                logger.error(
                    "lifecycle.sweep_failed",
                    extra={"error_type": type(exc).__name__, "error_msg": str(exc)},
                )
                continue
            if removed:
                logger.info("lifecycle.sweep", extra={"removed": removed})

    async def _stop_sweeper(self) -> None:
        task, self._sweep_task = self._sweep_task, None
        if task is None:
            return
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task

    # -- signals -------------------------------------------------------------

    def _install_signal_handlers(self) -> None:
        loop = asyncio.get_running_loop()
        for sig in self._signals:
            try:
                loop.add_signal_handler(sig, self.handle_signal, sig.name)
            except NotImplementedError:  # pragma: no cover - Windows
                signal.signal(
                    sig,
                    lambda signum, frame: loop.call_soon_threadsafe(
                        self.handle_signal, signal.Signals(signum).name
                    ),
                )

    def _remove_signal_handlers(self) -> None:
        loop = asyncio.get_running_loop()
        for sig in self._signals:
            try:
                loop.remove_signal_handler(sig)
            except NotImplementedError:  # pragma: no cover - Windows
                signal.signal(sig, signal.SIG_DFL)

    def handle_signal(self, signal_name: str) -> None:
        """Start the drain in response to a termination signal."""
        logger.warning(
            "lifecycle.signal_received",
            extra={"signal": signal_name, "state": self._state.value},
        )
        if not self._begin_shutdown(signal_name):
            logger.info("lifecycle.signal_ignored", extra={"signal": signal_name})

    def _begin_shutdown(self, reason: str) -> bool:
        if self._shutdown_task is not None or self._state is not LifecycleState.RUNNING:
            return False
        self._shutdown_task = asyncio.get_running_loop().create_task(
            self.shutdown(reason=reason), name="lifecycle-shutdown"
        )
        return True

    # -- serve / shutdown ----------------------------------------------------

    async def serve(self) -> int:
        """Run the listener until shutdown completes.

        Returns:
            Process exit code: 0 after a clean drain, 1 otherwise.
        """
        completion = self._ensure_completion()
        self.start_sweeper()
        self._install_signal_handlers()
        if self._server is not None:
            self._serve_task = asyncio.create_task(self._server.serve(), name="http-listener")
            self._serve_task.add_done_callback(self._on_listener_done)
        logger.info(
            "lifecycle.started",
            extra={
                "sweep_interval_s": self._sweep_interval,
                "shutdown_timeout_s": self._shutdown_timeout,
            },
        )
        try:
            return await asyncio.shield(completion)
        finally:
            self._remove_signal_handlers()

    def _on_listener_done(self, task: asyncio.Task) -> None:
        if task.cancelled() or self._state is not LifecycleState.RUNNING:
            return
        # Listener exited without a signal (bind failure, crash, external should_exit)
        exc = task.exception()
        if exc is not None:
            logger.error(
                "lifecycle.listener_failed",
                extra={"error_type": type(exc).__name__, "error_msg": str(exc)},
            )
        logger.warning("lifecycle.listener_exited")
        self._begin_shutdown("listener_stopped")

    async def _drain(self) -> None:
        try:
            if self._server is not None:
                self._server.should_exit = True
                if self._serve_task is not None:
                    await self._serve_task
                logger.info("lifecycle.listener_closed")
        finally:
            await self._price_source.close()
            logger.info("lifecycle.resources_released")

    async def shutdown(self, reason: str = "shutdown") -> int:
        """Drain and stop; safe to call more than once.

        Args:
            reason: Signal name or caller tag, logged with the transition.

        Returns:
            Exit code (0 clean, 1 when the drain failed or was forced).
        """
        if self._state is not LifecycleState.RUNNING:
            return await asyncio.shield(self._ensure_completion())

        self._state = LifecycleState.DRAINING
        logger.info(
            "lifecycle.draining",
            extra={"reason": reason, "timeout_s": self._shutdown_timeout},
        )

        drain = asyncio.create_task(self._drain(), name="lifecycle-drain")
        deadline = asyncio.create_task(
            asyncio.sleep(self._shutdown_timeout), name="lifecycle-deadline"
        )
        done, _ = await asyncio.wait({drain, deadline}, return_when=asyncio.FIRST_COMPLETED)

        if drain in done:
            deadline.cancel()
            exit_code = 0
            exc = drain.exception()
            if exc is not None:
                logger.error(
                    "lifecycle.drain_failed",
                    extra={"error_type": type(exc).__name__, "error_msg": str(exc)},
                )
                exit_code = 1
            await self._stop_sweeper()
            self._state = LifecycleState.STOPPED
            logger.info("lifecycle.stopped", extra={"exit_code": exit_code})
            self._finish(exit_code)
            return exit_code

        drain.cancel()
        self._state = LifecycleState.STOPPED
        forced = ShutdownForcedError(
            code="shutdown_forced",
            message=f"Graceful shutdown did not finish within {self._shutdown_timeout:g}s",
            details={"timeout_seconds": self._shutdown_timeout},
        )
        logger.error(
            "lifecycle.shutdown_forced",
            extra={"error_code": forced.code, "error_message": forced.message},
        )
        # force_exit precedes any await on the cancelled drain.
        self._force_exit(1)

        # Only reached when force_exit returns (injected in tests).
        await asyncio.wait({drain}, timeout=CANCEL_GRACE_SECONDS)
        if drain.done() and not drain.cancelled():
            drain.exception()
        await self._stop_sweeper()
        self._finish(1)
        return 1
