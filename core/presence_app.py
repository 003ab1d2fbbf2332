"""
======================================================================
 Presence Runtime — Version v1.0.0 (Build 2026.10)
 Licensed under the MIT License
======================================================================
"""

"""
Presence runtime entrypoint.

This module launches the presence bot as an independent process.
It owns:

- event loop creation
- signal and fatal-error wiring
- orderly startup and shutdown
- the process exit code

Exit codes:
- 0: graceful shutdown (SIGINT / SIGTERM)
- 1: missing DISCORD_TOKEN, or a fatal unhandled error
"""

import asyncio
import os
import signal
import sys
from typing import Callable, Mapping, Optional

from dotenv import load_dotenv

from runtime import version
from shared.config.presence import ConfigError, load_presence_config
from shared.logging.logger import get_logger
from services.discord.runtime.supervisor import PresenceSupervisor, SessionFactory
from services.health.server import HealthServer, HealthServerConfig

log = get_logger("core.presence_app")

EXIT_OK = 0
EXIT_FATAL = 1


class ShutdownController:
    """
    Single shutdown entry point shared by every trigger.

    The first request wins the reason; a later fatal request still
    escalates the exit code.
    """

    def __init__(self, stop_event: asyncio.Event):
        self._stop_event = stop_event
        self.reason: Optional[str] = None
        self.exit_code: int = EXIT_OK

    def request(self, reason: str, exit_code: int = EXIT_OK):
        self.exit_code = max(self.exit_code, exit_code)
        if self.reason is not None:
            return
        self.reason = reason
        self._stop_event.set()

    @property
    def requested(self) -> bool:
        return self.reason is not None


# ----------------------------------------------------------------------
# MAIN ASYNC ENTRYPOINT
# ----------------------------------------------------------------------

async def main(
    stop_event: asyncio.Event,
    controller: ShutdownController,
    *,
    env: Optional[Mapping[str, str]] = None,
    session_factory: Optional[SessionFactory] = None,
) -> int:
    load_dotenv()

    log.info(f"{version.as_string()} booting")

    try:
        config = load_presence_config(env)
    except ConfigError as e:
        log.error(str(e))
        return EXIT_FATAL

    log.info(f"Configuration loaded: {config.snapshot()}")

    supervisor = PresenceSupervisor(config, session_factory=session_factory)
    health = HealthServer(
        HealthServerConfig(
            enabled=config.http_enabled,
            host=config.http_host,
            port=config.http_port,
        ),
        ready_probe=lambda: supervisor.ready,
    )

    # --------------------------------------------------
    # START HEALTH SERVER + SUPERVISOR
    # --------------------------------------------------
    try:
        health.start()
    except OSError as e:
        log.error(f"Failed to start health check server: {e}")
        return EXIT_FATAL

    await supervisor.start()

    # --------------------------------------------------
    # BLOCK UNTIL SHUTDOWN REQUEST
    # --------------------------------------------------
    await stop_event.wait()

    log.info(f"Received {controller.reason}, shutting down gracefully...")

    # --------------------------------------------------
    # ORDERLY SHUTDOWN
    # --------------------------------------------------
    try:
        await supervisor.shutdown(controller.reason or "shutdown")
    except Exception as e:
        log.warning(f"Presence supervisor shutdown error ignored: {e}")

    health.stop()

    log.info("Presence runtime stopped")
    return controller.exit_code


# ----------------------------------------------------------------------
# SIGNAL + FATAL ERROR HANDLING
# ----------------------------------------------------------------------

def _install_signal_handlers(
    loop: asyncio.AbstractEventLoop,
    controller: ShutdownController,
    *,
    force_exit: Callable[[int], None] = os._exit,
):
    """
    Windows-safe SIGINT / SIGTERM handler.
    Uses signal.signal + call_soon_threadsafe to unwind cleanly.
    A second signal while teardown is running exits immediately.

    Returns the previous handlers so they can be restored.
    """
    received = []

    def _handler(signum, frame):
        name = signal.Signals(signum).name
        received.append(name)
        if len(received) > 1:
            log.warning(f"Received {name} again, forcing exit")
            force_exit(EXIT_FATAL)
            return
        try:
            loop.call_soon_threadsafe(controller.request, name, EXIT_OK)
        except RuntimeError:
            controller.request(name, EXIT_OK)

    previous = {}
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            previous[sig] = signal.signal(sig, _handler)
        except (ValueError, OSError) as e:
            # not in the main thread, or unsupported on this platform
            log.warning(f"Could not install handler for {sig.name}: {e}")
    return previous


def _restore_signal_handlers(previous):
    for sig, handler in previous.items():
        try:
            signal.signal(sig, handler)
        except (ValueError, OSError):
            pass


def _install_loop_exception_handler(
    loop: asyncio.AbstractEventLoop,
    controller: ShutdownController,
):
    """
    Treat any exception no task retrieved as process-fatal.
    """

    def _handler(loop, context):
        exc = context.get("exception")
        message = context.get("message", "Unhandled exception in event loop")
        log.critical(f"Unhandled error: {message}", exc_info=exc)
        controller.request("unhandled error", EXIT_FATAL)

    loop.set_exception_handler(_handler)


# ----------------------------------------------------------------------
# ENTRYPOINT
# ----------------------------------------------------------------------

def run(
    *,
    env: Optional[Mapping[str, str]] = None,
    session_factory: Optional[SessionFactory] = None,
) -> int:
    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)

    stop_event = asyncio.Event()
    controller = ShutdownController(stop_event)

    previous = _install_signal_handlers(loop, controller)
    _install_loop_exception_handler(loop, controller)

    exit_code = EXIT_FATAL
    try:
        exit_code = loop.run_until_complete(
            main(stop_event, controller, env=env, session_factory=session_factory)
        )

    except KeyboardInterrupt:
        log.info("KeyboardInterrupt received — shutting down")
        exit_code = EXIT_OK

    except Exception:
        log.critical("Uncaught exception", exc_info=True)
        exit_code = EXIT_FATAL

    finally:
        # --------------------------------------------------
        # CANCEL REMAINING TASKS (CLEANLY)
        # --------------------------------------------------
        pending = [t for t in asyncio.all_tasks(loop) if not t.done()]
        for task in pending:
            task.cancel()

        if pending:
            loop.run_until_complete(
                asyncio.gather(*pending, return_exceptions=True)
            )

        # --------------------------------------------------
        # FINAL LOOP CLEANUP
        # --------------------------------------------------
        loop.run_until_complete(loop.shutdown_asyncgens())

        _restore_signal_handlers(previous)
        asyncio.set_event_loop(None)
        loop.close()

    return exit_code


def run_cli():
    sys.exit(run())


if __name__ == "__main__":
    run_cli()
