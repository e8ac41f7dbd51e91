"""Server daemon: poller + HTTP facade in one event loop."""

import asyncio
import contextlib
import signal
from dataclasses import dataclass
from datetime import datetime
from importlib.metadata import PackageNotFoundError, version

import structlog
import uvicorn

from fps_monitor.api import create_app
from fps_monitor.config import Config
from fps_monitor.instance import remove_pid_file, terminate_previous_instances, write_pid_file
from fps_monitor.logging import configure
from fps_monitor.poller import Poller
from fps_monitor.store import SnapshotStore

log = structlog.get_logger()


class _Server(uvicorn.Server):
    """uvicorn server that leaves signal handling to the daemon."""

    def install_signal_handlers(self) -> None:
        pass

    @contextlib.contextmanager
    def capture_signals(self):
        yield


@dataclass
class DaemonState:
    """Runtime state of the daemon."""

    running: bool = False
    started_at: datetime | None = None
    replaced_pids: tuple[int, ...] = ()
    server_failed: bool = False  # HTTP server stopped without a shutdown request


class Daemon:
    """Owns the process lifecycle: stop signal, PID file, poller and server."""

    def __init__(self, config: Config):
        self.config = config
        self.state = DaemonState()
        self.store = SnapshotStore()
        self.poller = Poller(
            self.store,
            config.region.name,
            interval=config.region.poll_interval,
            shm_dir=config.region.shm_path,
        )
        self.app = create_app(self.store)

        self._shutdown_event = asyncio.Event()
        self._poller_task: asyncio.Task | None = None
        self._server: uvicorn.Server | None = None
        self._server_task: asyncio.Task | None = None

    def _handle_signal(self, sig: signal.Signals) -> None:
        """Handle shutdown signals."""
        log.info("signal_received", signal=sig.name)
        self._shutdown_event.set()

    def _install_signal_handlers(self) -> None:
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGTERM, signal.SIGINT):
            try:
                loop.add_signal_handler(sig, lambda s=sig: self._handle_signal(s))
            except NotImplementedError:
                # Proactor loops (Windows) have no add_signal_handler
                signal.signal(
                    sig,
                    lambda signum, frame: loop.call_soon_threadsafe(
                        self._handle_signal, signal.Signals(signum)
                    ),
                )

    async def _serve(self) -> None:
        """Run uvicorn, turning its startup ``sys.exit`` into a normal return."""
        try:
            await self._server.serve()
        except SystemExit as e:
            log.error(
                "server_startup_failed",
                host=self.config.server.host,
                port=self.config.server.port,
                code=e.code,
            )

    async def start(self) -> None:
        """Start the daemon and run until the stop signal."""
        try:
            pkg_version = version("fps-monitor")
        except PackageNotFoundError:
            pkg_version = "unknown"
        log.info("daemon_starting", version=pkg_version)
        log.info(
            "daemon_config",
            region=self.config.region.name,
            shm_dir=self.config.region.shm_dir or "default",
            poll_interval=self.config.region.poll_interval,
            host=self.config.server.host,
            port=self.config.server.port,
        )

        if self.config.server.replace_existing:
            loop = asyncio.get_running_loop()
            replaced = await loop.run_in_executor(None, terminate_previous_instances)
            self.state.replaced_pids = tuple(replaced)
            if replaced:
                log.info("previous_instances_terminated", pids=replaced)

        self._install_signal_handlers()
        write_pid_file(self.config.pid_path)

        self._poller_task = asyncio.create_task(self.poller.run(self._shutdown_event))

        self._server = _Server(
            uvicorn.Config(
                self.app,
                host=self.config.server.host,
                port=self.config.server.port,
                log_config=None,
                access_log=False,
            )
        )
        self._server_task = asyncio.create_task(self._serve())

        self.state.running = True
        self.state.started_at = datetime.now()
        log.info("daemon_started")

        shutdown_wait = asyncio.create_task(self._shutdown_event.wait())
        done, _ = await asyncio.wait(
            {shutdown_wait, self._server_task},
            return_when=asyncio.FIRST_COMPLETED,
        )
        if self._server_task in done:
            # Server ended on its own (e.g. port already in use)
            self.state.server_failed = True
            log.error("server_exited", host=self.config.server.host, port=self.config.server.port)
            shutdown_wait.cancel()
            self._shutdown_event.set()

    async def stop(self) -> None:
        """Stop the daemon gracefully."""
        log.info("daemon_stopping")
        self.state.running = False
        self._shutdown_event.set()

        try:
            if self._poller_task:
                await self._poller_task
                self._poller_task = None

            if self._server and self._server_task:
                self._server.should_exit = True
                try:
                    await self._server_task
                except Exception as e:
                    log.warning("server_stop_failed", error=repr(e))
                self._server = None
                self._server_task = None
        finally:
            remove_pid_file(self.config.pid_path)
            log.info("daemon_stopped")


async def run_daemon(config: Config | None = None) -> int:
    """Run the daemon until shutdown.

    Args:
        config: Optional config, loads from file if not provided

    Returns:
        Process exit status: 1 if the HTTP server could not run, else 0
    """
    if config is None:
        config = Config.load()

    # Console (human-readable) + file (JSON Lines)
    configure(config)

    daemon = Daemon(config)

    try:
        await daemon.start()
    except Exception as e:
        log.exception("daemon_crashed", error=str(e))
        raise
    finally:
        await daemon.stop()

    return 1 if daemon.state.server_failed else 0
