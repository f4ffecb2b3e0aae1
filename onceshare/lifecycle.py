"""Self-terminating server: listen, race the deadline against the download, shut down once."""

import enum
import socket
import threading
from typing import Optional

import uvicorn

from . import config
from .handler import OneShotHandler
from .logging_config import log
from .net import bind_listener, get_outbound_ip
from .presentation import entry_url
from .server import create_app


class State(enum.Enum):
    STARTING = "starting"
    SERVING = "serving"
    SHUTTING_DOWN = "shutting_down"
    STOPPED = "stopped"


class LifecycleController:
    """Owns the listener, the deadline timer and the shutdown waiter for one handler.

    Whichever of the handler's completion signal or the deadline fires
    first moves the controller to SHUTTING_DOWN; uvicorn then stops
    accepting connections and lets in-flight responses finish.
    """

    def __init__(
        self,
        handler: OneShotHandler,
        *,
        host: Optional[str] = None,
        port: Optional[int] = None,
        timeout_s: Optional[float] = None,
        grace_s: Optional[float] = None,
        public_host: Optional[str] = None,
    ) -> None:
        """Initialize LifecycleController state and collaborator references."""
        self.handler = handler
        self.signal = handler.signal
        self.host = str(config.HOST if host is None else host)
        self.port = int(config.PORT if port is None else port)
        self.timeout_s = float(config.TIMEOUT_S if timeout_s is None else timeout_s)
        grace = float(config.GRACE_S if grace_s is None else grace_s)
        self.grace_s = grace if grace > 0 else None
        self.public_host = str(config.PUBLIC_HOST if public_host is None else public_host)

        self.url: Optional[str] = None
        self._state = State.STARTING
        self._lock = threading.Lock()
        self._stopped = threading.Event()
        self._socket: Optional[socket.socket] = None
        self._server: Optional[uvicorn.Server] = None
        self._timer: Optional[threading.Timer] = None
        self._waiter: Optional[threading.Thread] = None

    @property
    def state(self) -> State:
        return self._state

    @property
    def bound_port(self) -> Optional[int]:
        if self._socket is None:
            return None
        return int(self._socket.getsockname()[1])

    def start(self) -> str:
        """Bind the listener, arm the deadline and the waiter; return the entry URL."""
        with self._lock:
            if self._state is not State.STARTING:
                raise RuntimeError(f"cannot start from state {self._state.value}")

        self._socket = bind_listener(self.host, self.port)
        log_level = "debug" if config.DEBUG else "info"
        if not config.LOG_ENABLED:
            log_level = "critical"
        uv_config = uvicorn.Config(
            create_app(self.handler),
            log_config=None,
            log_level=log_level,
            access_log=False,
            lifespan="off",
            timeout_graceful_shutdown=self.grace_s,
        )
        self._server = uvicorn.Server(uv_config)

        self._timer = threading.Timer(self.timeout_s, self._on_deadline)
        self._timer.daemon = True
        self._waiter = threading.Thread(target=self._await_completion, name="onceshare-shutdown", daemon=True)

        with self._lock:
            self._state = State.SERVING
        self._timer.start()
        self._waiter.start()

        host = self.public_host or get_outbound_ip()
        self.url = entry_url(host, self.bound_port, self.handler.session)
        log.info(
            "Serving %s (%d bytes) on port %d for at most %ss",
            self.handler.session.basename,
            self.handler.session.size,
            self.bound_port,
            int(self.timeout_s),
        )
        return self.url

    def serve_forever(self) -> None:
        """Run uvicorn on the bound socket until shutdown completes."""
        if self._server is None or self._socket is None:
            raise RuntimeError("start() must be called before serve_forever()")
        try:
            self._server.run(sockets=[self._socket])
        finally:
            self._finish()

    def shutdown(self, reason: str = "requested") -> bool:
        """Request shutdown; False when the signal had already fired."""
        return self.signal.fire(reason)

    def wait_stopped(self, timeout: Optional[float] = None) -> bool:
        return self._stopped.wait(timeout)

    def _on_deadline(self) -> None:
        if self.signal.fire("timeout"):
            log.info("Shutting down automatically after configured timeout")

    def _await_completion(self) -> None:
        self.signal.wait()
        self._begin_shutdown(self.signal.reason or "done")

    def _begin_shutdown(self, reason: str) -> None:
        with self._lock:
            if self._state is not State.SERVING:
                return
            self._state = State.SHUTTING_DOWN
        log.info("Shutting down (%s)", reason)
        try:
            self._server.should_exit = True
        except Exception:
            log.exception("Failed to request server shutdown")

    def _finish(self) -> None:
        """Release the timer and listener after uvicorn has returned."""
        if self._timer is not None:
            self._timer.cancel()
        # Ctrl-C stops uvicorn directly; release the waiter too.
        self.signal.fire("interrupt")
        if self._socket is not None:
            try:
                self._socket.close()
            except OSError:
                log.exception("Failed to close listener")
        with self._lock:
            self._state = State.STOPPED
        self._stopped.set()
        log.info("Stopped")
