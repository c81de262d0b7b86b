"""
Network listener.

Runs a uvicorn server for the assembled app on a background thread so that
``bootstrap`` stays synchronous. Opening and closing are single-shot
operations reported through ``concurrent.futures.Future`` objects.
"""

import threading
from concurrent.futures import Future
from typing import Optional

import uvicorn

from stepwise.core.logging import get_logger

logger = get_logger(__name__)


class Listener:
    """
    A uvicorn server bound to one host and port.

    Attributes:
        config: uvicorn configuration
        server: uvicorn server instance
        shutdown_timeout: Seconds to wait for the server to close
    """

    STARTUP_POLL_INTERVAL = 0.05

    def __init__(
        self,
        app,
        host: str,
        port: int,
        ssl_certfile: Optional[str] = None,
        ssl_keyfile: Optional[str] = None,
        log_level: str = "INFO",
        shutdown_timeout: float = 10.0,
    ):
        self.config = uvicorn.Config(
            app,
            host=host,
            port=port,
            ssl_certfile=ssl_certfile,
            ssl_keyfile=ssl_keyfile,
            log_config=None,
            log_level=log_level.lower(),
            lifespan="on",
            timeout_graceful_shutdown=int(shutdown_timeout),
        )
        self.server = uvicorn.Server(self.config)
        self.shutdown_timeout = shutdown_timeout

        self._thread: Optional[threading.Thread] = None
        self._exited = threading.Event()
        self._failure: Optional[BaseException] = None

    @property
    def listening(self) -> bool:
        return self.server.started and not self._exited.is_set()

    @property
    def port(self) -> Optional[int]:
        """Bound port, None until the server is listening."""
        if not self.server.started or not self.server.servers:
            return None
        return self.server.servers[0].sockets[0].getsockname()[1]

    def listen(self) -> "Future[None]":
        """
        Start serving on a background thread.

        Returns:
            Future resolved once the socket is bound, failed if the server
            exits before that
        """
        future: Future[None] = Future()
        self._thread = threading.Thread(
            target=self._serve, name="stepwise-listener", daemon=True
        )
        self._thread.start()
        threading.Thread(
            target=self._await_startup,
            args=(future,),
            name="stepwise-listener-startup",
            daemon=True,
        ).start()
        return future

    def _serve(self) -> None:
        try:
            self.server.run()
        except (SystemExit, OSError) as e:
            # uvicorn exits instead of raising when it cannot bind
            self._failure = e
        finally:
            self._exited.set()

    def _await_startup(self, future: "Future[None]") -> None:
        while not self.server.started:
            if self._exited.wait(self.STARTUP_POLL_INTERVAL):
                future.set_exception(
                    OSError(
                        f"Listener on {self.config.host}:{self.config.port} "
                        f"exited during startup ({self._failure!r})"
                    )
                )
                return
        future.set_result(None)

    def close(self) -> "Future[None]":
        """
        Ask the server to exit and wait for the thread to finish.

        Returns:
            Future resolved once the server has exited
        """
        future: Future[None] = Future()
        if self._thread is None:
            future.set_exception(RuntimeError("Listener was never opened"))
            return future

        self.server.should_exit = True

        def wait_for_exit() -> None:
            self._thread.join(self.shutdown_timeout)
            if self._thread.is_alive():
                future.set_exception(
                    TimeoutError(
                        f"Listener did not exit within {self.shutdown_timeout}s"
                    )
                )
            else:
                future.set_result(None)

        threading.Thread(
            target=wait_for_exit, name="stepwise-listener-shutdown", daemon=True
        ).start()
        return future
