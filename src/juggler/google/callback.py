"""Local OAuth callback listener.

The browser is redirected to ``http://localhost:<port>/callback`` once the
user has consented. The listener may serve any number of requests, but only
the first one that resolves the flow is honored: the result is handed over
through a ``CallbackSlot`` that can be claimed exactly once.
"""

from __future__ import annotations

import asyncio
import html
import logging
import threading

from aiohttp import web

from juggler.google.exceptions import (
    AuthorizationError,
    CallbackChannelClosedError,
    CallbackTimeoutError,
)

logger = logging.getLogger(__name__)

CALLBACK_PATH = "/callback"

SUCCESS_PAGE = """<html>
    <body>
        <h1>Authentication Successful!</h1>
        <p>You have successfully authenticated with Google Tasks.</p>
        <p>You can now close this window and return to your terminal.</p>
        <script>window.close();</script>
    </body>
</html>
"""

FAILURE_PAGE = """<html>
    <body>
        <h1>Authentication Failed</h1>
        <p>{message}</p>
        <p>You can close this window.</p>
    </body>
</html>
"""


class CallbackSlot:
    """Single-use hand-off between callback handlers and the waiting flow.

    The first ``deliver`` or ``fail`` call claims the slot and resolves the
    waiter; every later call is a no-op returning False.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._claimed = False
        self._future: asyncio.Future[str] = asyncio.get_running_loop().create_future()
        self._future.add_done_callback(_retrieve_exception)

    @property
    def claimed(self) -> bool:
        with self._lock:
            return self._claimed

    def _claim(self) -> bool:
        with self._lock:
            if self._claimed:
                return False
            self._claimed = True
            return True

    def deliver(self, code: str) -> bool:
        """Hand an authorization code to the waiter."""
        if not self._claim():
            logger.debug("Ignoring authorization code: callback already resolved")
            return False
        self._future.set_result(code)
        return True

    def fail(self, error: Exception) -> bool:
        """Resolve the waiter with an error."""
        if not self._claim():
            logger.debug(f"Ignoring callback error, already resolved: {error}")
            return False
        self._future.set_exception(error)
        return True

    def close(self) -> bool:
        """Break the channel if nothing was delivered yet."""
        return self.fail(CallbackChannelClosedError())

    async def wait(self, timeout: float | None = None) -> str:
        """Wait for the delivered code.

        Args:
            timeout: Seconds to wait, or None to wait indefinitely.

        Returns:
            The authorization code.

        Raises:
            AuthorizationError: If the callback reported a failure.
            CallbackChannelClosedError: If the slot was closed undelivered.
            CallbackTimeoutError: If the timeout expired first.
        """
        try:
            return await asyncio.wait_for(asyncio.shield(self._future), timeout=timeout)
        except asyncio.TimeoutError:
            raise CallbackTimeoutError(timeout) from None


def _retrieve_exception(future: asyncio.Future) -> None:
    # A slot closed with nobody waiting must not log "exception was never retrieved"
    if not future.cancelled():
        future.exception()


class CallbackServer:
    """Loopback HTTP listener for the OAuth redirect.

    Example:
        >>> server = CallbackServer(port=0, expected_state=state)
        >>> await server.start()
        >>> print(server.redirect_uri)
        >>> code = await server.wait_for_code(timeout=300)
        >>> await server.stop()
    """

    def __init__(
        self,
        port: int = 0,
        host: str = "127.0.0.1",
        expected_state: str | None = None,
    ):
        """Initialize the listener.

        Args:
            port: Port to bind; 0 picks an ephemeral port.
            host: Interface to bind. Loopback only.
            expected_state: Nonce the callback must echo. None disables the check.
        """
        self.host = host
        self.requested_port = port
        self.expected_state = expected_state
        self.port: int | None = None
        self.app = web.Application()
        self.app.router.add_get(CALLBACK_PATH, self._handle_callback, allow_head=False)
        self.runner: web.AppRunner | None = None
        self._slot: CallbackSlot | None = None

    @property
    def redirect_uri(self) -> str:
        if self.port is None:
            raise RuntimeError("Callback server is not running")
        return f"http://localhost:{self.port}{CALLBACK_PATH}"

    async def start(self) -> int:
        """Bind the listener and start serving.

        Returns:
            The port actually bound.
        """
        self._slot = CallbackSlot()
        self.runner = web.AppRunner(self.app, access_log=None)
        await self.runner.setup()
        site = web.TCPSite(self.runner, host=self.host, port=self.requested_port)
        await site.start()

        self.port = self.runner.addresses[0][1]
        logger.info(f"Started local server on port {self.port}")
        return self.port

    async def wait_for_code(self, timeout: float | None = None) -> str:
        """Wait for the first resolving callback. See ``CallbackSlot.wait``."""
        if self._slot is None:
            raise RuntimeError("Callback server is not running")
        return await self._slot.wait(timeout=timeout)

    async def stop(self) -> None:
        """Stop serving; a waiter still pending fails with a closed channel."""
        if self.runner:
            await self.runner.cleanup()
            self.runner = None
        if self._slot is not None:
            self._slot.close()

    async def __aenter__(self) -> CallbackServer:
        await self.start()
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.stop()

    async def _handle_callback(self, request: web.Request) -> web.Response:
        """Handle OAuth callback request."""
        params = request.query

        state_error = self._validate_state(params.get("state"))
        if state_error:
            return self._failure(state_error)

        error = params.get("error")
        if error:
            description = params.get("error_description", "Unknown error")
            logger.error(f"OAuth error from provider: {error}: {description}")
            return self._failure(f"{error}: {description}")

        code = params.get("code")
        if code:
            if self._slot.deliver(code):
                logger.info("Received authorization code")
            return web.Response(text=SUCCESS_PAGE, content_type="text/html")

        return self._failure("Missing authorization code")

    def _validate_state(self, state: str | None) -> str | None:
        if self.expected_state is None:
            return None
        if state is None:
            return "Missing OAuth state parameter"
        if state != self.expected_state:
            return "Invalid OAuth state parameter"
        return None

    def _failure(self, message: str) -> web.Response:
        self._slot.fail(AuthorizationError(f"OAuth error: {message}"))
        return web.Response(
            text=FAILURE_PAGE.format(message=html.escape(message)),
            content_type="text/html",
            status=400,
        )
