"""Loopback HTTP server that receives the OAuth redirect from the browser.

:class:`CallbackServer` binds the host and port of the configured redirect
URI (``http://localhost:8888/callback`` by default), serves a single
``/callback`` endpoint on a daemon thread, and hands the outcome of the
redirect to the waiting login through a
:class:`~spotctl.auth.rendezvous.Rendezvous`.

The browser always gets a ``200 OK`` HTML page: a success page that closes
itself after a 3 second countdown, an error page echoing the provider's
``error`` value, or an "invalid request" page when the redirect carries no
code.

Use it as a context manager so the port is released on every exit path::

    with CallbackServer("http://localhost:8888/callback") as server:
        webbrowser.open(url)
        result = server.wait(timeout=60)
"""

from __future__ import annotations

import errno
import html
import logging
import socketserver
import threading
import time
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from typing import Any, Optional
from urllib.parse import parse_qs, urlparse

from spotctl.auth.rendezvous import Rendezvous
from spotctl.exceptions import AuthInterruptedError, InvalidRedirectError, PortBusyError
from spotctl.models import CallbackResult

logger = logging.getLogger(__name__)

DEFAULT_HOST = "localhost"
DEFAULT_PORT = 8888
CALLBACK_PATH = "/callback"

STARTUP_DELAY = 0.3
SHUTDOWN_DEADLINE = 5.0
CONNECTION_TIMEOUT = 10
PUBLISH_DEADLINE = 1.0

_PAGE = """<!DOCTYPE html>
<html>
<head>
<meta charset="utf-8">
<title>{title}</title>
<style>
  body {{ font-family: -apple-system, BlinkMacSystemFont, "Segoe UI", sans-serif;
         text-align: center; padding: 50px; background: #191414; color: #ffffff; }}
  h1 {{ color: {colour}; }}
  p {{ color: #b3b3b3; }}
</style>
</head>
<body>
<h1>{heading}</h1>
{body}
</body>
</html>
"""

SUCCESS_BODY = """<p>You can now return to your terminal.</p>
<p>This tab will close automatically in <span id="countdown">3</span> seconds...</p>
<script>
  var seconds = 3;
  var timer = setInterval(function () {
    seconds -= 1;
    document.getElementById("countdown").textContent = seconds;
    if (seconds <= 0) {
      clearInterval(timer);
      window.close();
    }
  }, 1000);
</script>"""


def success_page() -> str:
    return _PAGE.format(
        title="Spotify Authentication",
        heading="Successfully connected to Spotify!",
        colour="#1db954",
        body=SUCCESS_BODY,
    )


def error_page(error: str) -> str:
    return _PAGE.format(
        title="Authentication Failed",
        heading="Authentication Failed",
        colour="#e22134",
        body=f"<p>Error: {html.escape(error)}</p>\n<p>Please close this tab and try again.</p>",
    )


def invalid_page() -> str:
    return _PAGE.format(
        title="Invalid Request",
        heading="Invalid Request",
        colour="#e22134",
        body="<p>No authorization code received from Spotify.</p>",
    )


def parse_redirect_uri(redirect_uri: str) -> tuple[str, int, str]:
    """Split *redirect_uri* into ``(host, port, path)`` for the listener.

    Missing parts fall back to ``localhost``, ``8888`` and ``/callback``.

    Raises:
        InvalidRedirectError: If the URI is not an ``http(s)`` URL or its
            port is not numeric.
    """
    try:
        parsed = urlparse(redirect_uri)
        port = parsed.port
    except ValueError as exc:
        raise InvalidRedirectError(f"invalid redirect URI {redirect_uri!r}: {exc}") from exc
    if parsed.scheme not in ("http", "https"):
        raise InvalidRedirectError(f"invalid redirect URI {redirect_uri!r}: expected http://")
    return (
        parsed.hostname or DEFAULT_HOST,
        port if port is not None else DEFAULT_PORT,
        parsed.path or CALLBACK_PATH,
    )


class _CallbackHTTPServer(ThreadingHTTPServer):
    daemon_threads = True

    def __init__(self, address: tuple[str, int], owner: CallbackServer, path: str) -> None:
        self.owner = owner
        self.callback_path = path
        super().__init__(address, _CallbackHandler)

    def server_bind(self) -> None:
        # HTTPServer.server_bind would reverse-resolve the address with getfqdn.
        socketserver.TCPServer.server_bind(self)
        host, port = self.server_address[:2]
        self.server_name = str(host)
        self.server_port = port


class _CallbackHandler(BaseHTTPRequestHandler):
    server: _CallbackHTTPServer
    timeout = CONNECTION_TIMEOUT

    def do_GET(self) -> None:
        parsed = urlparse(self.path)
        if parsed.path != self.server.callback_path:
            self.send_error(404)
            return

        params = parse_qs(parsed.query, keep_blank_values=True)
        error = params.get("error", [None])[0]
        code = params.get("code", [""])[0]
        state = params.get("state", [""])[0]

        if error:
            page = error_page(error)
            result = CallbackResult(error=f"authentication error: {error}")
        elif code and state:
            page = success_page()
            result = CallbackResult(code=code, state=state)
        else:
            page = invalid_page()
            result = CallbackResult(error="no authorization code received")

        # Look the rendezvous up before writing so a concurrent stop() is never blocked.
        rendezvous = self.server.owner._current_rendezvous()

        body = page.encode("utf-8")
        try:
            self.send_response(200)
            self.send_header("Content-Type", "text/html; charset=utf-8")
            self.send_header("Content-Length", str(len(body)))
            self.end_headers()
            self.wfile.write(body)
        except OSError as exc:
            logger.debug("Could not write callback page: %s", exc)

        if rendezvous is None:
            logger.warning("Dropping authorization callback: no login in progress")
        elif not rendezvous.publish(result, timeout=PUBLISH_DEADLINE):
            logger.warning("Dropping authorization callback: result already delivered")

    def log_message(self, format: str, *args: Any) -> None:
        logger.debug("callback %s - %s", self.address_string(), format % args)


class CallbackServer:
    """Owns the callback listener and the rendezvous of one login attempt.

    Args:
        redirect_uri: The redirect URI registered with the Spotify app.
        startup_delay: Seconds to sleep after the serve thread starts and
            before the rendezvous is installed.
    """

    def __init__(self, redirect_uri: str, startup_delay: float = STARTUP_DELAY) -> None:
        self._redirect_uri = redirect_uri
        self._startup_delay = startup_delay
        # _lifecycle serialises start/stop; _lock guards the fields the handler reads.
        self._lifecycle = threading.RLock()
        self._lock = threading.Lock()
        self._httpd: Optional[_CallbackHTTPServer] = None
        self._thread: Optional[threading.Thread] = None
        self._rendezvous: Optional[Rendezvous] = None

    @property
    def redirect_uri(self) -> str:
        return self._redirect_uri

    @property
    def running(self) -> bool:
        with self._lock:
            return self._httpd is not None

    @property
    def bound_address(self) -> Optional[tuple[str, int]]:
        """``(host, port)`` the listener is bound to, or ``None`` when stopped."""
        with self._lock:
            if self._httpd is None:
                return None
            host, port = self._httpd.server_address[:2]
            return str(host), int(port)

    def start(self) -> None:
        """Bind the listener, start serving, and install a fresh rendezvous.

        A server left over from a previous attempt is stopped first.

        Raises:
            InvalidRedirectError: The redirect URI cannot be parsed.
            PortBusyError: The listener could not bind its address.
        """
        with self._lifecycle:
            if self.running:
                self.stop()

            host, port, path = parse_redirect_uri(self._redirect_uri)
            try:
                httpd = _CallbackHTTPServer((host, port), self, path)
            except OSError as exc:
                if exc.errno == errno.EADDRINUSE:
                    raise PortBusyError(
                        f"port {port} is already in use; "
                        "close the other program or change the redirect URI"
                    ) from exc
                raise PortBusyError(f"cannot listen on {host}:{port}: {exc}") from exc

            thread = threading.Thread(
                target=httpd.serve_forever,
                kwargs={"poll_interval": 0.1},
                name="spotctl-callback",
                daemon=True,
            )
            thread.start()
            logger.debug("Callback server listening on %s:%s%s", host, port, path)

            time.sleep(self._startup_delay)

            with self._lock:
                self._httpd = httpd
                self._thread = thread
                self._rendezvous = Rendezvous()

    def stop(self) -> None:
        """Close the rendezvous and shut the listener down. Idempotent.

        A pending :meth:`wait` wakes with
        :class:`~spotctl.exceptions.AuthInterruptedError`.
        """
        with self._lifecycle:
            with self._lock:
                httpd, self._httpd = self._httpd, None
                thread, self._thread = self._thread, None
                rendezvous, self._rendezvous = self._rendezvous, None

            if rendezvous is not None:
                rendezvous.close()
            if httpd is None:
                return

            stopper = threading.Thread(target=httpd.shutdown, daemon=True)
            stopper.start()
            stopper.join(SHUTDOWN_DEADLINE)
            if stopper.is_alive():
                logger.warning(
                    "Callback server did not stop within %.0f seconds", SHUTDOWN_DEADLINE
                )
            httpd.server_close()
            if thread is not None:
                thread.join(SHUTDOWN_DEADLINE)
            logger.debug("Callback server stopped")

    def wait(self, timeout: float) -> CallbackResult:
        """Wait for the browser redirect of the current attempt.

        Raises:
            AuthTimeoutError: Nothing arrived within *timeout* seconds.
            AuthInterruptedError: The server was stopped (or never started).
        """
        rendezvous = self._current_rendezvous()
        if rendezvous is None:
            raise AuthInterruptedError()
        return rendezvous.wait(timeout)

    def _current_rendezvous(self) -> Optional[Rendezvous]:
        with self._lock:
            return self._rendezvous

    def __enter__(self) -> CallbackServer:
        self.start()
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.stop()
