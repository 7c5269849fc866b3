"""Session token state shared by every outgoing Vault call."""

import logging
import threading

from .errors import AuthenticationRequired

logger = logging.getLogger(__name__)


class SessionState:
    """Holds the current bearer token of a client instance.

    The token is unset at construction, set by a successful login and read by
    every fetch. There is no expiry tracking: an expired token only shows up
    as a ``RemoteUnauthorized`` error from the server.

    All methods may be called concurrently from any thread. Reads observe the
    most recently completed write, and a missing token is reported
    immediately rather than waited for.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._token: str | None = None

    def set_token(self, token: str) -> None:
        if not token:
            raise ValueError("Session token must not be empty")
        with self._lock:
            self._token = token

    def current_token(self) -> str:
        """Return the current token.

        Raises:
            AuthenticationRequired: If no token has been set.
        """
        with self._lock:
            token = self._token
        if token is None:
            raise AuthenticationRequired()
        return token

    def reset(self) -> None:
        with self._lock:
            self._token = None
        logger.debug("Session token cleared")

    @property
    def is_authenticated(self) -> bool:
        with self._lock:
            return self._token is not None

    def __repr__(self) -> str:
        state = "authenticated" if self.is_authenticated else "anonymous"
        return f"SessionState[{state}]"
