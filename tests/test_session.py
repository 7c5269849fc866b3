"""Tests for the session token state."""

import threading

import pytest

from vaultcourier.errors import AuthenticationRequired
from vaultcourier.session import SessionState


class TestSessionState:
    """Test token lifecycle: unset, set, reset."""

    def test_unset_at_construction(self):
        """A new session has no token and reports it immediately."""
        session = SessionState()
        assert not session.is_authenticated
        with pytest.raises(AuthenticationRequired, match="has not authenticated"):
            session.current_token()

    def test_set_and_read_token(self):
        """The most recently set token is returned."""
        session = SessionState()
        session.set_token("first")
        session.set_token("second")
        assert session.current_token() == "second"
        assert session.is_authenticated

    def test_reset_clears_token(self):
        """Reset returns the session to the unauthenticated state."""
        session = SessionState()
        session.set_token("token")
        session.reset()
        assert not session.is_authenticated
        with pytest.raises(AuthenticationRequired):
            session.current_token()

    def test_empty_token_rejected(self):
        """An empty token is not a valid credential."""
        session = SessionState()
        with pytest.raises(ValueError, match="must not be empty"):
            session.set_token("")
        assert not session.is_authenticated

    def test_repr_does_not_leak_token(self):
        """The repr shows the state but never the token."""
        session = SessionState()
        assert repr(session) == "SessionState[anonymous]"
        session.set_token("s3cret-token")
        assert repr(session) == "SessionState[authenticated]"
        assert "s3cret" not in repr(session)

    def test_concurrent_writers_and_readers(self):
        """Concurrent access always observes one of the written tokens."""
        session = SessionState()
        session.set_token("token-0")
        tokens = {f"token-{i}" for i in range(8)}
        seen: list[str] = []
        errors: list[BaseException] = []

        def writer(token: str) -> None:
            for _ in range(200):
                session.set_token(token)

        def reader() -> None:
            try:
                for _ in range(200):
                    seen.append(session.current_token())
            except BaseException as e:
                errors.append(e)

        threads = [threading.Thread(target=writer, args=(token,)) for token in tokens]
        threads += [threading.Thread(target=reader) for _ in range(4)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert not errors
        assert set(seen) <= tokens
