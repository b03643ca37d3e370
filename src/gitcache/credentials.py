"""Per-operation credentials."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class Credentials:
    """Who is talking to the remote and who authors commits.

    Never persisted: the token is handed to the transport for the duration
    of one call, and only *name* / *email* end up in the repository config.
    """
    login: str
    token: str
    name: str
    email: str

    def __repr__(self) -> str:
        return f"Credentials(login={self.login!r}, name={self.name!r}, email={self.email!r})"

    @property
    def authorization(self) -> str:
        """Value of the ``Authorization`` header for the LFS endpoints."""
        return f"Bearer {self.token}"
