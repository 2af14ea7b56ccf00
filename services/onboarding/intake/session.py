"""The acting user and their credentials, passed explicitly to collaborators."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

ADMIN = "ADMIN"
COACH = "COACH"
CLIENT = "CLIENT"

ROLES = (ADMIN, COACH, CLIENT)


@dataclass(frozen=True)
class SessionUser:
    id: str
    role: str
    coach_id: Optional[str] = None
    name: str = ""

    @property
    def is_client(self) -> bool:
        return self.role == CLIENT


class Session:
    """Auth token and user for one application run.

    Created at the application root and handed to the backend client; the
    client clears it when the backend reports the token as expired.
    """

    def __init__(self, user: Optional[SessionUser] = None, token: Optional[str] = None) -> None:
        self.user = user
        self.token = token

    @property
    def is_authenticated(self) -> bool:
        return self.user is not None and bool(self.token)

    def sign_in(self, user: SessionUser, token: str) -> None:
        self.user = user
        self.token = token

    def clear(self) -> None:
        self.user = None
        self.token = None
