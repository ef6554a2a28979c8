"""Identity registry: read-only lookup from user id to display identity."""

from typing import Dict, Iterable, Mapping

from msgboard.exceptions import NotFound
from msgboard.models import User


class IdentityRegistry:
    """Fixed mapping of user id -> User, built once at startup."""

    def __init__(self, users: Iterable[User] = ()) -> None:
        self._users: Dict[str, User] = {}
        for user in users:
            if user.id in self._users:
                raise ValueError(f"duplicate user id {user.id!r}")
            self._users[user.id] = user

    @classmethod
    def from_mapping(cls, users: Mapping[str, str]) -> "IdentityRegistry":
        return cls(User(id=str(uid), name=name) for uid, name in users.items())

    def resolve(self, user_id: str) -> User:
        """Return the user with this id or raise NotFound("user")."""
        user = self._users.get(str(user_id))
        if user is None:
            raise NotFound("user", str(user_id))
        return user

    def __contains__(self, user_id: object) -> bool:
        return str(user_id) in self._users

    def __len__(self) -> int:
        return len(self._users)
