"""Process-lifetime user cache, keyed by numeric ID and by username."""

import threading

from mrw.models import User


class UserCache:
    """Append-only store of users shared by every fetch task in the process.

    No eviction, no TTL and no negative caching: a failed lookup is never stored.
    A put overwrites whatever was stored under either key (last write wins).
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._by_id: dict[int, User] = {}
        self._by_username: dict[str, User] = {}

    def put(self, user: User) -> None:
        with self._lock:
            self._by_id[user.id] = user
            self._by_username[user.username] = user

    def get_by_id(self, user_id: int) -> User | None:
        with self._lock:
            return self._by_id.get(user_id)

    def get_by_username(self, username: str) -> User | None:
        with self._lock:
            return self._by_username.get(username)

    def list_all(self) -> list[User]:
        """Snapshot of every cached user, in no particular order."""
        with self._lock:
            return list(self._by_id.values())

    def __len__(self) -> int:
        with self._lock:
            return len(self._by_id)
