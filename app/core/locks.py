import threading
from contextlib import contextmanager
from typing import Dict, List


class PlayerLocks:
    """One mutex per player id; players never contend with each other.

    An entry lives only while someone holds or waits on it, so the map stays
    as small as the number of players with requests in flight.
    """

    def __init__(self):
        self._guard = threading.Lock()
        # player_id -> [lock, holders and waiters]
        self._locks: Dict[str, List] = {}

    def _acquire_entry(self, player_id: str) -> threading.Lock:
        with self._guard:
            entry = self._locks.get(player_id)
            if entry is None:
                entry = [threading.Lock(), 0]
                self._locks[player_id] = entry
            entry[1] += 1
            return entry[0]

    def _release_entry(self, player_id: str) -> None:
        with self._guard:
            entry = self._locks[player_id]
            entry[1] -= 1
            if entry[1] == 0:
                del self._locks[player_id]

    def active_count(self) -> int:
        with self._guard:
            return len(self._locks)

    @contextmanager
    def hold(self, player_id: str):
        lock = self._acquire_entry(player_id)
        try:
            with lock:
                yield
        finally:
            self._release_entry(player_id)
