import threading
import random
from typing import Dict, Optional

from app.models import Room, generate_room_id


class RoomRegistry:
    """Process-wide mapping from room id to Room.

    The registry lock only guards the mapping itself; room contents are
    guarded by each room's own lock.
    """

    def __init__(self, rng: Optional[random.Random] = None):
        self._rooms: Dict[str, Room] = {}
        self._lock = threading.Lock()
        self._rng = rng or random.Random()

    def create(self, owner: str) -> Room:
        with self._lock:
            room_id = generate_room_id(self._rooms, rng=self._rng)
            room = Room(room_id, owner)
            self._rooms[room_id] = room
            return room

    def get(self, room_id) -> Optional[Room]:
        if not isinstance(room_id, str):
            return None
        with self._lock:
            return self._rooms.get(room_id)

    def remove(self, room_id: str) -> Optional[Room]:
        with self._lock:
            return self._rooms.pop(room_id, None)
