"""Client for the remote backend that owns rooms and item catalogs.

The backend is a plain PHP API queried with GET requests; every action
answers with JSON. It is the source of truth for who is registered in a
room and which items exist for a filter.
"""
import json
import logging
from typing import Any, Dict, List, NamedTuple, Optional

import requests

from wheelroom.exceptions import BackendError
from wheelroom.models import Item, normalize_identity

logger = logging.getLogger(__name__)


class RoomRecord(NamedTuple):
    id: str
    host_id: Optional[str]
    players: List[str]


class BackendClient:
    def __init__(self, app=None):
        self.base_url = None
        self.timeout = 5.0
        self.session = requests.Session()
        if app is not None:
            self.init_app(app)

    def init_app(self, app) -> None:
        self.base_url = app.config['REMOTE_ENDPOINT'].rstrip('/') + '/scripts'
        self.timeout = float(app.config.get('BACKEND_TIMEOUT_SEC', 5))

    def _get(self, script: str, action: str, **params) -> Dict[str, Any]:
        if not self.base_url:
            raise BackendError(action, 'backend client is not configured')
        url = f"{self.base_url}/{script}"
        try:
            res = self.session.get(url, params={'action': action, **params}, timeout=self.timeout)
            res.raise_for_status()
        except requests.RequestException as exc:
            raise BackendError(action, exc) from exc
        if not res.content:
            return {}
        try:
            data = res.json()
        except ValueError as exc:
            raise BackendError(action, f"invalid JSON: {exc}") from exc
        if not isinstance(data, dict):
            raise BackendError(action, f"expected an object, got {type(data).__name__}")
        return data

    # -------------------- Rooms -------------------- #

    def get_room(self, room_id: str) -> Optional[RoomRecord]:
        """Return the room record, or None if the backend does not know it."""
        data = self._get('rooms.php', 'get_room', id=room_id)
        room = data.get('room')
        if not room:
            return None
        if not isinstance(room, dict):
            raise BackendError('get_room', f"room must be an object, got {type(room).__name__}")
        players = room.get('players') or []
        # Stored as a JSON-encoded list column
        if isinstance(players, str):
            try:
                players = json.loads(players) if players else []
            except ValueError as exc:
                raise BackendError('get_room', f"invalid players list: {exc}") from exc
        if not isinstance(players, list):
            raise BackendError('get_room', f"players must be a list, got {type(players).__name__}")
        return RoomRecord(
            id=str(room.get('id') or room_id),
            host_id=normalize_identity(room.get('host_id')),
            players=[p for p in (normalize_identity(p) for p in players) if p],
        )

    def create_room(self, room_id: str, host_id: str) -> None:
        self._get('rooms.php', 'create_room', id=room_id, hostId=host_id)
        logger.info(f"[backend] created room={room_id} host={host_id}")

    def add_player(self, room_id: str, player_id: str) -> None:
        self._get('rooms.php', 'add_player', id=room_id, player=player_id)
        logger.info(f"[backend] registered player={player_id} room={room_id}")

    # -------------------- Items -------------------- #

    def get_items(self, filter: str) -> List[Item]:
        data = self._get('wheel.php', 'get_wheel', filter=filter)
        raw = data.get('games') or []
        if not isinstance(raw, list):
            raise BackendError('get_wheel', f"games must be a list, got {type(raw).__name__}")
        items = []
        for entry in raw:
            try:
                items.append(Item.from_dict(entry))
            except (TypeError, ValueError) as exc:
                logger.warning(f"[backend] skipping item {entry!r}: {exc}")
        return items
