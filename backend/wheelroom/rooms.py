"""Room session engine: membership, readiness and spin orchestration.

A Room owns one Wheel, the connected Players and any spectator
connections. Every public operation holds the room's lock, so readiness
toggles, spin guards and timer ticks never interleave. The lock is never
held across a backend request.

Connections only need a ``send(event, data)`` method. A failure on one
connection is logged and does not stop delivery to the others.
"""
import logging
import threading
import time
from typing import Any, Callable, Dict, Iterable, List, Optional

from wheelroom.exceptions import BackendError
from wheelroom.models import Item, Player, normalize_identity
from wheelroom.services.messages import format_result_message
from wheelroom.services.wheel import Wheel

logger = logging.getLogger(__name__)

# Outbound protocol events
PLAYERS_LIST = 'players/list'
WHEEL_SETUP = 'wheel/setup'
WHEEL_FILTER = 'wheel/filter'
WHEEL_ANGLE = 'wheel/angle'
WHEEL_ROLLING = 'wheel/rolling'


def _item_id(ref: Any) -> Optional[str]:
    if isinstance(ref, Item):
        return ref.id
    if isinstance(ref, dict):
        ref = ref.get('id')
    if ref is None:
        return None
    return str(ref)


class Room:
    """Runtime state and live connections for one wheel session."""

    def __init__(
        self,
        room_id: str,
        host_id: Optional[str],
        registered_players: Iterable[str],
        fetch_items: Optional[Callable[[str], List[Item]]] = None,
        timer_factory: Optional[Callable] = None,
        result_sink: Optional[Callable[[str, str], None]] = None,
        wheel: Optional[Wheel] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.id = room_id
        self.host_id = host_id
        self.registered_players: List[str] = self._normalize_players(registered_players)
        self.players: Dict[str, Player] = {}
        # connection -> profile claimed at connect time (None when anonymous)
        self.spectators: Dict[Any, Optional[Player]] = {}
        self.wheel = wheel or Wheel()
        self.filter: Optional[str] = None
        self._fetch_items = fetch_items
        self._timer_factory = timer_factory
        self._result_sink = result_sink
        self._spin_timer = None
        self._filter_seq = 0
        self._clock = clock
        self.last_activity = clock()
        self._lock = threading.RLock()

    @staticmethod
    def _normalize_players(players: Iterable[Any]) -> List[str]:
        seen = []
        for p in players or []:
            identity = normalize_identity(p)
            if identity and identity not in seen:
                seen.append(identity)
        return seen

    def _touch(self) -> None:
        self.last_activity = self._clock()

    # -------------------- Membership -------------------- #

    def update_registered_players(self, registered_players: Iterable[Any], host_id: Optional[str] = None) -> None:
        """Mirror the backend's registration list.

        Players no longer registered become spectators; spectators whose
        claimed identity is now registered become players.
        """
        registered_players = self._normalize_players(registered_players)
        with self._lock:
            self._touch()
            changed = registered_players != self.registered_players
            self.registered_players = registered_players
            if host_id and host_id != self.host_id:
                self.host_id = host_id
                changed = True
            for identity in list(self.players):
                if identity not in self.registered_players:
                    player = self.players.pop(identity)
                    player.is_ready = False
                    self.spectators[player.connection] = player
                    logger.info(f"[room] room={self.id} player={identity} no longer registered, now spectating")
            for connection, profile in list(self.spectators.items()):
                if profile is None or profile.id not in self.registered_players or profile.id in self.players:
                    continue
                del self.spectators[connection]
                profile.is_ready = False
                self.players[profile.id] = profile
                changed = True
                logger.info(f"[room] room={self.id} spectator={profile.id} registered, now playing")
            if changed:
                self.send_players_list()

    def admit(self, identity: Any, name: Optional[str], avatar: Optional[str], connection) -> bool:
        """Attach a connection. Returns True if it became a player, False for a spectator."""
        identity = normalize_identity(identity)
        with self._lock:
            self._touch()
            if identity is not None and identity in self.registered_players:
                previous = self.players.get(identity)
                if previous is not None and previous.connection is not connection:
                    # Same identity from a second socket: keep the old one watching
                    previous.is_ready = False
                    self.spectators[previous.connection] = previous
                self.spectators.pop(connection, None)
                self.players[identity] = Player(identity, name, avatar, connection)
                logger.info(f"[room] room={self.id} player={identity} connected ({len(self.players)} players)")
                self.send_players_list()
                self._send_wheel_state(connection)
                return True

            self.spectators[connection] = Player(identity, name, avatar, connection) if identity else None
            logger.info(f"[room] room={self.id} spectator={identity} connected")
            self._send(connection, PLAYERS_LIST, self._players_payload())
            self._send_wheel_state(connection)
            return False

    def remove(self, identity: Any, connection=None) -> None:
        identity = normalize_identity(identity)
        with self._lock:
            self._touch()
            if connection is not None:
                self.spectators.pop(connection, None)
            player = self.players.get(identity)
            if player is None:
                return
            if connection is not None and player.connection is not connection:
                return
            del self.players[identity]
            logger.info(f"[room] room={self.id} player={identity} disconnected ({len(self.players)} players)")
            self.send_players_list()

    def has_connections(self) -> bool:
        with self._lock:
            return bool(self.players or self.spectators)

    # -------------------- Readiness -------------------- #

    def toggle_ready(self, identity: Any) -> bool:
        identity = normalize_identity(identity)
        with self._lock:
            player = self.players.get(identity)
            if player is None:
                return False
            self._touch()
            player.is_ready = not player.is_ready
            self.send_players_list()
            return True

    def reset_readiness(self) -> None:
        with self._lock:
            for player in self.players.values():
                player.is_ready = False
            self.send_players_list()

    def all_ready(self) -> bool:
        """At least one connected player, and every connected player is ready."""
        with self._lock:
            if not self.players:
                return False
            return all(p.is_ready for p in self.players.values())

    # -------------------- Items -------------------- #

    def change_filter(self, filter: str) -> bool:
        """Load the catalog for ``filter``. Only the latest request is applied."""
        with self._lock:
            self._touch()
            self.reset_readiness()
            self._filter_seq += 1
            seq = self._filter_seq

        if self._fetch_items is None:
            logger.warning(f"[filter] room={self.id} has no item source, ignoring filter={filter!r}")
            return False
        try:
            items = self._fetch_items(filter)
        except BackendError as exc:
            logger.error(f"[filter] room={self.id} filter={filter!r} fetch failed: {exc}")
            return False

        with self._lock:
            if seq != self._filter_seq:
                logger.info(f"[filter] room={self.id} discarding stale result for filter={filter!r}")
                return False
            self.filter = filter
            self.wheel.set_items(items)
            logger.info(f"[filter] room={self.id} filter={filter!r} items={len(items)}")
            self.emit_to_all(WHEEL_FILTER, filter)
            self.emit_to_all(WHEEL_SETUP, self.wheel_setup())
            return True

    def ban(self, item: Any) -> bool:
        item_id = _item_id(item)
        if item_id is None:
            return False
        with self._lock:
            self._touch()
            if not self.wheel.ban(item_id):
                return False
            self.emit_to_all(WHEEL_SETUP, self.wheel_setup())
            return True

    def unban(self, item: Any) -> bool:
        item_id = _item_id(item)
        if item_id is None:
            return False
        with self._lock:
            self._touch()
            if not self.wheel.unban(item_id):
                return False
            self.emit_to_all(WHEEL_SETUP, self.wheel_setup())
            return True

    # -------------------- Spinning -------------------- #

    @property
    def is_rolling(self) -> bool:
        return self.wheel.is_rolling

    def spin(self) -> bool:
        with self._lock:
            if self.wheel.is_rolling:
                logger.debug(f"[spin-reject] room={self.id} already rolling")
                return False
            # Any handle left at this point belongs to a finished spin
            self._cancel_timer()
            if not self.all_ready():
                logger.debug(f"[spin-reject] room={self.id} not everyone is ready")
                return False
            if not self.wheel.items:
                logger.debug(f"[spin-reject] room={self.id} no selectable items")
                return False

            self._touch()
            self.wheel.spin()
            if self._timer_factory is not None:
                self._spin_timer = self._timer_factory(self.tick, self.id)
            logger.info(
                f"[spin-start] room={self.id} players={len(self.players)} "
                f"full_speed_ticks={self.wheel.remaining_full_speed_ticks}"
            )
            self.emit_to_all(WHEEL_ROLLING, True)
            return True

    def tick(self, timer=None) -> Optional[Item]:
        """Advance the wheel one step. Returns the winning item when the spin ends."""
        result = None
        winner = None
        with self._lock:
            if timer is not None and timer is not self._spin_timer:
                timer.cancel()
                return None
            if not self.wheel.is_rolling:
                return None
            if not self.wheel.items:
                logger.warning(f"[spin-abort] room={self.id} item list emptied mid-spin")
                self.wheel.stop()
                self._finish_spin()
                return None

            self.wheel.tick()
            self.emit_to_all(WHEEL_ANGLE, self.wheel.angle)
            if not self.wheel.is_rolling:
                self._finish_spin()
                winner = self.wheel.current_item()
                result = format_result_message(self.wheel)
                logger.info(f"[spin-end] room={self.id} winner={winner.name if winner else None}")

        if result is not None and self._result_sink is not None:
            self._result_sink(self.id, result)
        return winner

    def _finish_spin(self) -> None:
        self._touch()
        self._cancel_timer()
        self.emit_to_all(WHEEL_ROLLING, False)

    def _cancel_timer(self) -> None:
        if self._spin_timer is not None:
            self._spin_timer.cancel()
            self._spin_timer = None

    def close(self) -> None:
        """Stop any running spin without notifying anyone."""
        with self._lock:
            self._cancel_timer()
            self.wheel.stop()

    # -------------------- Broadcasting -------------------- #

    def _connections(self) -> List[Any]:
        return [p.connection for p in self.players.values()] + list(self.spectators)

    def _send(self, connection, event: str, data) -> None:
        try:
            connection.send(event, data)
        except Exception as exc:
            logger.warning(f"[room] room={self.id} send {event} failed: {exc}")

    def emit_to_all(self, event: str, data) -> None:
        with self._lock:
            for connection in self._connections():
                self._send(connection, event, data)

    def _players_payload(self) -> Dict:
        return {
            'players': [p.to_dict() for p in self.players.values()],
            'hostId': self.host_id,
            'registeredPlayers': list(self.registered_players),
        }

    def send_players_list(self) -> None:
        self.emit_to_all(PLAYERS_LIST, self._players_payload())

    def wheel_setup(self) -> Dict:
        return self.wheel.setup(self.filter)

    def _send_wheel_state(self, connection) -> None:
        if self.filter is not None:
            self._send(connection, WHEEL_FILTER, self.filter)
        self._send(connection, WHEEL_SETUP, self.wheel_setup())
        self._send(connection, WHEEL_ANGLE, self.wheel.angle)
        if self.wheel.is_rolling:
            self._send(connection, WHEEL_ROLLING, True)

    def snapshot(self) -> Dict:
        with self._lock:
            return {
                'id': self.id,
                'filter': self.filter,
                'isRolling': self.wheel.is_rolling,
                'angle': self.wheel.angle,
                'spectators': len(self.spectators),
                'wheel': self.wheel_setup(),
                **self._players_payload(),
            }


class RoomRegistry:
    """Process-wide room id -> Room mapping.

    Rooms are created lazily on first connection. Rooms with nobody
    attached are retired once idle for ``idle_ttl`` seconds (0 keeps them
    forever).
    """

    def __init__(self, room_factory: Optional[Callable[..., Room]] = None, clock: Callable[[], float] = time.monotonic):
        self._rooms: Dict[str, Room] = {}
        self._lock = threading.Lock()
        self._room_factory = room_factory or Room
        self._clock = clock
        self.idle_ttl = 0

    def init_app(self, app, room_factory: Optional[Callable[..., Room]] = None) -> None:
        if room_factory is not None:
            self._room_factory = room_factory
        self.idle_ttl = int(app.config.get('ROOM_IDLE_TTL_SEC', 0))

    def get_or_create(self, room_id: str, host_id: Optional[str], registered_players: Iterable[Any]) -> Room:
        room_id = str(room_id)
        with self._lock:
            room = self._rooms.get(room_id)
            if room is None:
                room = self._room_factory(room_id, host_id, registered_players)
                self._rooms[room_id] = room
                logger.info(f"[registry] created room={room_id} host={host_id} ({len(self._rooms)} rooms)")
            else:
                room.update_registered_players(registered_players, host_id)
            return room

    def get(self, room_id: str) -> Optional[Room]:
        with self._lock:
            return self._rooms.get(str(room_id))

    def __len__(self) -> int:
        with self._lock:
            return len(self._rooms)

    def __contains__(self, room_id) -> bool:
        with self._lock:
            return str(room_id) in self._rooms

    def prune_idle(self, now: Optional[float] = None) -> List[str]:
        """Retire rooms with no connections, no spin and no recent activity."""
        if self.idle_ttl <= 0:
            return []
        now = self._clock() if now is None else now
        retired = []
        with self._lock:
            for room_id, room in list(self._rooms.items()):
                if room.has_connections() or room.is_rolling:
                    continue
                if now - room.last_activity < self.idle_ttl:
                    continue
                room.close()
                del self._rooms[room_id]
                retired.append(room_id)
        for room_id in retired:
            logger.info(f"[registry] retired idle room={room_id}")
        return retired

    def clear(self) -> None:
        with self._lock:
            for room in self._rooms.values():
                room.close()
            self._rooms.clear()
