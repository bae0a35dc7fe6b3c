import logging
import threading
import time
from typing import Callable, Dict, List, Optional, Tuple

import requests

from wheelroom.exceptions import ChatError

logger = logging.getLogger(__name__)


class ChatNotifier:
    """Outbound side of the chat platform integration.

    Rooms are opened from a chat channel; the channel is remembered so the
    spin result can be posted back there. The mapping follows the backend
    room, not the in-memory Room, and expires after ``channel_ttl`` seconds
    without use (0 keeps it forever). Without a bot token the result is
    only logged.
    """

    def __init__(self, app=None, clock: Callable[[], float] = time.monotonic):
        self.api_base = None
        self.app_id = ''
        self.bot_token = ''
        self.timeout = 5.0
        self.channel_ttl = 0
        self.session = requests.Session()
        # room id -> (channel id, last used)
        self._channels: Dict[str, Tuple[str, float]] = {}
        self._clock = clock
        self._lock = threading.Lock()
        if app is not None:
            self.init_app(app)

    def init_app(self, app) -> None:
        self.api_base = app.config['DISCORD_API_BASE'].rstrip('/')
        self.app_id = app.config.get('DISCORD_APP_ID', '')
        self.bot_token = app.config.get('DISCORD_BOT_TOKEN', '')
        self.timeout = float(app.config.get('BACKEND_TIMEOUT_SEC', 5))
        self.channel_ttl = int(app.config.get('CHAT_CHANNEL_TTL_SEC', 0))

    def remember_channel(self, room_id: str, channel_id: Optional[str]) -> None:
        if not channel_id:
            return
        with self._lock:
            self._channels[str(room_id)] = (str(channel_id), self._clock())

    def channel_for(self, room_id: str) -> Optional[str]:
        with self._lock:
            entry = self._channels.get(str(room_id))
            if entry is None:
                return None
            channel_id = entry[0]
            self._channels[str(room_id)] = (channel_id, self._clock())
            return channel_id

    def clear(self) -> None:
        with self._lock:
            self._channels.clear()

    def prune_channels(self, now: Optional[float] = None) -> List[str]:
        """Drop channels not used for ``channel_ttl`` seconds."""
        if self.channel_ttl <= 0:
            return []
        now = self._clock() if now is None else now
        with self._lock:
            expired = [room_id for room_id, (_, used) in self._channels.items() if now - used >= self.channel_ttl]
            for room_id in expired:
                del self._channels[room_id]
        if expired:
            logger.info(f"[chat] forgot {len(expired)} stale room channels")
        return expired

    def _request(self, method: str, endpoint: str, **kwargs) -> requests.Response:
        url = f"{self.api_base}/{endpoint}"
        headers = kwargs.pop('headers', {})
        if self.bot_token:
            headers['Authorization'] = f"Bot {self.bot_token}"
        try:
            res = self.session.request(method, url, headers=headers, timeout=self.timeout, **kwargs)
            res.raise_for_status()
        except requests.RequestException as exc:
            raise ChatError(f"{method} {endpoint} failed: {exc}") from exc
        return res

    def post_result(self, room_id: str, message: str) -> None:
        """Deliver a finished spin's result. Failures are logged, never raised."""
        channel_id = self.channel_for(room_id)
        if not channel_id or not self.bot_token:
            logger.info(f"[result] room={room_id} (no chat channel)\n{message}")
            return
        try:
            self._request('POST', f"channels/{channel_id}/messages", json={'content': message})
            logger.info(f"[result] room={room_id} posted to channel={channel_id}")
        except ChatError as exc:
            logger.error(f"[result] room={room_id} delivery failed: {exc}")

    def delete_interaction_message(self, token: str, message_id: str) -> None:
        """Remove a superseded room message through the interaction webhook."""
        try:
            self._request('DELETE', f"webhooks/{self.app_id}/{token}/messages/{message_id}")
        except ChatError as exc:
            logger.warning(f"[chat] could not delete message={message_id}: {exc}")
