import math
import random
from typing import Dict, Iterable, List, Optional, Set

from wheelroom.models import Item

TWO_PI = 2 * math.pi

INITIAL_SPEED = 0.08
DECELERATION_RATIO = 0.989
STOP_SPEED = 0.002
# Inclusive bounds for the random parts of a spin
ANGLE_OFFSET_RANGE = (-10, 9)
FULL_SPEED_TICKS_RANGE = (500, 699)


class Wheel:
    """Decelerating spin simulation plus weighted outcome resolution.

    The wheel has no notion of players or connections; its owning room
    drives ``tick()`` on a timer and broadcasts the results.

    Outcome selection is a cumulative-distribution lookup on the final
    angle. The only randomness is the initial offset and the length of the
    full-speed phase chosen by ``spin()``.
    """

    def __init__(self, rng: Optional[random.Random] = None):
        self.angle = 0.0
        self.speed = 0.0
        self.deceleration_ratio = DECELERATION_RATIO
        self.remaining_full_speed_ticks = 0
        self.is_rolling = False
        self._rng = rng or random.Random()
        self._catalog: List[Item] = []
        self._banned_ids: Set[str] = set()

    # -------------------- Items -------------------- #

    @property
    def items(self) -> List[Item]:
        """Unbanned items in catalog order."""
        return [i for i in self._catalog if i.id not in self._banned_ids]

    @property
    def banned_items(self) -> List[Item]:
        return [i for i in self._catalog if i.id in self._banned_ids]

    def find_item(self, item_id) -> Optional[Item]:
        item_id = str(item_id)
        for item in self._catalog:
            if item.id == item_id:
                return item
        return None

    def set_items(self, items: Iterable[Item]) -> None:
        self._catalog = list(items)
        self._banned_ids = set()
        self._recompute_probabilities()

    def ban(self, item_id) -> bool:
        """Exclude an item from selection. Returns False if nothing changed."""
        item = self.find_item(item_id)
        if item is None or item.id in self._banned_ids:
            return False
        self._banned_ids.add(item.id)
        self._recompute_probabilities()
        return True

    def unban(self, item_id) -> bool:
        item = self.find_item(item_id)
        if item is None or item.id not in self._banned_ids:
            return False
        self._banned_ids.discard(item.id)
        self._recompute_probabilities()
        return True

    def _recompute_probabilities(self) -> None:
        selectable = self.items
        total = sum(i.weight for i in selectable)
        for item in self._catalog:
            if item.id in self._banned_ids or total <= 0:
                item.probability = 0.0
            else:
                item.probability = item.weight / total

    # -------------------- Physics -------------------- #

    def spin(self) -> bool:
        if self.is_rolling:
            return False
        self.is_rolling = True
        self.speed = INITIAL_SPEED
        self.deceleration_ratio = DECELERATION_RATIO
        self.angle = float(self._rng.randint(*ANGLE_OFFSET_RANGE))
        self.remaining_full_speed_ticks = self._rng.randint(*FULL_SPEED_TICKS_RANGE)
        return True

    def tick(self) -> None:
        if not self.items:
            return

        if self.remaining_full_speed_ticks > 0:
            self.remaining_full_speed_ticks -= 1
        else:
            self.speed *= self.deceleration_ratio
            if self.speed <= STOP_SPEED:
                self.speed = 0.0

        if self.speed > 0:
            self.angle -= self.speed
        else:
            self.is_rolling = False

    def stop(self) -> None:
        self.speed = 0.0
        self.remaining_full_speed_ticks = 0
        self.is_rolling = False

    # -------------------- Resolution -------------------- #

    def current_item(self) -> Optional[Item]:
        """Item under the pointer for the current angle."""
        items = self.items
        if not items:
            return None
        ratio = abs(math.fmod(self.angle, TWO_PI)) / TWO_PI
        prior = 0.0
        for item in items:
            cumulative = prior + item.probability
            if prior <= ratio < cumulative:
                return item
            prior = cumulative
        # Rounding can leave the ratio just past the last boundary
        return items[-1]

    def setup(self, filter: Optional[str] = None) -> Dict:
        return {
            'filter': filter,
            'items': [i.to_dict() for i in self.items],
            'bannedItems': [i.to_dict() for i in self.banned_items],
        }
