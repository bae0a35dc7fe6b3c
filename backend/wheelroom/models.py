from typing import Any, Dict, Optional


def normalize_identity(value: Any) -> Optional[str]:
    """Identities arrive as strings or numbers; compare them as strings."""
    if value is None:
        return None
    value = str(value).strip()
    return value or None


class Item:
    """A catalog entry on the wheel.

    ``probability`` is derived by the owning wheel from the weights of the
    currently unbanned items and is never taken from client input.
    """

    def __init__(self, id, name: str, weight: float = 1.0):
        weight = float(weight)
        if weight <= 0:
            raise ValueError(f"Item {id} weight must be positive, got {weight}")
        self.id = str(id)
        self.name = name
        self.weight = weight
        self.probability = 0.0

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Item':
        if 'id' not in data:
            raise ValueError(f"Item without id: {data!r}")
        weight = data.get('weight')
        if weight is None:
            weight = 1.0
        return cls(data['id'], data.get('name') or str(data['id']), weight)

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'weight': self.weight,
            'probability': self.probability,
        }

    def __repr__(self):
        return f"Item(id={self.id!r}, name={self.name!r}, weight={self.weight})"


class Player:
    """A registered identity with a live connection in one room."""

    def __init__(self, id: str, name: Optional[str], avatar: Optional[str], connection):
        self.id = id
        self.name = name or id
        self.avatar = avatar
        self.is_ready = False
        self.connection = connection

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'avatar': self.avatar,
            'isReady': self.is_ready,
        }
