from typing import List, Optional

from wheelroom.services.wheel import Wheel

RESULT_MARKER = ' <-'


def mention(identity: str) -> str:
    return f"<@{identity}>"


def join_mentions(identities: List[str]) -> str:
    """``a``, ``a and b``, ``a, b and c``."""
    mentions = [mention(i) for i in identities]
    if len(mentions) <= 1:
        return ''.join(mentions)
    return ', '.join(mentions[:-1]) + ' and ' + mentions[-1]


def format_room_message(room_id: str, host_id: Optional[str], players: List[str], frontend_url: str) -> str:
    """Invitation posted in the chat channel when a room is opened or joined."""
    message = "Who is going to spin the wheel?"
    if host_id:
        message += f" [Proposed by {mention(host_id)}]"
    message += f"\nThe wheel lives at: {frontend_url.rstrip('/')}/#{room_id}"
    if players:
        verb = 'will spin the wheel' if len(players) > 1 else 'is going to spin the wheel'
        message += f"\n{join_mentions(players)} {verb}"
    return message


def format_result_message(wheel: Wheel) -> str:
    """Unbanned items in wheel order, the winner marked with an arrow."""
    winner = wheel.current_item()
    lines = []
    for item in wheel.items:
        line = item.name
        if winner is not None and item.id == winner.id:
            line += RESULT_MARKER
        lines.append(line)
    return "The wheel has spoken:\n" + '\n'.join(lines)
