"""Exceptions raised at the I/O boundaries of the wheel room server.

Room and wheel operations never raise for expected edge cases (duplicate
bans, spin while spinning, unknown identities); they degrade to no-ops.
Only failures talking to external services surface as exceptions.
"""


class WheelRoomException(Exception):
    """Base class for all wheel room errors"""
    pass


class BackendError(WheelRoomException):
    """The remote room/item backend was unreachable or answered garbage"""
    def __init__(self, action, detail):
        self.action = action
        self.detail = detail
        super().__init__(f"Backend action {action} failed: {detail}")


class ChatError(WheelRoomException):
    """A request to the chat platform REST API failed"""
    pass
