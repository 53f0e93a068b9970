"""
Error kinds raised by the core. Every rejected operation raises one of these
before any mutation, so a failed write leaves no trace in the ledger.
"""


class TraceChainError(Exception):
    kind = "Error"

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class Unauthorized(TraceChainError):
    """Caller lacks the role, verification or admin standing the action needs."""
    kind = "Unauthorized"


class NotAdmin(Unauthorized):
    kind = "NotAdmin"


class NotFound(TraceChainError):
    kind = "NotFound"


class NotRegistered(NotFound):
    kind = "NotRegistered"


class AlreadyRegistered(TraceChainError):
    kind = "AlreadyRegistered"


class AlreadyVerified(TraceChainError):
    kind = "AlreadyVerified"


class InvalidInput(TraceChainError):
    kind = "InvalidInput"


class InvalidRole(InvalidInput):
    kind = "InvalidRole"


class InvalidTransition(TraceChainError):
    """Requested status is not the single legal successor of the current one."""
    kind = "InvalidTransition"

    def __init__(self, current, requested):
        self.current = current
        self.requested = requested
        super().__init__(f"cannot move product from {current.value} to {requested.value}")
