from typing import Optional


class PoolError(Exception):
    pass


class UpstreamUnavailable(PoolError):
    """The statistics source failed: network error, timeout, non-2xx or bad payload."""


class InvalidRuleSet(PoolError):
    pass


class InvalidPool(PoolError):
    pass


class PoolNotFound(PoolError):
    pass


class PickNotFound(PoolError):
    pass


class DuplicatePick(PoolError):
    def __init__(self, external_player_id: int, drafted_by: Optional[str] = None):
        self.external_player_id = external_player_id
        self.drafted_by = drafted_by
        msg = f"Player {external_player_id} has already been drafted in this pool"
        if drafted_by:
            msg += f" by {drafted_by}"
        super().__init__(msg)


class PositionLimitExceeded(PoolError):
    def __init__(self, limit: int, position: str):
        self.limit = limit
        self.position = position
        super().__init__(f"Limit of {limit} player(s) reached for position {position}")


class PermissionDenied(PoolError):
    pass


class PhaseViolation(PermissionDenied):
    pass


class NotPickOwner(PermissionDenied):
    pass


class NotPoolMember(PermissionDenied):
    pass
