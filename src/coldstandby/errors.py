"""Domain errors for coldstandby."""


class StandbyError(RuntimeError):
    """Raised when the replication run cannot continue safely."""
