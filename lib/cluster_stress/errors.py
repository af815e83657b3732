"""Error taxonomy for the stress harness.

Three families:
- transient: a member is stopped, mid-restart or unreachable. Logged, the
  worker loop continues.
- invariant violations: lost writes, members that never rejoin, backups that
  fail for reasons other than availability. The worker trips the failure
  signal and returns False.
- setup errors: the run cannot begin. Raised straight out of the harness.
"""

from redis.exceptions import ConnectionError as RedisConnectionError, TimeoutError as RedisTimeoutError


class StressError(Exception):
    """Base exception for harness errors."""
    pass


class SetupError(StressError):
    """The run could not be prepared; no worker was launched."""
    pass


class ConfigError(SetupError):
    """Invalid harness configuration."""
    pass


class ClusterStartupError(SetupError):
    """Cluster members did not all come up live."""
    pass


class MemberUnavailableError(StressError):
    """Target member is stopped, restarting or not serving."""

    def __init__(self, member_id: str, reason: str = "member unavailable"):
        super().__init__(f"{member_id}: {reason}")
        self.member_id = member_id
        self.reason = reason


class NoQuorumError(StressError):
    """A write reached fewer than a majority of core members and was not acknowledged."""

    def __init__(self, applied: int, required: int):
        super().__init__(f"write applied on {applied} core members, {required} required")
        self.applied = applied
        self.required = required


class InvariantViolation(StressError):
    """A correctness invariant of the cluster was observed broken."""
    pass


class BackupFailedError(StressError):
    """Store copy failed with a protocol or I/O error."""

    def __init__(self, address: str, reason: str):
        super().__init__(f"backup from {address} failed: {reason}")
        self.address = address
        self.reason = reason


class StressTestFailure(AssertionError):
    """Harness verdict: at least one worker did not complete successfully."""

    def __init__(self, failed_workers, reasons=None):
        self.failed_workers = list(failed_workers)
        self.reasons = list(reasons or [])
        message = f"Workers failed: {', '.join(self.failed_workers)}"
        if self.reasons:
            message += "\n" + "\n".join(self.reasons)
        super().__init__(message)


# Explicit allow-list. Anything not listed here is unrecoverable.
TRANSIENT_ERRORS = (
    MemberUnavailableError,
    NoQuorumError,
    RedisConnectionError,
    RedisTimeoutError,
)


def is_transient(error: BaseException) -> bool:
    """True if the error stems from a member being temporarily unavailable."""
    return isinstance(error, TRANSIENT_ERRORS)
