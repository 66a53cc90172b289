from enum import StrEnum


class RunStatus(StrEnum):
    TRIGGERED = "TRIGGERED"   # Accepted by the job system
    EXECUTING = "EXECUTING"   # Handler is running
    COMPLETED = "COMPLETED"   # Finished with output
    FAILED = "FAILED"         # Finished with an error
    ERROR = "ERROR"           # Synthetic: the relay itself could not follow the run
    UNKNOWN = "UNKNOWN"       # Anything the relay does not recognize

    @classmethod
    def parse(cls, value) -> "RunStatus":
        if isinstance(value, cls):
            return value
        try:
            return cls(value)
        except ValueError:
            return cls.UNKNOWN

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES


TERMINAL_STATUSES = frozenset({RunStatus.COMPLETED, RunStatus.FAILED, RunStatus.ERROR})

# Position along TRIGGERED -> EXECUTING -> {COMPLETED | FAILED}.
# UNKNOWN has no position and is never treated as a regression.
LIFECYCLE_RANK = {
    RunStatus.TRIGGERED: 0,
    RunStatus.EXECUTING: 1,
    RunStatus.COMPLETED: 2,
    RunStatus.FAILED: 2,
    RunStatus.ERROR: 2,
}
