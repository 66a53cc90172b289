class RelayError(Exception):
    """Base exception for status relay errors."""
    pass

class InvalidHandle(RelayError):
    def __init__(self, value=None):
        self.value = value
        super().__init__("Task ID required" if not value else f"Invalid task ID: {value!r}")

class TriggerFailed(RelayError):
    def __init__(self, task_name, reason):
        self.task_name = task_name
        self.reason = reason
        super().__init__(f"Failed to trigger task {task_name}: {reason}")

class UpstreamSubscriptionError(RelayError):
    pass

class MalformedEvent(RelayError):
    def __init__(self, payload, reason):
        self.payload = payload
        super().__init__(f"Malformed event payload: {reason}")

class IncompleteStream(RelayError):
    def __init__(self, last_status=None):
        self.last_status = last_status
        super().__init__(
            f"Status stream ended before a terminal status (last status: {last_status or 'none'})"
        )

class TransportError(RelayError):
    pass
