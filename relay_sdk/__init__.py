from .client import RelayClient
from .consumer import ConsumerState, ConsumerStatus, StatusConsumer, apply_event

__all__ = [
    "ConsumerState",
    "ConsumerStatus",
    "RelayClient",
    "StatusConsumer",
    "apply_event",
]
