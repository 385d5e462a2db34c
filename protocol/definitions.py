from dataclasses import dataclass, field
from typing import Any, Dict


class ExchangeType:
    DIRECT = "direct"
    FANOUT = "fanout"
    TOPIC = "topic"
    HEADERS = "headers"


@dataclass(frozen=True)
class ExchangeDefinition:
    """Declarative description of an exchange"""

    name: str
    type: str = ExchangeType.DIRECT
    durable: bool = True
    auto_deleted: bool = False
    internal: bool = False
    arguments: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class QueueDefinition:
    """Declarative description of a queue"""

    name: str
    durable: bool = True
    exclusive: bool = False
    auto_deleted: bool = False
    arguments: Dict[str, Any] = field(default_factory=dict)
