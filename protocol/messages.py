from dataclasses import dataclass, field
from typing import Any, Dict, Optional


@dataclass(frozen=True)
class Message:
    """Message body plus the AMQP basic properties the application cares about"""

    body: bytes
    headers: Dict[str, Any] = field(default_factory=dict)
    content_type: Optional[str] = None
    content_encoding: Optional[str] = None
    message_id: Optional[str] = None
    app_id: Optional[str] = None
    user_id: Optional[str] = None
    priority: Optional[int] = None
    timestamp: Optional[int] = None
    expiration: Optional[str] = None
    type: Optional[str] = None
    reply_to: Optional[str] = None
    correlation_id: Optional[str] = None


@dataclass(frozen=True)
class MessagePublication:
    """A message together with the flags that control how it is published"""

    message: Message
    persistent: bool = True
    mandatory: bool = False
    immediate: bool = False


@dataclass(frozen=True)
class MessageDelivery:
    """
    A message received from a queue.

    The delivery tag is only meaningful on the channel that produced the
    delivery, so ack/reject must happen inside the same consume session.
    """

    message: Message
    tag: int
    queue: str
    exchange: str = ""
    routing_key: str = ""
    redelivered: bool = False


@dataclass(frozen=True)
class WireMessage:
    """Message as the pika client sees it: raw body plus BasicProperties"""

    body: bytes
    properties: Any = None
    delivery_tag: Optional[int] = None
    exchange: str = ""
    routing_key: str = ""
    redelivered: bool = False
