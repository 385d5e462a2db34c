import pika

from common.utils import PERSISTENT_DELIVERY_MODE, TRANSIENT_DELIVERY_MODE
from protocol.messages import Message, MessageDelivery, WireMessage


# Message attributes that map one to one onto pika.BasicProperties
PROPERTY_FIELDS = (
    "content_type",
    "content_encoding",
    "message_id",
    "app_id",
    "user_id",
    "priority",
    "timestamp",
    "expiration",
    "type",
    "reply_to",
    "correlation_id",
)


class MessageCodec:
    """Converts between domain messages and pika wire messages"""

    def encode(self, message, persistent):
        """Build the wire message for a domain message

        Args:
            message: Message to publish
            persistent: Whether the broker should store the message on disk

        Returns:
            WireMessage: body plus pika.BasicProperties
        """
        properties = pika.BasicProperties(
            delivery_mode=(
                PERSISTENT_DELIVERY_MODE if persistent else TRANSIENT_DELIVERY_MODE
            ),
            headers=dict(message.headers) if message.headers else None,
            **{name: getattr(message, name) for name in PROPERTY_FIELDS},
        )
        return WireMessage(body=message.body, properties=properties)

    def decode(self, wire_message, queue):
        """Build a delivery handle for a message received from queue"""
        properties = wire_message.properties
        values = {}
        if properties is not None:
            values = {name: getattr(properties, name, None) for name in PROPERTY_FIELDS}
            values["headers"] = dict(properties.headers or {})

        body = wire_message.body
        if isinstance(body, str):
            body = body.encode("utf-8")

        return MessageDelivery(
            message=Message(body=bytes(body), **values),
            tag=wire_message.delivery_tag,
            queue=queue,
            exchange=wire_message.exchange,
            routing_key=wire_message.routing_key,
            redelivered=wire_message.redelivered,
        )
