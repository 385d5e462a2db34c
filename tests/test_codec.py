import unittest

import pika

from common.utils import PERSISTENT_DELIVERY_MODE, TRANSIENT_DELIVERY_MODE
from protocol.codec import MessageCodec
from protocol.messages import Message, MessageDelivery, WireMessage


class TestMessageCodec(unittest.TestCase):

    def setUp(self):
        self.codec = MessageCodec()

    def test_encode_persistent_message(self):
        """Test persistent messages get delivery mode 2 and keep their properties"""
        message = Message(
            body=b'{"order_id": 42}',
            headers={"x-origin": "checkout"},
            content_type="application/json",
            message_id="m-1",
            app_id="shop",
            priority=5,
            timestamp=1700000000,
            correlation_id="c-1",
            reply_to="replies",
            type="order.created",
        )

        wire_message = self.codec.encode(message, persistent=True)

        self.assertEqual(wire_message.body, b'{"order_id": 42}')
        properties = wire_message.properties
        self.assertIsInstance(properties, pika.BasicProperties)
        self.assertEqual(properties.delivery_mode, PERSISTENT_DELIVERY_MODE)
        self.assertEqual(properties.headers, {"x-origin": "checkout"})
        self.assertEqual(properties.content_type, "application/json")
        self.assertEqual(properties.message_id, "m-1")
        self.assertEqual(properties.app_id, "shop")
        self.assertEqual(properties.priority, 5)
        self.assertEqual(properties.timestamp, 1700000000)
        self.assertEqual(properties.correlation_id, "c-1")
        self.assertEqual(properties.reply_to, "replies")
        self.assertEqual(properties.type, "order.created")

    def test_encode_transient_message_without_headers(self):
        """Test transient messages get delivery mode 1 and no headers table"""
        wire_message = self.codec.encode(Message(body=b"ping"), persistent=False)

        self.assertEqual(wire_message.properties.delivery_mode, TRANSIENT_DELIVERY_MODE)
        self.assertIsNone(wire_message.properties.headers)

    def test_decode_attaches_queue_and_delivery_metadata(self):
        """Test decoding keeps the delivery tag and the source queue"""
        properties = pika.BasicProperties(
            content_type="text/plain",
            headers={"attempt": 2},
            message_id="m-9",
        )
        wire_message = WireMessage(
            body=b"hello",
            properties=properties,
            delivery_tag=17,
            exchange="events",
            routing_key="order.created",
            redelivered=True,
        )

        delivery = self.codec.decode(wire_message, "orders")

        self.assertIsInstance(delivery, MessageDelivery)
        self.assertEqual(delivery.tag, 17)
        self.assertEqual(delivery.queue, "orders")
        self.assertEqual(delivery.exchange, "events")
        self.assertEqual(delivery.routing_key, "order.created")
        self.assertTrue(delivery.redelivered)
        self.assertEqual(delivery.message.body, b"hello")
        self.assertEqual(delivery.message.content_type, "text/plain")
        self.assertEqual(delivery.message.headers, {"attempt": 2})
        self.assertEqual(delivery.message.message_id, "m-9")

    def test_decode_without_properties(self):
        """Test a bare wire message decodes into a message with empty headers"""
        delivery = self.codec.decode(WireMessage(body=b"x", delivery_tag=1), "orders")

        self.assertEqual(delivery.message, Message(body=b"x"))
        self.assertEqual(delivery.message.headers, {})


if __name__ == "__main__":
    unittest.main()
