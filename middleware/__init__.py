"""
AMQP driver for the event transport layer.

This package adapts broker operations onto a RabbitMQ connection:
- AmqpDriver: publish, consume, ack/reject and topology operations over one lazily opened channel
- PikaConnectionProvider: opens and caches the pika.BlockingConnection used by the driver
- DriverError: base class of every failure the driver surfaces

Usage:
    # Setup (once per driver)
    provider = PikaConnectionProvider(middleware_config)
    driver = AmqpDriver(provider)
    driver.declare_queue(QueueDefinition("orders"))

    # Publishing:
    driver.publish(MessagePublication(Message(b"payload")), "events", "order.created")

    # Consuming (blocking, stoppable from another thread with driver.stop()):
    def handle(delivery):
        driver.ack(delivery)
        return True

    driver.consume("orders", handle, idle_timeout=5)
"""

from .connection import PikaChannel, PikaConnection, PikaConnectionProvider
from .driver import AmqpDriver
from .errors import (
    AckError,
    ConsumeError,
    DriverError,
    DriverErrorKind,
    ExchangeBindError,
    ExchangeDeclareError,
    ExchangeDeleteError,
    PublishError,
    QueueBindError,
    QueueDeclareError,
    QueueDeleteError,
    RejectError,
    WaitError,
)

__all__ = [
    "AmqpDriver",
    "PikaConnectionProvider",
    "PikaConnection",
    "PikaChannel",
    "DriverError",
    "DriverErrorKind",
    "PublishError",
    "ConsumeError",
    "AckError",
    "RejectError",
    "ExchangeDeclareError",
    "ExchangeBindError",
    "ExchangeDeleteError",
    "QueueDeclareError",
    "QueueBindError",
    "QueueDeleteError",
    "WaitError",
]
