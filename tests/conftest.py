import os
import uuid
from collections import deque

import pytest

from middleware.driver import AmqpDriver
from protocol.messages import WireMessage


# --------- Fakes for the connection and channel capabilities ----------


class FakeChannel:
    """
    Records every call made by the driver.
    Set errors[method_name] to make that method raise.
    """

    def __init__(self, connection, consumer_tag="ctag-1"):
        self.connection = connection
        self.consumer_tag = consumer_tag
        self.calls = []
        self.errors = {}
        self.is_open = True
        self.callback = None

    def _record(self, name, *args, **kwargs):
        self.calls.append((name, args, kwargs))
        if name in self.errors:
            raise self.errors[name]

    def calls_to(self, name):
        return [call for call in self.calls if call[0] == name]

    def publish(self, wire_message, exchange, routing_key, mandatory=False, immediate=False):
        self._record(
            "publish",
            wire_message,
            exchange,
            routing_key,
            mandatory=mandatory,
            immediate=immediate,
        )

    def register_consumer(self, queue, callback):
        self._record("register_consumer", queue)
        self.callback = callback
        return self.consumer_tag

    def process_one_wait_cycle(self):
        self._record("process_one_wait_cycle")
        if not self.connection.pending:
            return 0
        self.callback(self.connection.pending.popleft())
        return 1

    def cancel_consumer(self, tag, no_wait=False):
        self._record("cancel_consumer", tag, no_wait=no_wait)

    def ack(self, tag):
        self._record("ack", tag)

    def reject(self, tag, requeue=True):
        self._record("reject", tag, requeue=requeue)

    def declare_exchange(self, name, exchange_type, **kwargs):
        self._record("declare_exchange", name, exchange_type, **kwargs)

    def bind_exchange(self, destination, source, routing_key=""):
        self._record("bind_exchange", destination, source, routing_key)

    def declare_queue(self, name, **kwargs):
        self._record("declare_queue", name, **kwargs)
        return name

    def bind_queue(self, queue, exchange, routing_key=""):
        self._record("bind_queue", queue, exchange, routing_key)

    def delete_exchange(self, name, **kwargs):
        self._record("delete_exchange", name, **kwargs)

    def delete_queue(self, name, **kwargs):
        self._record("delete_queue", name, **kwargs)

    def close(self):
        self._record("close")
        self.is_open = False


class FakeConnection:
    """
    Scripted connection.

    wait_results holds what successive wait_for_activity() calls produce: an int,
    an exception to raise, or a callable returning either. When the script is
    exhausted the number of pending messages is returned.
    """

    def __init__(self):
        self.channels = []
        self.pending = deque()
        self.wait_results = deque()
        self.wait_timeouts = []

    def open_channel(self):
        channel = FakeChannel(self, consumer_tag=f"ctag-{len(self.channels) + 1}")
        self.channels.append(channel)
        return channel

    def wait_for_activity(self, timeout=None):
        self.wait_timeouts.append(timeout)
        result = self.wait_results.popleft() if self.wait_results else len(self.pending)
        if callable(result):
            result = result()
        if isinstance(result, BaseException):
            raise result
        return result

    def deliver(self, *wire_messages):
        self.pending.extend(wire_messages)


class FakeConnectionProvider:
    def __init__(self, connection):
        self.connection = connection
        self.requests = 0
        self.closed = False

    def get_connection(self):
        self.requests += 1
        return self.connection

    def close(self):
        self.closed = True


def make_wire_message(tag, body=b"payload", routing_key="", exchange=""):
    return WireMessage(
        body=body,
        properties=None,
        delivery_tag=tag,
        exchange=exchange,
        routing_key=routing_key,
    )


@pytest.fixture
def connection():
    return FakeConnection()


@pytest.fixture
def provider(connection):
    return FakeConnectionProvider(connection)


@pytest.fixture
def driver(provider):
    return AmqpDriver(provider)


# --------- Broker integration helpers ----------


@pytest.fixture(scope="session")
def host():
    return os.environ.get("MW_HOST", "localhost")


def unique_name(prefix: str) -> str:
    return f"{prefix}-{uuid.uuid4().hex[:10]}"
