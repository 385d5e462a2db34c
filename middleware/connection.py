import functools
import logging
from collections import deque

import pika
from pika.exceptions import AMQPError

from middleware.errors import WaitError
from protocol.messages import WireMessage


class PikaConnectionProvider:
    """
    Supplies the RabbitMQ connection used by a driver.
    The connection is opened on first request and reused afterwards.
    """

    def __init__(self, middleware_config):
        """
        Args:
            middleware_config: Configuration for RabbitMQ connection
        """
        self.config = middleware_config
        self.connection = None
        self.logger = logging.getLogger(__name__)

    def get_connection(self):
        """Return the shared connection, connecting on first use"""
        if self.connection is None:
            self.connection = PikaConnection(
                self._connect(), prefetch_count=self.config.prefetch_count
            )
        return self.connection

    def _connect(self):
        """Establish connection to RabbitMQ"""
        try:
            credentials = pika.PlainCredentials(
                self.config.username, self.config.password
            )
            parameters = pika.ConnectionParameters(
                host=self.config.host,
                port=self.config.port,
                virtual_host=self.config.virtual_host,
                credentials=credentials,
                heartbeat=self.config.heartbeat,
                blocked_connection_timeout=self.config.blocked_connection_timeout,
            )
            connection = pika.BlockingConnection(parameters)
            self.logger.info(
                "action: rabbitmq_connect | result: success | host: %s | port: %s",
                self.config.host,
                self.config.port,
            )
            return connection

        except Exception as e:
            self.logger.error(f"action: rabbitmq_connect | result: fail | error: {e}")
            raise

    def close(self):
        """Close the shared connection if it was ever opened"""
        if self.connection is not None and self.connection.is_open:
            self.connection.close()
        self.connection = None


class PikaConnection:
    """
    Wraps a pika.BlockingConnection.

    Deliveries are never dispatched while waiting: every channel buffers them
    and hands them out one at a time through process_one_wait_cycle().
    """

    def __init__(self, connection, prefetch_count=None):
        self._connection = connection
        self._prefetch_count = prefetch_count
        self._channels = []
        self.logger = logging.getLogger(__name__)

    @property
    def is_open(self):
        return self._connection.is_open

    def open_channel(self):
        """Open a new channel on this connection"""
        channel = self._connection.channel()
        if self._prefetch_count:
            channel.basic_qos(prefetch_count=self._prefetch_count)

        pika_channel = PikaChannel(self, channel)
        self._channels.append(pika_channel)
        self.logger.debug("action: channel_open | result: success")
        return pika_channel

    def wait_for_activity(self, timeout=None):
        """
        Wait until deliveries are ready for dispatch.

        Args:
            timeout: Seconds to wait at most, None to wait until I/O produces events

        Returns:
            int: Number of buffered deliveries ready for dispatch (0 on timeout)

        Raises:
            WaitError: If waiting on the connection failed
        """
        if self.ready_count() > 0:
            timeout = 0
        try:
            self._connection.process_data_events(time_limit=timeout)
        except InterruptedError as e:
            raise WaitError("Interrupted while waiting on connection", cause=e) from e
        except (AMQPError, OSError) as e:
            raise WaitError(cause=e) from e
        return self.ready_count()

    def pump(self):
        """Process pending I/O without blocking"""
        self._connection.process_data_events(time_limit=0)

    def ready_count(self):
        return sum(channel.pending_count for channel in self._channels)

    def add_callback_threadsafe(self, callback):
        """Run callback on the connection's thread during its next I/O cycle"""
        self._connection.add_callback_threadsafe(callback)

    def forget(self, channel):
        if channel in self._channels:
            self._channels.remove(channel)

    def close(self):
        if self._connection.is_open:
            self._connection.close()
            self.logger.debug("action: connection_close | result: success")


class PikaChannel:
    """Wraps a pika BlockingChannel behind the operations the driver needs"""

    def __init__(self, connection, channel):
        self._connection = connection
        self._channel = channel
        self._pending = deque()
        self._callbacks = {}
        self.logger = logging.getLogger(__name__)

    @property
    def is_open(self):
        return self._channel.is_open

    @property
    def pending_count(self):
        return len(self._pending)

    def publish(self, wire_message, exchange, routing_key, mandatory=False, immediate=False):
        if immediate:
            # Removed from RabbitMQ 3.0 and unsupported by pika
            raise ValueError("The immediate publish flag is not supported")
        self._channel.basic_publish(
            exchange=exchange,
            routing_key=routing_key,
            body=wire_message.body,
            properties=wire_message.properties,
            mandatory=mandatory,
        )

    def register_consumer(self, queue, callback):
        """
        Start consuming from queue.

        Args:
            queue: Name of the queue to consume from
            callback: Called with a WireMessage for every dispatched delivery

        Returns:
            str: Consumer tag assigned by the broker
        """
        tag = self._channel.basic_consume(
            queue=queue,
            on_message_callback=self._on_message,
            auto_ack=False,
        )
        self._callbacks[tag] = callback
        return tag

    def _on_message(self, ch, method, properties, body):
        self._pending.append(
            (
                method.consumer_tag,
                WireMessage(
                    body=body,
                    properties=properties,
                    delivery_tag=method.delivery_tag,
                    exchange=method.exchange,
                    routing_key=method.routing_key,
                    redelivered=method.redelivered,
                ),
            )
        )

    def process_one_wait_cycle(self):
        """Dispatch one buffered delivery to its consumer callback

        Returns:
            int: Number of deliveries dispatched (0 or 1)
        """
        if not self._pending:
            self._connection.pump()
        if not self._pending:
            return 0

        consumer_tag, wire_message = self._pending.popleft()
        callback = self._callbacks.get(consumer_tag)
        if callback is None:
            return 0
        callback(wire_message)
        return 1

    def cancel_consumer(self, tag, no_wait=False):
        """
        Cancel a consumer registration.

        With no_wait the cancellation is handed to the connection thread and this
        call returns immediately, so it is safe from another thread or a signal handler.
        """
        if no_wait:
            self._connection.add_callback_threadsafe(
                functools.partial(self._cancel, tag)
            )
        else:
            self._cancel(tag)

    def _cancel(self, tag):
        if self._callbacks.pop(tag, None) is None:
            return
        # Undispatched deliveries stay unacked and are requeued by the broker
        self._pending = deque(item for item in self._pending if item[0] != tag)
        if self._channel.is_open:
            self._channel.basic_cancel(tag)
            self.logger.debug("action: consumer_cancel | result: success | tag: %s", tag)

    def ack(self, tag):
        self._channel.basic_ack(delivery_tag=tag)

    def reject(self, tag, requeue=True):
        self._channel.basic_reject(delivery_tag=tag, requeue=requeue)

    def declare_exchange(
        self,
        name,
        exchange_type,
        passive=False,
        durable=False,
        auto_delete=False,
        internal=False,
        arguments=None,
    ):
        self._channel.exchange_declare(
            exchange=name,
            exchange_type=exchange_type,
            passive=passive,
            durable=durable,
            auto_delete=auto_delete,
            internal=internal,
            arguments=arguments or None,
        )

    def bind_exchange(self, destination, source, routing_key=""):
        self._channel.exchange_bind(
            destination=destination, source=source, routing_key=routing_key
        )

    def declare_queue(
        self,
        name,
        passive=False,
        durable=False,
        exclusive=False,
        auto_delete=False,
        no_wait=False,
        arguments=None,
    ):
        """Declare a queue and return its name (broker generated when name is empty)"""
        self._log_no_wait("declare_queue", no_wait)
        result = self._channel.queue_declare(
            queue=name,
            passive=passive,
            durable=durable,
            exclusive=exclusive,
            auto_delete=auto_delete,
            arguments=arguments or None,
        )
        return result.method.queue

    def bind_queue(self, queue, exchange, routing_key=""):
        self._channel.queue_bind(queue=queue, exchange=exchange, routing_key=routing_key)

    def delete_exchange(self, name, if_unused=False, no_wait=False):
        self._log_no_wait("delete_exchange", no_wait)
        self._channel.exchange_delete(exchange=name, if_unused=if_unused)

    def delete_queue(self, name, if_unused=False, if_empty=False, no_wait=False):
        self._log_no_wait("delete_queue", no_wait)
        self._channel.queue_delete(queue=name, if_unused=if_unused, if_empty=if_empty)

    def _log_no_wait(self, action, no_wait):
        # BlockingChannel always waits for the broker reply
        if no_wait:
            self.logger.debug(
                "action: %s | result: in_progress | msg: no_wait ignored by blocking channel",
                action,
            )

    def close(self):
        """Close the channel and drop any undispatched deliveries"""
        self._pending.clear()
        self._callbacks.clear()
        self._connection.forget(self)
        if self._channel.is_open:
            self._channel.close()
            self.logger.debug("action: channel_close | result: success")
