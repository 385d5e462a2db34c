# pylint: disable=broad-exception-caught
import logging
import threading
from time import monotonic

from common.utils import is_interrupted_system_call, log_action
from middleware.errors import (
    AckError,
    ConsumeError,
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
from protocol.codec import MessageCodec


class AmqpDriver:
    """
    AMQP driver on top of a connection provider.

    Follows standard pattern:
    1. Connection is requested from the provider on first use and kept for the driver lifetime
    2. A single channel is opened lazily and reused until it is closed
    3. consume() runs a polling loop that can be stopped from another thread
    4. Every transport failure is re-raised as a DriverError subclass
    """

    def __init__(self, connection_provider, codec=None, interruption_policy=None):
        """
        Args:
            connection_provider: Object with get_connection() returning a Connection
            codec: MessageCodec used to encode publications and decode deliveries
            interruption_policy: Predicate deciding whether a WaitError is a benign wakeup
        """
        self.connection_provider = connection_provider
        self.codec = codec or MessageCodec()
        self.interruption_policy = interruption_policy or is_interrupted_system_call
        self.connection = None
        self.channel = None
        self.current_tag = None
        self._stopped = threading.Event()
        self.logger = logging.getLogger(__name__)

    @property
    def is_stopped(self):
        return self._stopped.is_set()

    def get_connection(self):
        if self.connection is None:
            self.connection = self.connection_provider.get_connection()
        return self.connection

    def get_channel(self):
        """Return the current channel, opening a new one if there is none"""
        if self.channel is None or not self.channel.is_open:
            self.channel = self.get_connection().open_channel()
        return self.channel

    def close_channel(self):
        """Close the current channel; the next operation opens a fresh one"""
        channel, self.channel = self.channel, None
        if channel is not None:
            channel.close()

    def close(self):
        """Close the driver's channel. The connection belongs to the provider."""
        self.close_channel()

    def publish(self, publication, exchange, routing_key=""):
        try:
            wire_message = self.codec.encode(
                publication.message, publication.persistent
            )
            self.get_channel().publish(
                wire_message,
                exchange,
                routing_key,
                mandatory=publication.mandatory,
                immediate=publication.immediate,
            )
            self.logger.debug(
                "action: publish | result: success | exchange: %s | routing_key: %s",
                exchange,
                routing_key,
            )
        except Exception as e:
            self.logger.error(
                f"action: publish | result: fail | "
                f"exchange: {exchange} | routing_key: {routing_key} | error: {e}"
            )
            raise PublishError("Basic publish error", e) from e

    def consume(self, queue, callback, idle_timeout, timeout=None):
        """
        Consume messages from queue until there is nothing more to do.

        The loop ends when callback returns a falsy value, stop() is called,
        the total timeout elapses or no activity happens within idle_timeout.

        Args:
            queue: Name of the queue to consume from
            callback: Called with every MessageDelivery, returns True to keep consuming
            idle_timeout: Seconds to wait for the next message, 0 waits forever
            timeout: Optional total duration of the consume session in seconds

        Raises:
            ConsumeError: On any transport or callback failure
        """
        # Zero idle timeout means no idle cutoff, while a zero wait means "do not block"
        idle_timeout = idle_timeout or None
        active = True

        def on_message(wire_message):
            nonlocal active
            if not callback(self.codec.decode(wire_message, queue)):
                active = False

        try:
            channel = self.get_channel()
            self.current_tag = channel.register_consumer(queue, on_message)
            self.logger.info(
                "action: start_consuming | result: in_progress | queue: %s | tag: %s",
                queue,
                self.current_tag,
            )

            deadline = monotonic() + timeout if timeout else None
            wait_timeout = idle_timeout
            while active:
                if self.is_stopped:
                    break
                if deadline is not None:
                    remaining = deadline - monotonic()
                    wait_timeout = (
                        remaining if idle_timeout is None else min(remaining, idle_timeout)
                    )
                    if wait_timeout <= 0:
                        break

                try:
                    ready = self.get_connection().wait_for_activity(wait_timeout)
                except WaitError as e:
                    if self.interruption_policy(e):
                        log_action(
                            "wait_for_activity",
                            "interrupted",
                            error=e.cause,
                            extra_fields={"queue": queue},
                        )
                        break
                    raise

                if self.is_stopped:
                    break
                if ready > 0:
                    channel.process_one_wait_cycle()
                else:
                    break

            self._cancel_consumer(channel)
            self.close_channel()
            self.logger.info("action: stop_consuming | result: success | queue: %s", queue)

        except Exception as e:
            self.logger.error(
                f"action: consume | result: fail | queue: {queue} | error: {e}"
            )
            self._cleanup_after_failure()
            raise ConsumeError("Basic consume error", e) from e

    def _cancel_consumer(self, channel):
        tag, self.current_tag = self.current_tag, None
        if tag is not None:
            channel.cancel_consumer(tag)

    def _cleanup_after_failure(self):
        """Best-effort cancel and close so the next operation starts from a clean channel"""
        channel = self.channel
        if channel is None:
            self.current_tag = None
            return
        try:
            self._cancel_consumer(channel)
        except Exception as e:
            log_action("consumer_cancel", "fail", logging.WARNING, error=e)
        finally:
            self.current_tag = None
        try:
            self.close_channel()
        except Exception as e:
            log_action("channel_close", "fail", logging.WARNING, error=e)

    def ack(self, delivery):
        try:
            self.get_channel().ack(delivery.tag)
        except Exception as e:
            self.logger.error(
                f"action: ack | result: fail | tag: {delivery.tag} | error: {e}"
            )
            raise AckError("Basic ack error", e) from e

    def reject(self, delivery):
        try:
            self.get_channel().reject(delivery.tag, requeue=True)
        except Exception as e:
            self.logger.error(
                f"action: reject | result: fail | tag: {delivery.tag} | error: {e}"
            )
            raise RejectError("Basic reject error", e) from e

    def declare_exchange(self, exchange):
        try:
            self.get_channel().declare_exchange(
                exchange.name,
                exchange.type,
                passive=False,
                durable=exchange.durable,
                auto_delete=exchange.auto_deleted,
                internal=exchange.internal,
                arguments=exchange.arguments,
            )
            self.logger.info(
                "action: declare_exchange | result: success | exchange: %s", exchange.name
            )
        except Exception as e:
            self.logger.error(
                f"action: declare_exchange | result: fail | exchange: {exchange.name} | error: {e}"
            )
            raise ExchangeDeclareError(
                f'Exchange declare error "{exchange.name}"', e
            ) from e

    def bind_exchange(self, target, source, routing_key=""):
        try:
            self.get_channel().bind_exchange(target, source, routing_key)
            self.logger.info(
                "action: bind_exchange | result: success | "
                "source: %s | target: %s | routing_key: %s",
                source,
                target,
                routing_key,
            )
        except Exception as e:
            self.logger.error(
                f"action: bind_exchange | result: fail | "
                f"source: {source} | target: {target} | routing_key: {routing_key} | error: {e}"
            )
            raise ExchangeBindError(
                f'Exchange bind error "{source}":"{routing_key}"->"{target}"', e
            ) from e

    def declare_queue(self, queue):
        """Declare a queue and return the name the broker reports for it"""
        try:
            name = self.get_channel().declare_queue(
                queue.name,
                passive=False,
                durable=queue.durable,
                exclusive=queue.exclusive,
                auto_delete=queue.auto_deleted,
                no_wait=False,
                arguments=queue.arguments,
            )
            self.logger.info("action: declare_queue | result: success | queue: %s", queue.name)
            return name
        except Exception as e:
            self.logger.error(
                f"action: declare_queue | result: fail | queue: {queue.name} | error: {e}"
            )
            raise QueueDeclareError(f'Queue declare error "{queue.name}"', e) from e

    def bind_queue(self, queue, exchange, routing_key=""):
        try:
            self.get_channel().bind_queue(queue, exchange, routing_key)
            self.logger.info(
                f"action: bind_queue | result: success | "
                f"queue: {queue} | exchange: {exchange} | routing_key: {routing_key}"
            )
        except Exception as e:
            self.logger.error(
                f"action: bind_queue | result: fail | "
                f"queue: {queue} | exchange: {exchange} | routing_key: {routing_key} | error: {e}"
            )
            raise QueueBindError(
                f'Queue bind error "{exchange}":"{routing_key}"->"{queue}"', e
            ) from e

    def delete_exchange(self, exchange, if_unused=False, no_wait=False):
        try:
            self.get_channel().delete_exchange(
                exchange.name, if_unused=if_unused, no_wait=no_wait
            )
            self.logger.info(
                "action: delete_exchange | result: success | exchange: %s", exchange.name
            )
        except Exception as e:
            self.logger.error(
                f"action: delete_exchange | result: fail | exchange: {exchange.name} | error: {e}"
            )
            raise ExchangeDeleteError(
                f'Exchange delete error "{exchange.name}"', e
            ) from e

    def delete_queue(self, queue, if_unused=False, if_empty=False, no_wait=False):
        try:
            self.get_channel().delete_queue(
                queue.name, if_unused=if_unused, if_empty=if_empty, no_wait=no_wait
            )
            self.logger.info("action: delete_queue | result: success | queue: %s", queue.name)
        except Exception as e:
            self.logger.error(
                f"action: delete_queue | result: fail | queue: {queue.name} | error: {e}"
            )
            raise QueueDeleteError(f'Queue delete error "{queue.name}"', e) from e

    def stop(self):
        """
        Stop consuming for good.

        Safe to call from another thread or a signal handler: it only sets the
        stop flag and asks the channel for a no-wait cancellation.
        """
        self._stopped.set()
        channel, tag = self.channel, self.current_tag
        if channel is not None and tag is not None:
            try:
                channel.cancel_consumer(tag, no_wait=True)
            except Exception as e:
                # Connection already closed or closing; the broker drops the consumer with it
                log_action("consumer_cancel", "fail", logging.WARNING, error=e)
        log_action("stop", "success", extra_fields={"tag": tag})
