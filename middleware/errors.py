from enum import Enum


class DriverErrorKind(Enum):
    PUBLISH_FAILED = "publish_failed"
    CONSUME_FAILED = "consume_failed"
    ACK_FAILED = "ack_failed"
    REJECT_FAILED = "reject_failed"
    EXCHANGE_DECLARE_FAILED = "exchange_declare_failed"
    EXCHANGE_BIND_FAILED = "exchange_bind_failed"
    EXCHANGE_DELETE_FAILED = "exchange_delete_failed"
    QUEUE_DECLARE_FAILED = "queue_declare_failed"
    QUEUE_BIND_FAILED = "queue_bind_failed"
    QUEUE_DELETE_FAILED = "queue_delete_failed"


class DriverError(Exception):
    """Base class for every failure surfaced by the AMQP driver"""

    kind = None

    def __init__(self, message, cause=None):
        super().__init__(message)
        self.cause = cause


class PublishError(DriverError):
    kind = DriverErrorKind.PUBLISH_FAILED


class ConsumeError(DriverError):
    kind = DriverErrorKind.CONSUME_FAILED


class AckError(DriverError):
    kind = DriverErrorKind.ACK_FAILED


class RejectError(DriverError):
    kind = DriverErrorKind.REJECT_FAILED


class ExchangeDeclareError(DriverError):
    kind = DriverErrorKind.EXCHANGE_DECLARE_FAILED


class ExchangeBindError(DriverError):
    kind = DriverErrorKind.EXCHANGE_BIND_FAILED


class ExchangeDeleteError(DriverError):
    kind = DriverErrorKind.EXCHANGE_DELETE_FAILED


class QueueDeclareError(DriverError):
    kind = DriverErrorKind.QUEUE_DECLARE_FAILED


class QueueBindError(DriverError):
    kind = DriverErrorKind.QUEUE_BIND_FAILED


class QueueDeleteError(DriverError):
    kind = DriverErrorKind.QUEUE_DELETE_FAILED


class WaitError(Exception):
    """Raised by a connection when waiting for I/O readiness fails.

    cause holds the underlying error, or None when no detail is available.
    """

    def __init__(self, message="Error while waiting on connection", cause=None):
        super().__init__(message)
        self.cause = cause
