# Connection defaults for RabbitMQ
import logging


HEARTBEAT = 600  # 10 minutes
DEFAULT_BLOCKED_CONNECTION_TIMEOUT = 300
DEFAULT_VIRTUAL_HOST = "/"
DEFAULT_PREFETCH_COUNT = 1

PERSISTENT_DELIVERY_MODE = 2
TRANSIENT_DELIVERY_MODE = 1

# Signature of a blocking call interrupted by a delivered signal (EINTR)
INTERRUPTED_SYSTEM_CALL = "interrupted system call"

logger = logging.getLogger(__name__)


def is_interrupted_system_call(wait_error):
    """
    Decide whether a failed readiness wait was only a harmless wakeup.

    A wait error with no underlying cause, an InterruptedError cause, or a cause
    whose message mentions an interrupted system call is considered benign.
    Anything else is a real transport failure.

    Args:
        wait_error: The WaitError raised by the connection

    Returns:
        bool: True if the consume loop should simply stop waiting
    """
    cause = getattr(wait_error, "cause", None)
    if cause is None:
        return True
    if isinstance(cause, InterruptedError):
        return True
    return INTERRUPTED_SYSTEM_CALL in str(cause).lower()


def log_action(action, result, level=logging.INFO, error=None, extra_fields=None):
    """
    Centralized logging function for consistent log format

    Args:
        action: The action being performed
        result: The result of the action (success, fail, etc.)
        level: Logging level (INFO, ERROR, DEBUG, etc.)
        error: Optional error information
        extra_fields: Optional dict with additional fields to log (e.g., queue, etc.)
    """
    log_parts = [
        f"action: {action}",
        f"result: {result}",
    ]

    if error:
        log_parts.append(f"error: {error}")

    if extra_fields:
        for key, value in extra_fields.items():
            log_parts.append(f"{key}: {value}")

    log_message = " | ".join(log_parts)
    logger.log(level, log_message)
