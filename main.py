#!/usr/bin/env python3

from common.config import initialize_config
from middleware import AmqpDriver, DriverError, PikaConnectionProvider
from protocol.definitions import QueueDefinition
import logging
import signal
import sys


def initialize_log(logging_level):
    """
    Python custom logging initialization

    Current timestamp is added to be able to identify in docker
    compose logs the date when the log has arrived
    """
    logging.basicConfig(
        format="%(asctime)s %(levelname)-8s %(message)s",
        level=logging_level,
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def install_signal_handlers(driver):
    """Stop the driver's consume loop on SIGTERM and SIGINT"""

    def _signal_handler(signum, frame):
        logging.info(
            "action: shutdown | result: in_progress | msg: received signal %s", signum
        )
        driver.stop()

    signal.signal(signal.SIGTERM, _signal_handler)
    signal.signal(signal.SIGINT, _signal_handler)


def make_delivery_handler(driver):
    """Build a handler that logs and acknowledges every delivery"""

    def _handle(delivery):
        logging.info(
            "action: message_received | result: success | queue: %s | tag: %s | "
            "routing_key: %s | body_length: %s",
            delivery.queue,
            delivery.tag,
            delivery.routing_key,
            len(delivery.message.body),
        )
        driver.ack(delivery)
        return True

    return _handle


def run(driver_config, middleware_config):
    provider = PikaConnectionProvider(middleware_config)
    driver = AmqpDriver(provider)
    install_signal_handlers(driver)

    try:
        driver.declare_queue(QueueDefinition(driver_config.queue))
        driver.consume(
            driver_config.queue,
            make_delivery_handler(driver),
            driver_config.idle_timeout,
            driver_config.total_timeout,
        )
    finally:
        driver.close()
        provider.close()


def main():
    try:
        # Initialize configuration
        driver_config, middleware_config = initialize_config()

        # Initialize logging
        initialize_log(driver_config.logging_level)

        # Log config parameters at the beginning of the program to verify the configuration
        # of the component
        logging.debug(
            "action: config | result: success | host: %s | port: %s | queue: %s | "
            "idle_timeout: %s | total_timeout: %s | logging_level: %s",
            middleware_config.host,
            middleware_config.port,
            driver_config.queue,
            driver_config.idle_timeout,
            driver_config.total_timeout,
            driver_config.logging_level,
        )

        run(driver_config, middleware_config)
        logging.info("action: consumer_main | result: success")

    except KeyError as e:
        print(f"Configuration Error: {e}", file=sys.stderr)
    except ValueError as e:
        print(f"Configuration Parse Error: {e}", file=sys.stderr)
    except DriverError as e:
        logging.error(
            "action: consumer_main | result: fail | kind: %s | error: %s | cause: %s",
            e.kind.value,
            e,
            e.cause,
        )
    except Exception as e:
        logging.error("action: consumer_main | result: fail | error: %s", e)


if __name__ == "__main__":
    main()
