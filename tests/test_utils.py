import logging

import pytest

from common.utils import is_interrupted_system_call, log_action
from middleware.errors import WaitError


@pytest.mark.parametrize(
    "cause, expected",
    [
        (None, True),
        (InterruptedError(4, "Interrupted system call"), True),
        (OSError("stream_select(): unable to select [4]: Interrupted system call"), True),
        (ConnectionResetError(104, "Connection reset by peer"), False),
        (RuntimeError("Transport indicated EOF"), False),
    ],
)
def test_interrupted_system_call_policy(cause, expected):
    assert is_interrupted_system_call(WaitError(cause=cause)) is expected


def test_log_action_format(caplog):
    with caplog.at_level(logging.INFO, logger="common.utils"):
        log_action(
            "consume",
            "fail",
            level=logging.ERROR,
            error="boom",
            extra_fields={"queue": "orders"},
        )

    assert caplog.records[-1].levelno == logging.ERROR
    assert caplog.records[-1].getMessage() == (
        "action: consume | result: fail | error: boom | queue: orders"
    )
