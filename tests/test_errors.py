from __future__ import annotations

import pytest

from hellostream import (
    BindError,
    ConnectError,
    HelloStreamError,
    ReceiveError,
    ResolutionError,
    SetupError,
)


@pytest.mark.parametrize(
    ("error", "exit_code"),
    [
        (ResolutionError("unresolvable"), 1),
        (ConnectError(), 2),
        (BindError("exhausted"), 2),
        (BindError("listen_failed"), 3),
        (SetupError("setsockopt"), 3),
        (ReceiveError("recv"), 1),
    ],
)
def test_exit_codes(error: HelloStreamError, exit_code: int) -> None:
    assert isinstance(error, HelloStreamError)
    assert error.exit_code == exit_code


def test_message_includes_detail() -> None:
    err = ConnectError("exhausted", "3 candidate(s) tried")
    assert err.reason == "exhausted"
    assert err.detail == "3 candidate(s) tried"
    assert str(err) == "exhausted: 3 candidate(s) tried"
    assert str(ResolutionError("no_candidates")) == "no_candidates"
