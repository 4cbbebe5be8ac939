import asyncio

import httpx
import pytest

from ensemble.core.enums import ErrorKind
from ensemble.core.exceptions import (
    BackendHTTPException,
    BackendRateLimitException,
    CharacterNotFoundException,
    FallbackChainExhaustedException,
    GenerationCancelledException,
)
from ensemble.services.orchestration.error_classifier import ErrorClassifier


@pytest.mark.parametrize(
    "status_code,expected",
    [
        (401, ErrorClassifier.AUTH_SUGGESTION),
        (403, ErrorClassifier.AUTH_SUGGESTION),
        (404, ErrorClassifier.ENDPOINT_SUGGESTION),
        (500, ErrorClassifier.SERVER_SUGGESTION),
        (503, ErrorClassifier.SERVER_SUGGESTION),
        (400, ""),
        (None, ""),
    ],
)
def test_suggestion_for_status(status_code, expected) -> None:
    assert ErrorClassifier.suggestion_for_status(status_code) == expected


def test_classify_exception() -> None:
    classify = ErrorClassifier.classify_exception

    assert classify(GenerationCancelledException()) == ErrorKind.CANCELLED
    assert classify(asyncio.CancelledError()) == ErrorKind.CANCELLED
    assert classify(CharacterNotFoundException("Ghost")) == ErrorKind.NOT_FOUND
    assert classify(FallbackChainExhaustedException("x", attempted=["a"])) == ErrorKind.RATE_LIMIT_EXHAUSTED
    assert classify(BackendRateLimitException("x", profile_name="p")) == (
        ErrorKind.RATE_LIMIT_EXHAUSTED
    )
    assert classify(BackendHTTPException("x", profile_name="p", status_code=401)) == (
        ErrorKind.NETWORK_ERROR
    )
    assert classify(httpx.ConnectError("boom")) == ErrorKind.NETWORK_ERROR
    assert classify(RuntimeError("unexpected")) == ErrorKind.NETWORK_ERROR
