import pytest

from cardforge.errors import (
    ErrorCode,
    GenerationFailedError,
    HTTPStatusError,
    InputValidationError,
    MalformedResponseError,
    TransportConnectionError,
    WatchdogTimeoutError,
    classify,
    classify_status,
    network_error,
    timeout_error,
    unknown_error,
)


@pytest.mark.parametrize(
    "status, code, retryable",
    [
        (504, ErrorCode.GATEWAY_TIMEOUT, True),
        (401, ErrorCode.AUTH, False),
        (403, ErrorCode.AUTH, False),
        (400, ErrorCode.VALIDATION, False),
        (404, ErrorCode.UNKNOWN, True),
        (500, ErrorCode.UNKNOWN, True),
        (502, ErrorCode.UNKNOWN, True),
    ],
)
def test_classify_status(status, code, retryable):
    error = classify_status(status)

    assert error.code is code
    assert error.retryable is retryable
    assert error.title
    assert error.message


def test_only_auth_and_validation_are_not_retryable():
    for code in ErrorCode:
        error = {
            ErrorCode.TIMEOUT: timeout_error(),
            ErrorCode.GATEWAY_TIMEOUT: classify_status(504),
            ErrorCode.NETWORK: network_error(),
            ErrorCode.AUTH: classify_status(401),
            ErrorCode.VALIDATION: classify_status(400),
            ErrorCode.UNKNOWN: unknown_error(),
        }[code]
        assert error.retryable is (code not in {ErrorCode.AUTH, ErrorCode.VALIDATION})


def test_validation_and_unknown_carry_server_detail():
    assert classify_status(400, "Description too short").message == "Description too short"
    assert classify_status(500, "Server returned 500: Internal Server Error").message == (
        "Server returned 500: Internal Server Error"
    )
    assert classify_status(400).message == "Please check your input and try again."


def test_classify_transport_failures():
    assert classify(WatchdogTimeoutError("watchdog")).code is ErrorCode.TIMEOUT
    assert classify(HTTPStatusError(504)).code is ErrorCode.GATEWAY_TIMEOUT
    assert classify(TransportConnectionError("refused")).code is ErrorCode.NETWORK
    assert classify(ConnectionResetError("reset")).code is ErrorCode.NETWORK
    assert classify(MalformedResponseError("invalid JSON response")).code is ErrorCode.UNKNOWN
    assert classify(InputValidationError({"name": "required"})).code is ErrorCode.VALIDATION


def test_classify_unexpected_exception_uses_its_message():
    error = classify(RuntimeError("kaboom"))

    assert error.code is ErrorCode.UNKNOWN
    assert error.message == "kaboom"
    assert classify(RuntimeError()).message == "An unexpected error occurred. Please try again."


def test_classify_unwraps_generation_failures():
    failure = GenerationFailedError(timeout_error())

    assert classify(failure) == timeout_error()
    assert str(failure) == timeout_error().message


def test_error_serialises_code_as_string():
    payload = timeout_error().to_dict()

    assert payload == {
        "code": "TIMEOUT",
        "title": "Request Timeout",
        "message": "The request took too long to complete. Please try again.",
        "retryable": True,
    }


def test_input_validation_error_lists_fields():
    error = InputValidationError({"name": "required", "description": "required"})

    assert error.errors == {"name": "required", "description": "required"}
    assert str(error) == "invalid input: description, name"
