import json

import httpx

from yggsession.backend.validator import ExternalTokenValidator


def _validator(handler) -> ExternalTokenValidator:
    return ExternalTokenValidator(
        validate_url="https://auth.test/validate",
        timeout=1.0,
        transport=httpx.MockTransport(handler),
    )


def test_no_content_response_means_valid_token() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(204)

    assert _validator(handler).validate("abc") is True
    assert len(seen) == 1
    assert seen[0].method == "POST"
    assert str(seen[0].url) == "https://auth.test/validate"
    assert json.loads(seen[0].content) == {"accessToken": "abc"}


def test_other_statuses_mean_invalid_token() -> None:
    for status in (200, 403, 500):
        assert _validator(lambda request, status=status: httpx.Response(status)).validate("abc") is False


def test_network_failure_is_reported_as_invalid_without_retry() -> None:
    calls: list[int] = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(1)
        raise httpx.ConnectError("unreachable", request=request)

    assert _validator(handler).validate("abc") is False
    assert calls == [1]


def test_timeout_is_reported_as_invalid() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("slow", request=request)

    assert _validator(handler).validate("abc") is False
