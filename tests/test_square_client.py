"""
Square HTTP client tests with the requests session mocked out.
"""

from unittest.mock import MagicMock

import pytest
import requests
import tenacity

from api.schemas import PaymentRequest
from core.logging import BusinessEvents
from core.settings import Settings
from payments.errors import SquareApiError, SquareTransportError, UpstreamError
from payments.gateway import PaymentGateway
from payments.square_client import SquareHttpClient


class MockResponse:
    """Minimal stand-in for requests.Response."""

    def __init__(self, status_code, json_data=None, text=""):
        self.status_code = status_code
        self._json_data = json_data
        self.text = text

    def json(self):
        if self._json_data is None:
            raise ValueError("No JSON object could be decoded")
        return self._json_data


def make_client(settings, *responses):
    session = MagicMock(spec=requests.Session)
    session.headers = {}
    session.request.side_effect = list(responses)
    client = SquareHttpClient(settings, session=session)
    client.retry_wait = tenacity.wait_none()
    return client, session


def test_client_sets_auth_and_version_headers(mock_settings):
    client, session = make_client(mock_settings)

    assert session.headers["Authorization"] == "Bearer EAAA_mock_token"
    assert session.headers["Square-Version"] == mock_settings.SQUARE_API_VERSION
    assert client.base == "https://connect.squareupsandbox.com"


def test_client_uses_production_base_url():
    settings = Settings(SQUARE_ACCESS_TOKEN="tok", SQUARE_ENVIRONMENT="production")
    client, _ = make_client(settings)
    assert client.base == "https://connect.squareup.com"


def test_list_locations(mock_settings):
    client, session = make_client(
        mock_settings,
        MockResponse(200, {"locations": [{"id": "L1"}, {"id": "L2"}]}),
    )

    assert client.list_locations() == [{"id": "L1"}, {"id": "L2"}]
    method, url = session.request.call_args.args
    assert method == "GET"
    assert url == "https://connect.squareupsandbox.com/v2/locations"
    assert session.request.call_args.kwargs["timeout"] == 10.0


def test_list_locations_empty_body(mock_settings):
    client, _ = make_client(mock_settings, MockResponse(200, {}))
    assert client.list_locations() == []


def test_create_order_posts_body(mock_settings):
    client, session = make_client(
        mock_settings, MockResponse(200, {"order": {"id": "order_1"}})
    )
    body = {"idempotency_key": "k1", "order": {"location_id": "L1"}}

    assert client.create_order(body) == {"id": "order_1"}
    method, url = session.request.call_args.args
    assert (method, url) == ("POST", "https://connect.squareupsandbox.com/v2/orders")
    assert session.request.call_args.kwargs["json"] == body



def test_retrieve_order(mock_settings):
    client, session = make_client(
        mock_settings,
        MockResponse(
            200,
            {
                "order": {
                    "id": "order_1",
                    "total_money": {"amount": 1000, "currency": "USD"},
                }
            },
        ),
    )

    order = client.retrieve_order("order_1")

    assert order["total_money"] == {"amount": 1000, "currency": "USD"}
    method, url = session.request.call_args.args
    assert (method, url) == (
        "GET",
        "https://connect.squareupsandbox.com/v2/orders/order_1",
    )
    assert session.request.call_args.kwargs["json"] is None


def test_configured_timeout_is_sent_with_every_request():
    settings = Settings(SQUARE_ACCESS_TOKEN="tok", SQUARE_REQUEST_TIMEOUT=2.5)
    client, session = make_client(
        settings,
        MockResponse(200, {"locations": []}),
        MockResponse(200, {"payment": {"id": "pay_1"}}),
    )

    client.list_locations()
    client.create_payment({"idempotency_key": "k1"})

    timeouts = [c.kwargs["timeout"] for c in session.request.call_args_list]
    assert timeouts == [2.5, 2.5]

def test_api_error_is_parsed_and_not_retried(mock_settings):
    client, session = make_client(
        mock_settings,
        MockResponse(
            400,
            {
                "errors": [
                    {
                        "category": "INVALID_REQUEST_ERROR",
                        "code": "MISSING_REQUIRED_PARAMETER",
                        "detail": "Missing required parameter.",
                        "field": "source_id",
                    }
                ]
            },
        ),
    )

    with pytest.raises(SquareApiError) as exc_info:
        client.create_payment({"idempotency_key": "k1"})

    err = exc_info.value
    assert err.status_code == 400
    assert str(err) == "Missing required parameter."
    assert err.errors[0].code == "MISSING_REQUIRED_PARAMETER"
    assert err.errors[0].field == "source_id"
    assert session.request.call_count == 1


def test_api_error_without_json_body(mock_settings):
    client, _ = make_client(mock_settings, MockResponse(404, None, "not found"))

    with pytest.raises(SquareApiError) as exc_info:
        client.list_locations()

    assert exc_info.value.errors == []
    assert "404" in str(exc_info.value)



def test_success_status_with_invalid_json_is_api_error(mock_settings):
    client, session = make_client(
        mock_settings, MockResponse(200, None, "<html>Bad gateway</html>")
    )

    with pytest.raises(SquareApiError) as exc_info:
        client.list_locations()

    assert exc_info.value.status_code == 200
    assert exc_info.value.errors == []
    assert str(exc_info.value) == "Invalid JSON from Square"
    assert session.request.call_count == 1


@pytest.mark.asyncio
async def test_invalid_json_payment_response_is_reported_as_failure(
    mock_settings, log_events
):
    client, _ = make_client(mock_settings, MockResponse(201, None, "truncated"))
    gateway = PaymentGateway(client, mock_settings)
    req = PaymentRequest(nonce="cnon:card-nonce-ok", orderId="o1", amount=100)

    with pytest.raises(UpstreamError) as exc_info:
        await gateway.process_payment(req)

    assert exc_info.value.upstream_status == 201
    failures = [e for e in log_events if e["event"] == BusinessEvents.PAYMENT_FAILURE]
    assert failures[-1]["error"] == "Invalid JSON from Square"

def test_server_error_is_retried_with_same_idempotency_key(mock_settings):
    client, session = make_client(
        mock_settings,
        MockResponse(503, {"errors": [{"category": "API_ERROR"}]}),
        MockResponse(200, {"payment": {"id": "pay_1", "status": "COMPLETED"}}),
    )
    body = {"idempotency_key": "same-key", "source_id": "cnon:ok"}

    assert client.create_payment(body)["id"] == "pay_1"
    assert session.request.call_count == 2
    sent = [c.kwargs["json"]["idempotency_key"] for c in session.request.call_args_list]
    assert sent == ["same-key", "same-key"]


def test_transport_errors_exhaust_retries(mock_settings):
    client, session = make_client(
        mock_settings,
        requests.ConnectionError("reset"),
        requests.Timeout("slow"),
        requests.ConnectionError("reset again"),
    )

    with pytest.raises(SquareTransportError):
        client.create_order({"idempotency_key": "k1"})

    assert session.request.call_count == mock_settings.SQUARE_MAX_RETRIES


def test_connection_check(mock_settings):
    client, _ = make_client(
        mock_settings,
        MockResponse(200, {"locations": []}),
        MockResponse(401, {"errors": [{"code": "UNAUTHORIZED"}]}),
    )

    assert client.test_connection() is True
    assert client.test_connection() is False
