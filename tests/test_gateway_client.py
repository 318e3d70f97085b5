"""
Unit tests for the gateway HTTP client over httpx.MockTransport.
"""
import hashlib
import json
from typing import Callable, List

import httpx
import pytest
from tenacity import wait_none

from card_checkout.config import Settings
from card_checkout.domain.ports import (
    CardData,
    CreatePaymentRequest,
    GatewayCustomerData,
    GatewayStatus,
    PaymentMethodData,
)
from card_checkout.integrations.gateway_client import (
    CircuitBreaker,
    CircuitOpenError,
    GatewayClient,
    GatewayError,
    GatewayErrorType,
)

CARD = CardData(
    number="4242424242424242", cvc="123", exp_month="12", exp_year="28", card_holder="JOHN DOE"
)


def transaction_body(status: str = "APPROVED", message=None) -> dict:
    return {
        "data": {
            "id": "gw-txn-1",
            "reference": "TXN-ABCDEF12",
            "status": status,
            "status_message": message,
            "payment_method_type": "CARD",
            "amount_in_cents": 155000000,
            "currency": "COP",
        }
    }


def payment_request(customer_data: bool = True) -> CreatePaymentRequest:
    return CreatePaymentRequest(
        amount_in_cents=155000000,
        currency="COP",
        customer_email="john@example.com",
        reference="TXN-ABCDEF12",
        payment_method=PaymentMethodData(type="CARD", token="tok_test_123", installments=1),
        customer_data=GatewayCustomerData(full_name="John Doe", phone_number="+573001234567")
        if customer_data
        else None,
    )


@pytest.fixture
def requests_seen() -> List[httpx.Request]:
    return []


@pytest.fixture
def make_client(test_settings: Settings, requests_seen: List[httpx.Request]):
    def _make(
        handler: Callable[[httpx.Request], httpx.Response],
        circuit_breaker: CircuitBreaker | None = None,
    ) -> GatewayClient:
        def recording(request: httpx.Request) -> httpx.Response:
            requests_seen.append(request)
            return handler(request)

        http_client = httpx.AsyncClient(
            base_url=test_settings.gateway_api_url,
            transport=httpx.MockTransport(recording),
        )
        return GatewayClient(
            settings=test_settings,
            http_client=http_client,
            circuit_breaker=circuit_breaker,
            retry_wait=wait_none(),
        )

    return _make


class TestAcceptanceToken:
    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_success(self, make_client, requests_seen) -> None:
        client = make_client(
            lambda request: httpx.Response(
                200,
                json={
                    "data": {
                        "presigned_acceptance": {
                            "acceptance_token": "acc_123",
                            "permalink": "https://gateway.test/terms.pdf",
                            "type": "END_USER_POLICY",
                        }
                    }
                },
            )
        )

        result = await client.get_acceptance_token()

        assert result.value.acceptance_token == "acc_123"
        assert result.value.type == "END_USER_POLICY"
        assert requests_seen[0].method == "GET"
        assert requests_seen[0].url.path == "/v1/merchants/pub_test_key"

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_transient_errors_are_retried(self, make_client, requests_seen) -> None:
        client = make_client(lambda request: httpx.Response(503, json={"error": {"reason": "busy"}}))

        result = await client.get_acceptance_token()

        assert isinstance(result.error, GatewayError)
        assert str(result.error) == "Failed to get acceptance token: busy"
        assert result.error.error_type is GatewayErrorType.TRANSIENT
        assert result.error.status_code == 503
        assert len(requests_seen) == 3

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_retry_recovers(self, make_client, requests_seen) -> None:
        responses = iter(
            [
                httpx.Response(502),
                httpx.Response(
                    200,
                    json={
                        "data": {
                            "presigned_acceptance": {
                                "acceptance_token": "acc_ok",
                                "permalink": "p",
                                "type": "t",
                            }
                        }
                    },
                ),
            ]
        )
        client = make_client(lambda request: next(responses))

        result = await client.get_acceptance_token()

        assert result.value.acceptance_token == "acc_ok"
        assert len(requests_seen) == 2

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_malformed_body(self, make_client) -> None:
        client = make_client(lambda request: httpx.Response(200, json={"data": {}}))

        result = await client.get_acceptance_token()

        assert result.error.error_type is GatewayErrorType.PERMANENT
        assert str(result.error).startswith("Failed to get acceptance token:")

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_network_error(self, make_client, requests_seen) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        client = make_client(handler)

        result = await client.get_acceptance_token()

        assert str(result.error) == "Failed to get acceptance token: connection refused"
        assert len(requests_seen) == 3


class TestTokenizeCard:
    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_success(self, make_client, requests_seen) -> None:
        client = make_client(
            lambda request: httpx.Response(
                201,
                json={
                    "data": {
                        "id": "tok_test_123",
                        "brand": "VISA",
                        "last_four": "4242",
                        "expires_at": "2028-12-31T00:00:00Z",
                    }
                },
            )
        )

        result = await client.tokenize_card(CARD)

        assert result.value.token == "tok_test_123"
        assert result.value.last_four == "4242"
        request = requests_seen[0]
        assert request.url.path == "/v1/tokens/cards"
        assert request.headers["Authorization"] == "Bearer pub_test_key"
        assert json.loads(request.content) == {
            "number": "4242424242424242",
            "cvc": "123",
            "exp_month": "12",
            "exp_year": "28",
            "card_holder": "JOHN DOE",
        }

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_rejection_is_not_retried(self, make_client, requests_seen) -> None:
        client = make_client(
            lambda request: httpx.Response(422, json={"error": {"reason": "Invalid card number"}})
        )

        result = await client.tokenize_card(CARD)

        assert str(result.error) == "Card tokenization failed: Invalid card number"
        assert result.error.error_type is GatewayErrorType.PERMANENT
        assert len(requests_seen) == 1


class TestCreatePayment:
    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_request_shape_and_signature(self, make_client, requests_seen) -> None:
        client = make_client(lambda request: httpx.Response(201, json=transaction_body("PENDING")))

        result = await client.create_payment(payment_request(), "acc_123")

        assert result.value.status is GatewayStatus.PENDING
        assert result.value.transaction_id == "gw-txn-1"

        request = requests_seen[0]
        assert request.method == "POST"
        assert request.url.path == "/v1/transactions"
        assert request.headers["Authorization"] == "Bearer prv_test_key"

        body = json.loads(request.content)
        expected_signature = hashlib.sha256(
            b"TXN-ABCDEF12155000000COPtest_integrity_secret"
        ).hexdigest()
        assert body["signature"] == expected_signature
        assert body["amount_in_cents"] == 155000000
        assert body["acceptance_token"] == "acc_123"
        assert body["payment_method"] == {
            "type": "CARD",
            "token": "tok_test_123",
            "installments": 1,
        }
        assert body["customer_data"] == {
            "full_name": "John Doe",
            "phone_number": "+573001234567",
        }

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_customer_data_omitted_when_absent(self, make_client, requests_seen) -> None:
        client = make_client(lambda request: httpx.Response(201, json=transaction_body()))

        await client.create_payment(payment_request(customer_data=False), "acc_123")

        assert "customer_data" not in json.loads(requests_seen[0].content)

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_server_error_is_not_retried(self, make_client, requests_seen) -> None:
        client = make_client(lambda request: httpx.Response(500, json={"message": "oops"}))

        result = await client.create_payment(payment_request(), "acc_123")

        assert str(result.error) == 'Payment failed: {"message": "oops"}'
        assert len(requests_seen) == 1

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_rate_limit_classified(self, make_client) -> None:
        client = make_client(lambda request: httpx.Response(429, text="slow down"))

        result = await client.create_payment(payment_request(), "acc_123")

        assert result.error.error_type is GatewayErrorType.RATE_LIMIT
        assert str(result.error) == "Payment failed: slow down"


class TestGetTransaction:
    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_maps_status(self, make_client, requests_seen) -> None:
        client = make_client(
            lambda request: httpx.Response(200, json=transaction_body("DECLINED", "Insufficient funds"))
        )

        result = await client.get_transaction("gw-txn-1")

        assert result.value.status is GatewayStatus.DECLINED
        assert result.value.status_message == "Insufficient funds"
        assert requests_seen[0].url.path == "/v1/transactions/gw-txn-1"

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_unknown_status_maps_to_error(self, make_client) -> None:
        client = make_client(lambda request: httpx.Response(200, json=transaction_body("WEIRD")))

        result = await client.get_transaction("gw-txn-1")

        assert result.value.status is GatewayStatus.ERROR

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_not_found(self, make_client) -> None:
        client = make_client(
            lambda request: httpx.Response(404, json={"error": {"reason": "Not found"}})
        )

        result = await client.get_transaction("gw-missing")

        assert str(result.error) == "Failed to get transaction: Not found"


class TestCircuitBreaker:
    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_opens_after_transient_failures(self, make_client, requests_seen) -> None:
        breaker = CircuitBreaker(failure_threshold=2, timeout=60)
        client = make_client(lambda request: httpx.Response(503), circuit_breaker=breaker)

        await client.tokenize_card(CARD)
        await client.tokenize_card(CARD)
        result = await client.tokenize_card(CARD)

        assert breaker.state == "open"
        assert isinstance(result.error.original_error, CircuitOpenError)
        assert len(requests_seen) == 2

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_permanent_failures_do_not_open_circuit(self, make_client) -> None:
        breaker = CircuitBreaker(failure_threshold=1)
        client = make_client(lambda request: httpx.Response(400), circuit_breaker=breaker)

        await client.tokenize_card(CARD)

        assert breaker.state == "closed"

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_half_open_after_timeout_then_closes(self) -> None:
        breaker = CircuitBreaker(failure_threshold=1, timeout=0, success_threshold=1)
        breaker.on_failure()
        assert breaker.state == "open"
        breaker.last_failure_time -= 1

        async def probe() -> str:
            return "ok"

        assert await breaker.call(probe) == "ok"
        assert breaker.state == "closed"
