from urllib.parse import parse_qs

import pytest
import httpx
import respx

from autodialer.errors import InitiationError
from autodialer.initiator import CallInitiator, TwilioCallInitiator


BASE_URL = "https://api.twilio.test"
CALLS_URL = f"{BASE_URL}/2010-04-01/Accounts/AC123/Calls.json"


def make_initiator(**kwargs):
    params = dict(
        account_sid="AC123",
        auth_token="secret",
        from_number="+15125550000",
        twiml_url="https://dialer.example.com/twiml",
        base_url=BASE_URL,
    )
    params.update(kwargs)
    return TwilioCallInitiator(**params)


def form_of(request) -> dict:
    return parse_qs(request.content.decode())


class TestPlaceCall:
    @pytest.mark.asyncio
    async def test_returns_call_sid(self):
        with respx.mock:
            route = respx.post(CALLS_URL).mock(
                return_value=httpx.Response(201, json={"sid": "CA1", "status": "queued"})
            )
            initiator = make_initiator()
            assert await initiator.place("+15550100") == "CA1"
            assert route.called

    @pytest.mark.asyncio
    async def test_sends_to_from_and_twiml_url(self):
        with respx.mock:
            route = respx.post(CALLS_URL).mock(return_value=httpx.Response(201, json={"sid": "CA1"}))
            await make_initiator().place("+15550100")
            form = form_of(route.calls[0].request)
            assert form["To"] == ["+15550100"]
            assert form["From"] == ["+15125550000"]
            assert form["Url"] == ["https://dialer.example.com/twiml"]
            assert "StatusCallback" not in form

    @pytest.mark.asyncio
    async def test_status_callback_subscribes_to_call_progress(self):
        with respx.mock:
            route = respx.post(CALLS_URL).mock(return_value=httpx.Response(201, json={"sid": "CA1"}))
            initiator = make_initiator(status_callback_url="https://dialer.example.com/twilio/status")
            await initiator.place("+15550100")
            form = form_of(route.calls[0].request)
            assert form["StatusCallback"] == ["https://dialer.example.com/twilio/status"]
            assert form["StatusCallbackEvent"] == ["initiated", "ringing", "answered", "completed"]

    @pytest.mark.asyncio
    async def test_uses_basic_auth(self):
        with respx.mock:
            route = respx.post(CALLS_URL).mock(return_value=httpx.Response(201, json={"sid": "CA1"}))
            await make_initiator().place("+15550100")
            assert route.calls[0].request.headers["authorization"].startswith("Basic ")


class TestPlaceFailures:
    @pytest.mark.asyncio
    async def test_rejected_number_raises(self):
        with respx.mock:
            respx.post(CALLS_URL).mock(
                return_value=httpx.Response(400, json={"code": 21211, "message": "Invalid 'To' Phone Number"})
            )
            with pytest.raises(InitiationError) as exc_info:
                await make_initiator().place("+1")
            assert exc_info.value.number == "+1"
            assert exc_info.value.details["status_code"] == 400

    @pytest.mark.asyncio
    async def test_server_error_raises(self):
        with respx.mock:
            respx.post(CALLS_URL).mock(return_value=httpx.Response(503))
            with pytest.raises(InitiationError):
                await make_initiator().place("+15550100")

    @pytest.mark.asyncio
    async def test_transport_error_raises(self):
        with respx.mock:
            respx.post(CALLS_URL).mock(side_effect=httpx.ConnectError("connection refused"))
            with pytest.raises(InitiationError) as exc_info:
                await make_initiator().place("+15550100")
            assert isinstance(exc_info.value.__cause__, httpx.ConnectError)

    @pytest.mark.asyncio
    async def test_response_without_sid_raises(self):
        with respx.mock:
            respx.post(CALLS_URL).mock(return_value=httpx.Response(201, json={"status": "queued"}))
            with pytest.raises(InitiationError):
                await make_initiator().place("+15550100")


class TestCircuitBreaker:
    @pytest.mark.asyncio
    async def test_opens_after_three_server_errors(self):
        with respx.mock:
            route = respx.post(CALLS_URL).mock(return_value=httpx.Response(500))
            initiator = make_initiator()
            for _ in range(3):
                with pytest.raises(InitiationError):
                    await initiator.place("+15550100")
            with pytest.raises(InitiationError, match="unavailable"):
                await initiator.place("+15550101")
            assert route.call_count == 3

    @pytest.mark.asyncio
    async def test_rejected_numbers_do_not_open_circuit(self):
        with respx.mock:
            route = respx.post(CALLS_URL).mock(return_value=httpx.Response(400))
            initiator = make_initiator()
            for _ in range(4):
                with pytest.raises(InitiationError):
                    await initiator.place("+1")
            assert route.call_count == 4


class TestClientPooling:
    def test_accepts_injected_client(self):
        client = httpx.AsyncClient(base_url="https://injected.local")
        initiator = make_initiator(client=client)
        assert initiator._client is client

    @pytest.mark.asyncio
    async def test_close_cleans_up(self):
        initiator = make_initiator()
        await initiator.close()
        assert initiator._client.is_closed


@pytest.mark.asyncio
async def test_base_initiator_is_abstract():
    with pytest.raises(NotImplementedError):
        await CallInitiator().place("+15550100")
