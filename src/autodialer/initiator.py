import httpx
import logging

from autodialer.circuit_breaker import CircuitBreaker
from autodialer.errors import InitiationError

logger = logging.getLogger(__name__)

TWILIO_API_BASE_URL = "https://api.twilio.com"
STATUS_CALLBACK_EVENTS = ("initiated", "ringing", "answered", "completed")


class CallInitiator:
    """Asks the telephony provider to place a call.

    place() returns as soon as the provider has accepted the request; what
    happens to the call afterwards arrives later as telephony events.
    """

    async def place(self, number: str) -> str:
        """Start a call to number and return the provider's call id.

        Raises InitiationError when the call could not even be started.
        """
        raise NotImplementedError

    async def close(self) -> None:
        pass


class TwilioCallInitiator(CallInitiator):
    """Places calls through the Twilio REST API.

    Wraps each request with a circuit breaker: after 3 consecutive failures,
    requests are skipped for 60s and place() fails immediately so the
    sequencer moves through the queue instead of hanging on a dead API.
    """

    def __init__(
        self,
        account_sid: str,
        auth_token: str,
        from_number: str,
        twiml_url: str,
        status_callback_url: str = "",
        base_url: str = TWILIO_API_BASE_URL,
        timeout: float = 10.0,
        client: httpx.AsyncClient | None = None,
    ):
        self.account_sid = account_sid
        self.from_number = from_number
        self.twiml_url = twiml_url
        self.status_callback_url = status_callback_url
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._circuit = CircuitBreaker(
            failure_threshold=3,
            cooldown_seconds=60.0,
            label="Twilio calls API",
        )
        if client is not None:
            self._client = client
        else:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                auth=(account_sid, auth_token),
                timeout=self.timeout,
            )

    @property
    def calls_path(self) -> str:
        return f"/2010-04-01/Accounts/{self.account_sid}/Calls.json"

    async def close(self):
        """Close the shared HTTP client. Call on shutdown."""
        await self._client.aclose()

    def _form(self, number: str) -> dict:
        form = {"To": number, "From": self.from_number, "Url": self.twiml_url}
        if self.status_callback_url:
            form["StatusCallback"] = self.status_callback_url
            form["StatusCallbackEvent"] = list(STATUS_CALLBACK_EVENTS)
        return form

    async def place(self, number: str) -> str:
        if not self._circuit.should_try():
            logger.warning("Twilio circuit breaker open, not dialing %s", number)
            raise InitiationError("Twilio calls API unavailable", number=number)
        try:
            resp = await self._client.post(self.calls_path, data=self._form(number))
            resp.raise_for_status()
            call_sid = resp.json()["sid"]
        except httpx.HTTPStatusError as e:
            # 4xx rejects this number only; the API itself is up
            if e.response.status_code >= 500:
                self._circuit.record_failure()
            logger.error("Twilio refused call to %s: %s %s", number, e.response.status_code, e.response.text)
            raise InitiationError(
                f"Twilio returned {e.response.status_code}",
                number=number,
                details={"status_code": e.response.status_code, "body": e.response.text},
            ) from e
        except (httpx.HTTPError, KeyError, ValueError) as e:
            self._circuit.record_failure()
            logger.error("Call to %s failed to start: %s", number, e)
            raise InitiationError(str(e) or type(e).__name__, number=number) from e
        self._circuit.record_success()
        logger.info("Twilio accepted call to %s as %s", number, call_sid)
        return call_sid
