import logging
import os
from contextlib import asynccontextmanager
from xml.sax.saxutils import escape

import uvicorn
from dotenv import load_dotenv
from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse, PlainTextResponse, Response
from pydantic import BaseModel

from autodialer.config import load_settings
from autodialer.errors import DialerError
from autodialer.initiator import TwilioCallInitiator
from autodialer.observers import LoggingObserver
from autodialer.sequencer import DialerSequencer
from autodialer.telephony import event_from_twilio_status
from autodialer.validation import is_valid_phone_number, parse_bulk_numbers

load_dotenv()

logger = logging.getLogger(__name__)


class NumberIn(BaseModel):
    number: str


class BulkIn(BaseModel):
    text: str


def _build_sequencer() -> tuple[DialerSequencer, TwilioCallInitiator]:
    settings = load_settings()
    initiator = TwilioCallInitiator(
        account_sid=settings.twilio_account_sid,
        auth_token=settings.twilio_auth_token,
        from_number=settings.twilio_from_number,
        twiml_url=settings.twiml_url,
        status_callback_url=settings.status_callback_url,
        base_url=settings.twilio_api_base_url,
    )
    return DialerSequencer(initiator), initiator


def create_app(sequencer: DialerSequencer | None = None, operator_number: str | None = None) -> FastAPI:
    """Build the HTTP host around a sequencer.

    Without an injected sequencer one is built from the environment at
    startup, placing calls through Twilio.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        owned_initiator = None
        seq = sequencer
        if seq is None:
            seq, owned_initiator = _build_sequencer()
        seq.subscribe(LoggingObserver())
        app.state.sequencer = seq
        logger.info("Dialer ready")
        try:
            yield
        finally:
            await seq.close()
            if owned_initiator is not None:
                await owned_initiator.close()
            logger.info("Dialer shut down")

    app = FastAPI(title="Auto Dialer", lifespan=lifespan)
    operator = operator_number if operator_number is not None else os.getenv("OPERATOR_NUMBER", "")

    def _sequencer(request: Request) -> DialerSequencer:
        return request.app.state.sequencer

    @app.exception_handler(DialerError)
    async def dialer_error_handler(request: Request, exc: DialerError):
        logger.error("%s on %s: %s", exc.code, request.url.path, exc.message)
        return JSONResponse(
            status_code=500,
            content={"error": exc.code, "message": exc.message, "details": exc.details},
        )

    @app.get("/health")
    async def health():
        return PlainTextResponse("ok")

    @app.get("/session")
    async def get_session(request: Request):
        return _sequencer(request).snapshot().to_dict()

    @app.post("/session/start")
    async def start_session(request: Request):
        snapshot = await _sequencer(request).start()
        return snapshot.to_dict()

    @app.post("/session/stop")
    async def stop_session(request: Request):
        snapshot = await _sequencer(request).stop()
        return snapshot.to_dict()

    @app.post("/numbers")
    async def add_number(body: NumberIn, request: Request):
        number = body.number.strip()
        if not is_valid_phone_number(number):
            raise HTTPException(status_code=422, detail=f"Invalid phone number: {number!r}")
        snapshot = await _sequencer(request).add_number(number)
        return snapshot.to_dict()

    @app.post("/numbers/import")
    async def import_numbers(body: BulkIn, request: Request):
        parsed = parse_bulk_numbers(body.text)
        snapshot = await _sequencer(request).add_numbers(parsed.numbers)
        logger.info("Bulk import: %s", parsed.message)
        return {
            "added": parsed.added_count,
            "skipped": parsed.skipped,
            "message": parsed.message,
            "session": snapshot.to_dict(),
        }

    @app.delete("/numbers/{number:path}")
    async def remove_number(number: str, request: Request):
        snapshot = await _sequencer(request).remove_number(number)
        return snapshot.to_dict()

    @app.delete("/numbers")
    async def clear_numbers(request: Request):
        snapshot = await _sequencer(request).clear_queue()
        return snapshot.to_dict()

    @app.post("/twilio/status")
    async def twilio_status(request: Request):
        """Twilio status callback: turn CallStatus into a telephony event."""
        form = await request.form()
        status = form.get("CallStatus", "")
        call_sid = form.get("CallSid", "")
        logger.debug("Twilio status %s for %s", status, call_sid)
        message = event_from_twilio_status(status, call_sid=call_sid)
        if message is not None:
            await _sequencer(request).submit(message)
        return Response(status_code=204)

    @app.api_route("/twiml", methods=["GET", "POST"])
    async def twiml(request: Request):
        """TwiML for an answered outbound call: bridge to the operator if one is set."""
        if operator:
            body = f"<Dial>{escape(operator)}</Dial>"
        else:
            body = '<Pause length="60"/><Hangup/>'
        xml = f"<Response>{body}</Response>"
        return Response(content=xml, media_type="application/xml")

    return app


app = create_app()


if __name__ == "__main__":
    logging.basicConfig(
        level=os.getenv("LOG_LEVEL", "INFO").upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    port = int(os.getenv("PORT", "8765"))
    uvicorn.run("autodialer.app:app", host="0.0.0.0", port=port)
