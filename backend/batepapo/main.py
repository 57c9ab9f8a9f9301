import logging
from contextlib import asynccontextmanager
from typing import Any, List, Optional

from fastapi import Body, FastAPI, Header, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .errors import ChatError, MissingUser, StoreUnavailable, ValidationError
from .sanitizer import clean_text
from .service import ChatService
from .validation import format_errors

logger = logging.getLogger(__name__)


def decode_header(value: str) -> str:
    """Undo the latin-1 decoding applied to raw header bytes, when they are UTF-8."""
    try:
        return value.encode("latin-1").decode("utf-8")
    except UnicodeError:
        return value


def require_user(user: Optional[str]) -> str:
    """Return the caller's name from the 'user' header."""
    name = clean_text(decode_header(user)) if user is not None else ""
    if not name:
        raise MissingUser()
    return name


def create_app(service: ChatService, cors_origins: Optional[List[str]] = None) -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        service.start()
        try:
            yield
        finally:
            service.close()

    app = FastAPI(title="Bate-papo", lifespan=lifespan)
    app.state.service = service

    app.add_middleware(
        CORSMiddleware,
        allow_origins=cors_origins or ["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(ChatError)
    async def handle_chat_error(request: Request, exc: ChatError):
        if isinstance(exc, StoreUnavailable):
            logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
            return JSONResponse(status_code=exc.status_code, content={"detail": "Internal server error"})
        content = {"detail": exc.message}
        if isinstance(exc, ValidationError):
            content["errors"] = exc.errors
        return JSONResponse(status_code=exc.status_code, content=content)

    @app.exception_handler(RequestValidationError)
    async def handle_request_error(request: Request, exc: RequestValidationError):
        errors = format_errors(exc)
        return JSONResponse(status_code=422, content={"detail": "Invalid request", "errors": errors})

    @app.post("/participants", status_code=201)
    def register(payload: Any = Body(None)):
        participant = service.registry.register_payload(payload)
        return participant.to_dict()

    @app.get("/participants")
    def list_participants():
        return [participant.to_dict() for participant in service.registry.list()]

    @app.post("/status")
    def heartbeat(user: Optional[str] = Header(None)):
        participant = service.registry.heartbeat(require_user(user))
        return participant.to_dict()

    @app.post("/messages", status_code=201)
    def post_message(payload: Any = Body(None), user: Optional[str] = Header(None)):
        event = service.messages.post(require_user(user), payload)
        return event.to_dict()

    @app.get("/messages")
    def get_messages(limit: Optional[str] = None, user: Optional[str] = Header(None)):
        events = service.messages.list_for(require_user(user), limit)
        return [event.to_dict() for event in events]

    @app.put("/messages/{message_id}")
    def update_message(message_id: str, payload: Any = Body(None), user: Optional[str] = Header(None)):
        event = service.messages.update(message_id, require_user(user), payload)
        return event.to_dict()

    @app.delete("/messages/{message_id}")
    def delete_message(message_id: str, user: Optional[str] = Header(None)):
        service.messages.delete(message_id, require_user(user))
        return {"status": "success"}

    return app
