"""FastAPI application factory."""

from fastapi import FastAPI, Request, Response
from fastapi.responses import JSONResponse

from roomdesk.domain.errors import (
    NotFoundError,
    PersistenceError,
    ReservationValidationError,
    RoomUnavailableError,
    UnauthorizedError,
)
from roomdesk.observability.correlation import (
    CORRELATION_ID_HEADER,
    generate_correlation_id,
    reset_correlation_id,
    set_correlation_id,
)

from .routers import public
from .routes import reservations


def _register_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(ReservationValidationError)
    async def _validation(request: Request, exc: ReservationValidationError) -> JSONResponse:
        return JSONResponse(
            status_code=422,
            content={"message": "The given data was invalid.", "errors": exc.errors},
        )

    @app.exception_handler(RoomUnavailableError)
    async def _room_unavailable(request: Request, exc: RoomUnavailableError) -> JSONResponse:
        return JSONResponse(
            status_code=409,
            content={
                "message": "Some of the rooms are reserved on given date.",
                "errors": {"room_id": [str(exc)]},
                "room_ids": exc.room_ids,
                "room_numbers": exc.room_numbers,
            },
        )

    @app.exception_handler(NotFoundError)
    async def _not_found(request: Request, exc: NotFoundError) -> JSONResponse:
        return JSONResponse(status_code=404, content={"detail": "Reservation not found"})

    @app.exception_handler(UnauthorizedError)
    async def _unauthorized(request: Request, exc: UnauthorizedError) -> JSONResponse:
        return JSONResponse(status_code=403, content={"detail": "This action is unauthorized."})

    @app.exception_handler(PersistenceError)
    async def _persistence(request: Request, exc: PersistenceError) -> JSONResponse:
        # details were logged where the transaction failed
        return JSONResponse(
            status_code=500,
            content={"detail": f"{exc} Please try again."},
        )


def create_app() -> FastAPI:
    """Create the FastAPI app with correlation-id middleware and all routes."""
    app = FastAPI(
        title="Roomdesk",
        docs_url=None,
        redoc_url=None,
    )

    @app.middleware("http")
    async def correlation_id_middleware(request: Request, call_next) -> Response:
        cid = request.headers.get(CORRELATION_ID_HEADER) or generate_correlation_id()
        token = set_correlation_id(cid)
        try:
            response = await call_next(request)
            response.headers[CORRELATION_ID_HEADER] = cid
            return response
        finally:
            reset_correlation_id(token)

    _register_error_handlers(app)

    app.include_router(public.router)
    app.include_router(reservations.router)

    return app
