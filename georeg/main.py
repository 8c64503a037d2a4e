from functools import lru_cache
from typing import Annotated

from fastapi import Depends, FastAPI, Header, HTTPException, Query, Request, status
from fastapi.exceptions import RequestValidationError
from pydantic import ValidationError

from georeg.errors import (
    LocationNotSettledError,
    NoLocationAvailableError,
    ServiceUnavailableError,
    SubmissionError,
    SubmissionValidationError,
)
from georeg.exception_handlers import unhandled_exception_handler, validation_exception_handler
from georeg.logger import logger
from georeg.models.common import RegistrationForm
from georeg.models.request_models import PositionReport
from georeg.models.response_models import (
    HealthResponse,
    LocationResponse,
    PositionReportResponse,
    RegistrationResponse,
)
from georeg.session import RegistrationSession
from georeg.settings import get_settings

MAX_WAIT_SECONDS = 30.0

app = FastAPI(
    title="Geo Registration Service",
    version="0.1.0",
    description="Resolves a user's location from device and network sources and submits their registration.",
)
logger.info("Started Geo Registration Service")


@lru_cache
def get_session() -> RegistrationSession:
    """Dependency providing the process-wide registration session."""
    return RegistrationSession.from_settings(get_settings())


app.add_exception_handler(RequestValidationError, validation_exception_handler)
app.add_exception_handler(ValidationError, validation_exception_handler)
app.add_exception_handler(Exception, unhandled_exception_handler)

# Submission errors that reach the user, by HTTP status.
_SUBMISSION_STATUS: dict[type[SubmissionError], int] = {
    LocationNotSettledError: status.HTTP_409_CONFLICT,
    NoLocationAvailableError: status.HTTP_422_UNPROCESSABLE_ENTITY,
    SubmissionValidationError: status.HTTP_400_BAD_REQUEST,
    ServiceUnavailableError: status.HTTP_503_SERVICE_UNAVAILABLE,
}

SessionDep = Annotated[RegistrationSession, Depends(get_session)]


@app.get(
    "/health",
    tags=["health"],
    response_model=HealthResponse,
    status_code=status.HTTP_200_OK,
    summary="Health check",
)
async def health() -> HealthResponse:
    """Basic health check endpoint."""
    return HealthResponse(status="ok")


@app.post(
    "/v1/location/resolve",
    response_model=LocationResponse,
    status_code=status.HTTP_202_ACCEPTED,
    tags=["location"],
    summary="Start resolving the user's location.",
)
async def start_resolution(
    request: Request,
    session: SessionDep,
    user_agent: Annotated[str | None, Header()] = None,
    sec_ch_ua_platform: Annotated[str | None, Header()] = None,
) -> LocationResponse:
    """Start a fresh resolution; a resolution already running is cancelled.

    The device is profiled from its `User-Agent` (and `Sec-CH-UA-Platform`,
    when sent). The network estimate looks up the caller's address: the first
    `X-Forwarded-For` entry when behind a proxy, otherwise the peer address.
    The precise request then waits for the device to report its reading on
    `/v1/location/position`.
    """
    client_host = request.client.host if request.client else None
    x_forwarded_for = request.headers.get("x-forwarded-for")
    client_ip = _client_ip(client_host, x_forwarded_for)
    logger.info(
        "Starting location resolution "
        f"path={request.url.path} method={request.method} "
        f"client_ip={client_host} x_forwarded_for={x_forwarded_for}"
    )
    result = await session.start(user_agent, sec_ch_ua_platform, client_ip)
    return LocationResponse.from_result(result, session.device)


def _client_ip(client_host: str | None, x_forwarded_for: str | None) -> str | None:
    if x_forwarded_for:
        first = x_forwarded_for.split(",")[0].strip()
        if first:
            return first
    return client_host


@app.post(
    "/v1/location/position",
    response_model=PositionReportResponse,
    status_code=status.HTTP_202_ACCEPTED,
    tags=["location"],
    summary="Report the device's position reading or location error.",
)
async def report_position(report: PositionReport, session: SessionDep) -> PositionReportResponse:
    """Deliver the device's reading; a report sent before the service asks is queued."""
    delivered = session.report_position(report)
    return PositionReportResponse(delivered=delivered)


@app.get(
    "/v1/location",
    response_model=LocationResponse,
    status_code=status.HTTP_200_OK,
    tags=["location"],
    summary="Current location state.",
)
async def get_location(
    session: SessionDep,
    wait: Annotated[bool, Query(description="Wait until the location has settled.")] = False,
    timeout: Annotated[float, Query(gt=0, le=MAX_WAIT_SECONDS, description="Seconds to wait.")] = 10.0,
) -> LocationResponse:
    result = await session.wait(timeout) if wait else session.aggregator.result()
    return LocationResponse.from_result(result, session.device)


@app.post(
    "/v1/location/retry",
    response_model=LocationResponse,
    status_code=status.HTTP_202_ACCEPTED,
    tags=["location"],
    summary="Retry precise location with a longer timeout.",
)
async def retry_location(session: SessionDep) -> LocationResponse:
    result = await session.retry()
    return LocationResponse.from_result(result, session.device)


@app.post(
    "/v1/register",
    response_model=RegistrationResponse,
    status_code=status.HTTP_201_CREATED,
    tags=["registration"],
    summary="Submit the registration with the settled location.",
)
async def register(request: Request, form: RegistrationForm, session: SessionDep) -> RegistrationResponse:
    """Submit the registration form together with the settled location and device info.

    - 409 while the location is still being detected.
    - 422 when neither location source produced anything (nothing is sent).
    - 400 when the registration backend rejects the payload.
    - 503 when the registration backend is down or unreachable.
    """
    try:
        result = await session.register(form)
    except SubmissionError as exc:
        status_code = _SUBMISSION_STATUS.get(type(exc), status.HTTP_502_BAD_GATEWAY)
        logger.error(
            "Registration error "
            f"path={request.url.path} method={request.method} username={form.username} error={exc.code}"
        )
        raise HTTPException(
            status_code=status_code,
            detail={
                "code": exc.code,
                "message": str(exc),
            },
        ) from exc

    return RegistrationResponse(redirect_url=session.handoff.target, backend=result.body)
