"""
HTTP API (FastAPI)

Endpoints
---------
POST /api/disperse-eth      native value from the caller to many recipients
POST /api/disperse-erc20    tokens from an approved spender to many recipients
POST /api/collect-erc20     tokens from many approved spenders to one recipient
POST /api/transfer          plain native or ERC20 transfer
POST /api/approve           ERC20 approve
GET  /health                liveness probe

Errors are returned as ``{"code": <status>, "message": <text>}``. The route
handlers are plain functions so FastAPI runs them in its threadpool; the
signer lock in the submitter keeps submissions from one key serialized.
"""
import logging
from typing import Dict, Type

from fastapi import APIRouter, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from .exceptions import (
    ChainRejectedError,
    ChainUnavailableError,
    DisperseCollectError,
    InsufficientTotalError,
    InvalidSpecError,
    SigningError,
    SubmissionRejectedError,
    TokenNotFoundError,
    UnsupportedOperationError,
)
from .models import (
    ApproveRequest,
    CollectErc20Request,
    DisperseCollectResponse,
    DisperseErc20Request,
    DisperseEthRequest,
    ErrorResponse,
    TransactionResponse,
    TransferRequest,
)
from .service import DisperseCollectService
from .version import __version__

logger = logging.getLogger(__name__)

# Most specific classes first; the first isinstance match wins
ERROR_STATUS: Dict[Type[DisperseCollectError], int] = {
    TokenNotFoundError: 400,
    InvalidSpecError: 400,
    InsufficientTotalError: 400,
    UnsupportedOperationError: 400,
    SubmissionRejectedError: 502,
    ChainRejectedError: 502,
    ChainUnavailableError: 503,
    SigningError: 500,
}


def status_for(error: DisperseCollectError) -> int:
    for error_type, status in ERROR_STATUS.items():
        if isinstance(error, error_type):
            return status
    return 500


def _error_response(status: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status, content=ErrorResponse(code=status, message=message).model_dump())


def create_router(service: DisperseCollectService) -> APIRouter:
    """Routes under ``/api`` bound to ``service``."""
    router = APIRouter()

    @router.post("/disperse-eth", response_model=DisperseCollectResponse)
    def disperse_eth(request: DisperseEthRequest) -> DisperseCollectResponse:
        return service.disperse_eth(request)

    @router.post("/disperse-erc20", response_model=DisperseCollectResponse)
    def disperse_erc20(request: DisperseErc20Request) -> DisperseCollectResponse:
        return service.disperse_erc20(request)

    @router.post("/collect-erc20", response_model=DisperseCollectResponse)
    def collect_erc20(request: CollectErc20Request) -> DisperseCollectResponse:
        return service.collect_erc20(request)

    @router.post("/transfer", response_model=TransactionResponse)
    def transfer(request: TransferRequest) -> TransactionResponse:
        return service.transfer(request)

    @router.post("/approve", response_model=TransactionResponse)
    def approve(request: ApproveRequest) -> TransactionResponse:
        return service.approve(request)

    return router


def create_app(service: DisperseCollectService) -> FastAPI:
    """
    Build the FastAPI app exposing the disperse/collect endpoints.

    Args:
        service: Fully wired service instance

    Returns:
        FastAPI application
    """
    app = FastAPI(
        title="Disperse/Collect API",
        version=__version__,
        description="Disperse or collect native value and ERC20 tokens in one transaction.",
    )
    app.include_router(create_router(service), prefix="/api")

    @app.get("/health")
    def health() -> Dict[str, str]:
        return {"status": "ok", "version": __version__}

    @app.exception_handler(DisperseCollectError)
    async def _handle_service_error(request: Request, exc: DisperseCollectError) -> JSONResponse:
        status = status_for(exc)
        if status >= 500:
            logger.error(f"{request.method} {request.url.path} failed: {exc}")
        else:
            logger.info(f"{request.method} {request.url.path} rejected: {exc}")
        return _error_response(status, str(exc))

    @app.exception_handler(RequestValidationError)
    async def _handle_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
        problems = []
        for err in exc.errors():
            location = ".".join(str(part) for part in err.get("loc", ()) if part != "body")
            problems.append(f"{location}: {err.get('msg')}" if location else str(err.get("msg")))
        return _error_response(400, "invalid request: " + "; ".join(problems))

    return app
