# main.py
from fastapi import FastAPI, APIRouter, Depends, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, Response
from starlette.exceptions import HTTPException as StarletteHTTPException
from contextlib import asynccontextmanager
from typing import Optional
import logging

import uvicorn

from auth import Authenticator
from config import Settings
from database import init_db, get_db
from errors import BadRequest, BadUpstream, LedgerError, Unauthenticated
from models import (
    UserLogin, SavingsAdd, GoalUpdate, InterestRateUpdate, RecordDelete,
    RechargeCreate, ExpenseCreate,
    Principal, LoginResponse, SuccessResponse, RatesUpdateResponse
)
import currency_service
import ledger

logger = logging.getLogger("liberty_ledger.api")

# ============================================
# HTTP CONFIGURATION
# ============================================

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET, POST, PUT, DELETE, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type, Authorization",
}

# Reachable without a token. /rates/update is hit by an external scheduler.
PUBLIC_ROUTES = {
    ("POST", "/login"),
    ("GET", "/rates/update"),
}


def json_response(data: dict, status_code: int = 200) -> JSONResponse:
    return JSONResponse(content=data, status_code=status_code, headers=CORS_HEADERS)


def strip_prefix(path: str, prefix: str) -> str:
    """
    Remove the API prefix so /api/login and /login route the same.

    Example:
        >>> strip_prefix("/api/savings/add", "/api")
        "/savings/add"
    """
    prefix = prefix.rstrip("/")
    if prefix and (path == prefix or path.startswith(prefix + "/")):
        return path[len(prefix):] or "/"
    return path


# ============================================
# DEPENDENCIES
# ============================================

def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_current_user(request: Request) -> Principal:
    """
    The principal attached by the dispatcher for protected routes.

    Usage:
        @router.get("/protected")
        def protected_route(current_user: Principal = Depends(get_current_user)):
            username = current_user.username
    """
    principal = getattr(request.state, "principal", None)
    if principal is None:
        raise Unauthenticated("Unauthorized")
    return principal


router = APIRouter()

# ============================================
# ROUTES: AUTHENTICATION
# ============================================

@router.post("/login", response_model=LoginResponse)
def login(user: UserLogin, request: Request):
    """
    Login and get access token.

    Raises:
        401: Invalid username or password

    Example:
        POST /api/login
        {
            "username": "admin",
            "password": "SecurePass123!"
        }

        Response (200):
        {
            "success": true,
            "token": "eyJhbGci..."
        }
    """
    authenticator: Authenticator = request.app.state.authenticator
    token = authenticator.login(user.username, user.password)
    logger.info("User %s logged in", user.username)
    return LoginResponse(token=token)

# ============================================
# ROUTES: DASHBOARD
# ============================================

@router.get("/data")
def get_data(
    settings: Settings = Depends(get_settings),
    current_user: Principal = Depends(get_current_user)
):
    """
    Get savings, entertainment fund and current rates in one call.

    Example:
        GET /api/data
        Headers: Authorization: Bearer <token>

        Response (200):
        {
            "savings": {
                "goal": 50000,
                "current": 1250.0,
                "interestRate": 4.5,
                "records": [{"id": 1, "amount": 1250.0, "date": "2026-10-01", "rate_cad": 1.36, "rate_cny": 7.12}]
            },
            "entertainment": {
                "balance": 63.24,
                "records": [...]
            },
            "rates": {"CAD": 1.36, "CNY": 7.12, "updatedAt": "2026-10-01T06:00:00+00:00"}
        }
    """
    logger.debug("Dashboard requested by %s", current_user.username)
    with get_db(settings.database_path) as conn:
        return ledger.get_dashboard(conn)

# ============================================
# ROUTES: SAVINGS
# ============================================

@router.post("/savings/add", response_model=SuccessResponse)
def add_saving(
    saving: SavingsAdd,
    settings: Settings = Depends(get_settings),
    current_user: Principal = Depends(get_current_user)
):
    """
    Add a savings contribution in USD. Today's CAD/CNY rates are stored with it.

    Example:
        POST /api/savings/add
        {"amount": 250}
    """
    with get_db(settings.database_path) as conn:
        ledger.add_saving(conn, saving.amount)
    logger.info("%s added savings of %s USD", current_user.username, saving.amount)
    return SuccessResponse()


@router.post("/savings/update-goal", response_model=SuccessResponse)
def update_savings_goal(
    update: GoalUpdate,
    settings: Settings = Depends(get_settings),
    current_user: Principal = Depends(get_current_user)
):
    with get_db(settings.database_path) as conn:
        ledger.update_goal(conn, update.goal)
    logger.info("%s set the savings goal to %s", current_user.username, update.goal)
    return SuccessResponse()


@router.post("/savings/update-rate", response_model=SuccessResponse)
def update_interest_rate(
    update: InterestRateUpdate,
    settings: Settings = Depends(get_settings),
    current_user: Principal = Depends(get_current_user)
):
    with get_db(settings.database_path) as conn:
        ledger.update_interest_rate(conn, update.rate)
    logger.info("%s set the interest rate to %s%%", current_user.username, update.rate)
    return SuccessResponse()


@router.post("/savings/delete", response_model=SuccessResponse)
def delete_saving(
    record: RecordDelete,
    settings: Settings = Depends(get_settings),
    current_user: Principal = Depends(get_current_user)
):
    """
    Delete a savings record.

    Raises:
        404: Record not found
    """
    with get_db(settings.database_path) as conn:
        ledger.delete_saving(conn, record.id)
    logger.info("%s deleted savings record %s", current_user.username, record.id)
    return SuccessResponse()

# ============================================
# ROUTES: ENTERTAINMENT
# ============================================

@router.post("/entertainment/recharge", response_model=SuccessResponse)
def recharge_entertainment(
    recharge: RechargeCreate,
    settings: Settings = Depends(get_settings),
    current_user: Principal = Depends(get_current_user)
):
    """
    Top up the entertainment fund (USD).

    Example:
        POST /api/entertainment/recharge
        {"amount": 100}
    """
    with get_db(settings.database_path) as conn:
        ledger.recharge_entertainment(conn, recharge.amount)
    logger.info("%s recharged %s USD", current_user.username, recharge.amount)
    return SuccessResponse()


@router.post("/entertainment/expense", response_model=SuccessResponse)
def add_expense(
    expense: ExpenseCreate,
    settings: Settings = Depends(get_settings),
    current_user: Principal = Depends(get_current_user)
):
    """
    Spend from the entertainment fund.

    The balance is debited by the USD equivalent at today's rate.

    Example:
        POST /api/entertainment/expense
        {"amount": 50, "currency": "CAD", "note": "Movie night"}
    """
    with get_db(settings.database_path) as conn:
        ledger.add_expense(conn, expense.amount, expense.currency, expense.note)
    logger.info("%s spent %s %s", current_user.username, expense.amount, expense.currency)
    return SuccessResponse()


@router.post("/entertainment/delete", response_model=SuccessResponse)
def delete_entertainment_record(
    record: RecordDelete,
    settings: Settings = Depends(get_settings),
    current_user: Principal = Depends(get_current_user)
):
    """
    Delete an entertainment record and reverse its balance effect
    using the rate stored on the record.

    Raises:
        404: Record not found
    """
    with get_db(settings.database_path) as conn:
        ledger.delete_entertainment_record(conn, record.id)
    logger.info("%s deleted entertainment record %s", current_user.username, record.id)
    return SuccessResponse()

# ============================================
# ROUTES: EXCHANGE RATES
# ============================================

@router.get("/rates/update", response_model=RatesUpdateResponse)
def update_exchange_rates(settings: Settings = Depends(get_settings)):
    """
    Fetch and store current USD→CAD / USD→CNY rates.

    Public so an external timer can call it without credentials.

    Raises:
        500: Provider failure. Stored rates are left unchanged.

    Example:
        GET /api/rates/update

        Response (200):
        {
            "success": true,
            "rates": {"CAD": 1.37, "CNY": 7.19}
        }
    """
    try:
        rates = currency_service.refresh_rates(settings)
    except BadUpstream:
        raise
    except Exception as e:
        logger.exception("Failed to update rates")
        raise BadUpstream("Failed to update rates", details=str(e)) from e
    return RatesUpdateResponse(rates=rates)

# ============================================
# APP FACTORY
# ============================================

def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """
    Build the API.

    Settings are read from the environment when not given, checked once for
    insecure defaults, and stored on app.state for the request handlers.
    """
    if settings is None:
        settings = Settings()

    logging.basicConfig(level=settings.log_level)
    settings.check_security()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """
        Lifespan context manager for startup and shutdown events.
        Runs once when app starts, once when app stops.
        """
        logger.info("🚀 Starting up...")
        init_db(settings.database_path)
        yield  # App runs here
        logger.info("👋 Shutting down...")

    app = FastAPI(
        title="Liberty Ledger API",
        description="Savings and entertainment fund tracking with USD/CAD/CNY rates",
        version="1.0.0",
        lifespan=lifespan
    )
    app.state.settings = settings
    app.state.authenticator = Authenticator(settings)
    app.include_router(router)

    docs_paths = {app.docs_url, app.openapi_url}

    @app.exception_handler(LedgerError)
    async def ledger_error_handler(request: Request, exc: LedgerError):
        return json_response(exc.to_dict(), exc.status_code)

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        details = []
        for error in exc.errors():
            location = ".".join(str(part) for part in error.get("loc", ()) if part != "body")
            details.append(f"{location}: {error.get('msg')}" if location else error.get("msg"))
        bad_request = BadRequest("Invalid request body", details=details)
        return json_response(bad_request.to_dict(), bad_request.status_code)

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException):
        # Wrong method on a known path is reported like an unknown path
        if exc.status_code in (404, 405):
            return json_response({"error": "Not found"}, 404)
        return json_response({"error": str(exc.detail)}, exc.status_code)

    @app.middleware("http")
    async def dispatch(request: Request, call_next):
        """
        Per-request flow: preflight, prefix strip, auth gate, handler.
        Anything a handler lets escape becomes a 500 envelope here.
        """
        if request.method == "OPTIONS":
            return Response(status_code=200, headers=CORS_HEADERS)

        path = strip_prefix(request.url.path, settings.api_prefix)
        request.scope["path"] = path

        is_public = (request.method, path) in PUBLIC_ROUTES or (
            request.method == "GET" and path in docs_paths
        )
        if not is_public:
            principal = app.state.authenticator.authorize(request.headers.get("Authorization"))
            if principal is None:
                return json_response({"error": "Unauthorized"}, 401)
            request.state.principal = principal

        try:
            response = await call_next(request)
        except Exception as e:
            logger.exception("API error on %s %s", request.method, path)
            message = str(e) or e.__class__.__name__
            if not settings.expose_error_details:
                message = "Internal server error"
            return json_response({"error": message}, 500)

        response.headers.update(CORS_HEADERS)
        return response

    return app


app = create_app()


def run():
    """Entry point: liberty-ledger"""
    settings: Settings = app.state.settings
    uvicorn.run(app, host=settings.host, port=settings.port)


if __name__ == "__main__":
    run()
