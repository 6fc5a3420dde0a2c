"""HTTP API: single and batch change calculation over JSON, amounts in major units."""

from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Dict, List, Optional
import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field
from starlette.exceptions import HTTPException as StarletteHTTPException

from . import __version__
from .calculator import ChangeCalculator
from .config import Settings, configure_logging, load_settings
from .core import CashRegisterError, ChangeResult, SpecialRuleConfig
from .currencies import CURRENCY_REGISTRY, get_currency_by_code
from .strategies import MinimalCountStrategy, RandomizedValidStrategy, StrategySelector

logger = logging.getLogger(__name__)

AVAILABLE_ROUTES = [
    "GET /health",
    "GET /api",
    "GET /api/v1/currencies",
    "POST /api/v1/change/calculate",
    "POST /api/v1/change/batch",
]

STATUS_BY_CODE = {
    "INSUFFICIENT_PAYMENT": 422,
    "INVALID_AMOUNT": 422,
    "CURRENCY_NOT_FOUND": 404,
    "FILE_NOT_FOUND": 404,
    "INVALID_ARGUMENTS": 400,
    "CSV_PARSING_ERROR": 400,
    "INVALID_CURRENCY": 400,
}


class TransactionIn(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    amount_owed: Decimal = Field(..., ge=0, alias="amountOwed")
    amount_paid: Decimal = Field(..., ge=0, alias="amountPaid")


class CalculateRequest(TransactionIn):
    currency: Optional[str] = Field(default=None, min_length=1, max_length=8)


class SpecialRuleIn(BaseModel):
    divisor: int = Field(..., gt=0)
    description: str = ""


class BatchRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    transactions: List[TransactionIn] = Field(..., min_length=1)
    currency: Optional[str] = Field(default=None, min_length=1, max_length=8)
    special_rule: Optional[SpecialRuleIn] = Field(default=None, alias="specialRule")


def result_payload(result: ChangeResult) -> Dict[str, Any]:
    return {
        "totalChangeInCents": result.total_change_in_minor_units,
        "denominations": dict(result.denominations),
        "formattedOutput": result.formatted_output,
        "remainderInCents": result.remainder_in_minor_units,
    }


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or load_settings()
    app = FastAPI(title="Cash Register API", version=__version__)
    # One selector per app so the randomized cache is shared across requests
    app.state.settings = settings
    app.state.selector = StrategySelector(
        [RandomizedValidStrategy(settings.seed), MinimalCountStrategy()]
    )

    def calculator_for(currency_code: Optional[str], rule: Optional[SpecialRuleConfig]) -> ChangeCalculator:
        currency = get_currency_by_code(currency_code or settings.currency_code)
        return ChangeCalculator(currency, rule, app.state.selector)

    @app.exception_handler(CashRegisterError)
    async def cash_register_error(request: Request, exc: CashRegisterError) -> JSONResponse:
        logger.warning("Request error: %s %s %s", exc.message, request.method, request.url.path)
        body: Dict[str, Any] = {"error": exc.message, "code": exc.code}
        details = exc.details()
        if details:
            body["details"] = details
        return JSONResponse(body, status_code=STATUS_BY_CODE.get(exc.code, 500))

    @app.exception_handler(RequestValidationError)
    async def validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
        details = [
            f"{'.'.join(str(part) for part in err.get('loc', ()))}: {err.get('msg', '')}"
            for err in exc.errors()
        ]
        return JSONResponse(
            {"error": "Validation failed", "code": "VALIDATION_ERROR", "details": details},
            status_code=400,
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_error(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        if exc.status_code == 404:
            return JSONResponse(
                {
                    "error": f"Route not found: {request.method} {request.url.path}",
                    "code": "ROUTE_NOT_FOUND",
                    "availableRoutes": AVAILABLE_ROUTES,
                },
                status_code=404,
            )
        return JSONResponse(
            {"error": str(exc.detail), "code": "HTTP_ERROR"},
            status_code=exc.status_code,
        )

    @app.get("/health")
    def health():
        return {"status": "healthy", "timestamp": _now()}

    @app.get("/api")
    def info():
        return {
            "message": "Cash Register API",
            "version": __version__,
            "timestamp": _now(),
            "endpoints": {
                "health": "/health",
                "currencies": "/api/v1/currencies",
                "change": "/api/v1/change/calculate",
                "batch": "/api/v1/change/batch",
                "docs": "/docs",
            },
        }

    @app.get("/api/v1/currencies")
    def currencies():
        return {"currencies": [currency.to_dict() for currency in CURRENCY_REGISTRY.values()]}

    @app.post("/api/v1/change/calculate")
    def calculate(payload: CalculateRequest):
        calculator = calculator_for(payload.currency, settings.special_rule())
        result = calculator.calculate_major(payload.amount_owed, payload.amount_paid)
        return {"success": True, "data": result_payload(result)}

    @app.post("/api/v1/change/batch")
    def batch(payload: BatchRequest):
        rule = settings.special_rule()
        if payload.special_rule is not None:
            rule = SpecialRuleConfig(
                divisor=payload.special_rule.divisor,
                description=payload.special_rule.description,
            )
        calculator = calculator_for(payload.currency, rule)
        results = calculator.calculate_batch(
            (item.amount_owed, item.amount_paid) for item in payload.transactions
        )
        return {
            "results": [result_payload(result) for result in results],
            "summary": {
                "totalTransactions": len(results),
                "totalChangeInCents": sum(r.total_change_in_minor_units for r in results),
                "currency": calculator.currency.code,
            },
        }

    return app


def serve() -> None:
    """Console entry point: run the API with uvicorn."""
    import uvicorn

    settings = load_settings()
    configure_logging(settings.log_level)
    uvicorn.run(create_app(settings), host=settings.host, port=settings.port)
