from __future__ import annotations

import logging
import math
from datetime import date, datetime
from typing import Any

from starlette.applications import Starlette
from starlette.requests import Request
from starlette.responses import JSONResponse
from starlette.routing import Route

from lecaps.core.config.settings import Settings, load_settings
from lecaps.core.consolidation.undo import CollaboratorCall
from lecaps.core.errors import AuthError, CollaboratorError, NotFoundError, ValidationError
from lecaps.core.holdings.holding_schema import Holding, Portfolio
from lecaps.core.identity.identity_provider import IdentityProvider, LocalIdentityProvider, Session
from lecaps.core.metrics.yield_metrics import compute_metrics
from lecaps.core.orchestration.holdings_service import HoldingsService
from lecaps.core.orchestration.time_utils import now_iso
from lecaps.core.store.holdings_store import JsonHoldingsStore

logger = logging.getLogger(__name__)

_MAX_PAYLOAD_FIELDS = 16


def create_app(
    service: HoldingsService | None = None,
    identity: IdentityProvider | None = None,
    settings: Settings | None = None,
) -> Starlette:
    cfg = settings or load_settings()
    app = Starlette(
        debug=False,
        routes=[
            Route("/api/health", endpoint=_health, methods=["GET"]),
            Route("/api/auth/signup", endpoint=_sign_up, methods=["POST"]),
            Route("/api/auth/signin", endpoint=_sign_in, methods=["POST"]),
            Route("/api/auth/signout", endpoint=_sign_out, methods=["POST"]),
            Route("/api/portfolios", endpoint=_list_portfolios, methods=["GET"]),
            Route("/api/portfolios", endpoint=_create_portfolio, methods=["POST"]),
            Route("/api/portfolios/{portfolio_id}/holdings", endpoint=_list_holdings, methods=["GET"]),
            Route("/api/portfolios/{portfolio_id}/holdings", endpoint=_add_purchase, methods=["POST"]),
            Route("/api/holdings/{holding_id}", endpoint=_edit_holding, methods=["PATCH"]),
            Route("/api/holdings/{holding_id}", endpoint=_delete_holding, methods=["DELETE"]),
            Route("/api/undo", endpoint=_undo, methods=["POST"]),
        ],
        exception_handlers={
            ValidationError: _validation_error,
            NotFoundError: _not_found_error,
            AuthError: _auth_error,
            CollaboratorError: _collaborator_error,
        },
    )
    app.state.service = service or HoldingsService(
        JsonHoldingsStore(cfg.store_path),
        default_portfolio_name=cfg.default_portfolio_name,
    )
    app.state.identity = identity or LocalIdentityProvider(iterations=cfg.password_hash_iterations)
    return app


async def _health(request: Request) -> JSONResponse:
    return JSONResponse({"ok": True, "service": "lecaps-api", "as_of": now_iso()})


async def _sign_up(request: Request) -> JSONResponse:
    payload = await _read_payload(request)
    session = _identity(request).sign_up(str(payload.get("email", "")), str(payload.get("password", "")))
    return JSONResponse({"ok": True, "session": _session_payload(session)}, status_code=201)


async def _sign_in(request: Request) -> JSONResponse:
    payload = await _read_payload(request)
    session = _identity(request).sign_in(str(payload.get("email", "")), str(payload.get("password", "")))
    return JSONResponse({"ok": True, "session": _session_payload(session)})


async def _sign_out(request: Request) -> JSONResponse:
    session = _require_session(request)
    _identity(request).sign_out(session.access_token)
    return JSONResponse({"ok": True})


async def _list_portfolios(request: Request) -> JSONResponse:
    session = _require_session(request)
    portfolios = _service(request).list_portfolios(session)
    return JSONResponse({"ok": True, "portfolios": [_portfolio_payload(p) for p in portfolios]})


async def _create_portfolio(request: Request) -> JSONResponse:
    session = _require_session(request)
    payload = await _read_payload(request)
    portfolio = _service(request).create_portfolio(session, str(payload.get("name", "")))
    return JSONResponse({"ok": True, "portfolio": _portfolio_payload(portfolio)}, status_code=201)


async def _list_holdings(request: Request) -> JSONResponse:
    session = _require_session(request)
    portfolio_id = request.path_params["portfolio_id"]
    service = _service(request)
    rows = service.holding_rows(session, portfolio_id)
    totals = service.portfolio_totals(session, portfolio_id)
    return JSONResponse(
        {
            "ok": True,
            "portfolio_id": portfolio_id,
            "holdings": [_holding_payload(holding, metrics.to_dict()) for holding, metrics in rows],
            "totals": _jsonable(totals.to_dict()),
            "generated_at": now_iso(),
        }
    )


async def _add_purchase(request: Request) -> JSONResponse:
    session = _require_session(request)
    payload = await _read_payload(request)
    holding = _service(request).add_purchase(session, request.path_params["portfolio_id"], payload)
    return JSONResponse({"ok": True, "holding": _holding_payload(holding)}, status_code=201)


async def _edit_holding(request: Request) -> JSONResponse:
    session = _require_session(request)
    payload = await _read_payload(request)
    holding = _service(request).edit_holding(session, request.path_params["holding_id"], payload)
    return JSONResponse({"ok": True, "holding": _holding_payload(holding)})


async def _delete_holding(request: Request) -> JSONResponse:
    session = _require_session(request)
    holding = _service(request).delete_holding(session, request.path_params["holding_id"])
    return JSONResponse({"ok": True, "deleted": _holding_payload(holding)})


async def _undo(request: Request) -> JSONResponse:
    session = _require_session(request)
    calls = _service(request).undo(session)
    return JSONResponse({"ok": True, "undone": bool(calls), "calls": [_call_payload(c) for c in calls]})


def _service(request: Request) -> HoldingsService:
    return request.app.state.service


def _identity(request: Request) -> IdentityProvider:
    return request.app.state.identity


def _require_session(request: Request) -> Session:
    auth_header = str(request.headers.get("authorization", "")).strip()
    token = auth_header[7:].strip() if auth_header.lower().startswith("bearer ") else ""
    session = _identity(request).session_for(token) if token else None
    if session is None:
        raise AuthError("missing or invalid access token")
    return session


async def _read_payload(request: Request) -> dict[str, Any]:
    try:
        payload = await request.json()
    except ValueError as exc:
        raise ValidationError("payload", "request body must be valid JSON") from exc
    if not isinstance(payload, dict):
        raise ValidationError("payload", "request body must be a JSON object")
    if len(payload) > _MAX_PAYLOAD_FIELDS:
        raise ValidationError("payload", "payload has too many fields")
    return payload


def _session_payload(session: Session) -> dict[str, Any]:
    return {"user": {"id": session.user_id, "email": session.email}, "access_token": session.access_token}


def _portfolio_payload(portfolio: Portfolio) -> dict[str, Any]:
    return portfolio.to_record()


def _holding_payload(holding: Holding, metrics: dict[str, Any] | None = None) -> dict[str, Any]:
    record = holding.to_record()
    record["metrics"] = _jsonable(metrics if metrics is not None else compute_metrics(holding).to_dict())
    return record


def _call_payload(call: CollaboratorCall) -> dict[str, Any]:
    return {"operation": call.operation, "holding_id": call.holding_id, "fields": _jsonable(call.fields)}


def _jsonable(value: Any) -> Any:
    if value is None or isinstance(value, (str, int, bool)):
        return value
    if isinstance(value, float):
        return value if math.isfinite(value) else None
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, (list, tuple)):
        return [_jsonable(v) for v in value]
    if isinstance(value, dict):
        return {str(k): _jsonable(v) for k, v in value.items()}
    return str(value)


def _error(status: int, code: str, message: str, **extra: Any) -> JSONResponse:
    return JSONResponse(
        {"ok": False, "error": {"code": str(code), "message": str(message), **extra}},
        status_code=int(status),
    )


async def _validation_error(request: Request, exc: ValidationError) -> JSONResponse:
    return _error(422, "VALIDATION_ERROR", exc.message, field=exc.field)


async def _not_found_error(request: Request, exc: NotFoundError) -> JSONResponse:
    return _error(404, "NOT_FOUND", str(exc), kind=exc.kind)


async def _auth_error(request: Request, exc: Exception) -> JSONResponse:
    return _error(401, "UNAUTHORIZED", str(exc))


async def _collaborator_error(request: Request, exc: Exception) -> JSONResponse:
    logger.error("collaborator failure on %s %s: %s", request.method, request.url.path, exc)
    return _error(502, "COLLABORATOR_ERROR", str(exc))


app = create_app()
