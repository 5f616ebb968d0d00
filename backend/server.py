"""Public Dashboard API - shared dashboard metrics for unauthenticated viewers"""
from fastapi import FastAPI, APIRouter, Request
from fastapi.responses import JSONResponse, Response
from pydantic import BaseModel, ValidationError
from typing import Optional, Dict
import logging
from datetime import datetime, timezone

from database import get_supabase
from public_dashboard import build_public_dashboard
from public_dashboard.handler import require_token
from public_dashboard.config import get_settings
from public_dashboard.errors import InvalidRequest, PublicDashboardError

settings = get_settings()

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level, logging.INFO),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

app = FastAPI(title="Public Dashboard API")
api_router = APIRouter(prefix="/api")

_CORS_HEADERS = {
    "Access-Control-Allow-Headers": "authorization, x-client-info, apikey, content-type",
    "Access-Control-Allow-Methods": "POST, OPTIONS",
}


class PublicDashboardRequest(BaseModel):
    token: Optional[str] = None


def cors_headers(origin: Optional[str] = None) -> Dict[str, str]:
    """Permissive CORS headers; echoes the origin when CORS_ORIGINS is a list."""
    allowed = settings.cors_origins
    if "*" in allowed:
        allow_origin = "*"
    elif origin and origin in allowed:
        allow_origin = origin
    else:
        allow_origin = allowed[0]
    headers = {"Access-Control-Allow-Origin": allow_origin, **_CORS_HEADERS}
    if allow_origin != "*":
        headers["Vary"] = "Origin"
    return headers


def json_response(data: dict, status_code: int = 200, origin: Optional[str] = None) -> JSONResponse:
    return JSONResponse(content=data, status_code=status_code, headers=cors_headers(origin))


# ============ Public Dashboard Endpoints ============

@api_router.options("/public-dashboard")
async def public_dashboard_preflight(request: Request):
    """CORS preflight - answered before any business logic"""
    return Response(status_code=204, headers=cors_headers(request.headers.get("origin")))


@api_router.post("/public-dashboard")
async def public_dashboard(request: Request):
    """Resolve a share token into dashboard widgets and their computed values"""
    origin = request.headers.get("origin")
    try:
        try:
            body = await request.json()
        except ValueError:
            raise InvalidRequest("Corpo da requisição inválido")
        if not isinstance(body, dict):
            raise InvalidRequest("Corpo da requisição inválido")

        try:
            payload = PublicDashboardRequest.model_validate(body)
        except ValidationError:
            raise InvalidRequest()

        # token is checked before the Supabase client is built
        token = require_token(payload.token)
        result = await build_public_dashboard(get_supabase(), token, settings=settings)
        return json_response(result.model_dump(), origin=origin)

    except PublicDashboardError as e:
        if e.status_code >= 500:
            logger.error(f"Public dashboard failed: {e.__cause__ or e}")
        return json_response({"error": e.message}, e.status_code, origin=origin)
    except Exception:
        logger.exception("Public dashboard: unexpected error")
        return json_response({"error": "Erro interno"}, 500, origin=origin)


@api_router.get("/health")
async def health_check():
    return {"status": "healthy", "timestamp": datetime.now(timezone.utc).isoformat()}


app.include_router(api_router)

