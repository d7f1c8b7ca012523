"""
Middlewares transverses de l'application.
- register_cors_middleware: répond aux pre-flight OPTIONS et ajoute les en-têtes CORS aux réponses.
  Les chemins webhook autorisent en plus l'en-tête stripe-signature.
- register_security_middleware: en-têtes de sécurité et CSP (docs Swagger comprises).
Notes:
- L'ordre d'ajout est important: le dernier middleware ajouté s'exécute en premier.
"""
from typing import Dict, Optional
from fastapi import Request, FastAPI
from fastapi.responses import PlainTextResponse
from marketplace.config import SUPABASE_URL, CORS_ORIGINS

WEBHOOK_PATH_PREFIX = "/api/v1/webhooks/"
ALLOWED_HEADERS = "authorization, x-client-info, apikey, content-type"


def _allowed_origin(origin: Optional[str]) -> Optional[str]:
    if "*" in CORS_ORIGINS:
        return "*"
    if origin and origin in CORS_ORIGINS:
        return origin
    return None


def cors_headers(path: str, origin: Optional[str] = None) -> Dict[str, str]:
    allowed = _allowed_origin(origin)
    if not allowed:
        return {}
    headers = ALLOWED_HEADERS
    methods = "GET, POST, OPTIONS"
    if path.startswith(WEBHOOK_PATH_PREFIX):
        headers += ", stripe-signature"
        methods = "POST, OPTIONS"
    return {
        "Access-Control-Allow-Origin": allowed,
        "Access-Control-Allow-Methods": methods,
        "Access-Control-Allow-Headers": headers,
    }


def register_cors_middleware(app: FastAPI) -> None:
    """
    CORS permissif pour le client mobile/web:
    - OPTIONS: réponse 'ok' immédiate, sans authentification ni routage
    - autres méthodes: en-têtes ajoutés à la réponse (y compris les erreurs JSON)
    """
    @app.middleware("http")
    async def cors(request: Request, call_next):
        path = request.url.path
        origin = request.headers.get("origin")
        if request.method.upper() == "OPTIONS":
            return PlainTextResponse("ok", headers=cors_headers(path, origin))
        response = await call_next(request)
        for key, value in cors_headers(path, origin).items():
            response.headers.setdefault(key, value)
        return response


def register_security_middleware(app: FastAPI) -> None:
    @app.middleware("http")
    async def security_headers(request: Request, call_next):
        response = await call_next(request)
        response.headers.setdefault("X-Frame-Options", "DENY")
        response.headers.setdefault("X-Content-Type-Options", "nosniff")
        response.headers.setdefault("Referrer-Policy", "no-referrer")
        response.headers.setdefault("Permissions-Policy", "geolocation=(), microphone=(), camera=()")

        csp_connect = ["'self'"]
        if SUPABASE_URL:
            csp_connect.append(SUPABASE_URL.rstrip("/"))
        swagger_cdns = ["https://cdn.jsdelivr.net", "https://unpkg.com"]
        csp = (
            "default-src 'self'; "
            "base-uri 'self'; object-src 'none'; frame-ancestors 'none'; "
            "img-src 'self' data: https://fastapi.tiangolo.com; "
            f"style-src 'self' 'unsafe-inline' {' '.join(swagger_cdns)}; "
            f"script-src 'self' 'unsafe-inline' {' '.join(swagger_cdns)}; "
            f"connect-src {' '.join(csp_connect)}"
        )
        response.headers.setdefault("Content-Security-Policy", csp)
        return response
