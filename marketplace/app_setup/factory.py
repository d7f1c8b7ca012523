"""
Factory d'application utilisée par les entrypoints (marketplace.asgi, python -m marketplace).
Ordonne les étapes d'initialisation de manière lisible et testable.
"""
from fastapi import FastAPI
from .lifespan import lifespan
from .middlewares import register_cors_middleware, register_security_middleware
from .exceptions import register_exception_handlers
from .routers import register_routers


def create_app() -> FastAPI:
    """
    Construit l'app FastAPI avec le lifespan et enregistre:
      - en-têtes de sécurité, puis CORS (ajouté en dernier: s'exécute en premier, pre-flight compris)
      - gestionnaires d'exceptions ({"error": ...})
      - tous les routers (checkout, webhooks, billing, vendors, orders, health)
    """
    app = FastAPI(title="Farm Marketplace API", lifespan=lifespan)
    register_security_middleware(app)
    register_cors_middleware(app)
    register_exception_handlers(app)
    register_routers(app)
    return app
