"""
Fabriques de clients Supabase, utilisées comme dépendances FastAPI (Depends).
Les services et repositories reçoivent le client en argument: les tests
substituent un faux via app.dependency_overrides.
"""
from functools import lru_cache
from typing import Any, Dict, List, Optional
from postgrest.exceptions import APIError
from supabase import create_client, Client
from marketplace import config

UNIQUE_VIOLATION = "23505"


@lru_cache(maxsize=1)
def get_supabase() -> Client:
    """Client 'anon': résolution de l'identité (auth.get_user) uniquement."""
    return create_client(config.SUPABASE_URL, config.SUPABASE_ANON)


@lru_cache(maxsize=1)
def get_service_supabase() -> Client:
    """Client service-role (bypass RLS): seules les écritures serveur (commandes, ledgers) passent par lui."""
    if not config.SUPABASE_SERVICE_KEY:
        raise RuntimeError("SUPABASE_SERVICE_KEY manquant pour get_service_supabase()")
    return create_client(config.SUPABASE_URL, config.SUPABASE_SERVICE_KEY)


def rows_of(res) -> List[Dict[str, Any]]:
    rows = getattr(res, "data", None) or []
    return rows if isinstance(rows, list) else [rows]


def first_row(res) -> Optional[Dict[str, Any]]:
    rows = rows_of(res)
    return rows[0] if rows else None


def is_unique_violation(exc: Exception) -> bool:
    """Violation de contrainte unique Postgres (code 23505) remontée par PostgREST."""
    return isinstance(exc, APIError) and str(getattr(exc, "code", "") or "") == UNIQUE_VIOLATION
