from typing import Any, Dict, List
from fastapi import Request, HTTPException
import os
import time
import hashlib

from marketplace.utils.security import bearer_token


def _client_key(req: Request) -> str:
    # Priorité: jeton Bearer (hashé) puis IP
    token = bearer_token(req)
    path = req.url.path
    if token:
        h = hashlib.sha256(token.encode("utf-8")).hexdigest()[:16]
        return f"user:{h}:{path}"
    ip = req.client.host if req.client else "local"
    return f"ip:{ip}:{path}"


def _local_hit(store: Dict[int, Dict[str, List[float]]], key: str, times: int, seconds: int, now: float) -> bool:
    """
    Fenêtre glissante en mémoire (une table par durée de fenêtre).
    - Purge les clés dont le dernier hit est sorti de la fenêtre: la table ne garde que les clients actifs
    - Retourne False si la limite est atteinte
    """
    window = store.setdefault(seconds, {})
    for stale in [k for k, hits in window.items() if now - hits[-1] >= seconds]:
        del window[stale]
    hits = [t for t in window.get(key, []) if now - t < seconds]
    if len(hits) >= times:
        window[key] = hits
        return False
    hits.append(now)
    window[key] = hits
    return True


def optional_rate_limit(times: int, seconds: int):
    async def _dep(request: Request):
        # Fallback mémoire en DEV si demandé
        if os.getenv("LOCAL_RATE_LIMIT_FALLBACK") == "1":
            store = getattr(request.app.state, "_rl_store", None)
            if store is None:
                store = request.app.state._rl_store = {}
            if not _local_hit(store, _client_key(request), times, seconds, time.time()):
                raise HTTPException(status_code=429, detail="Too Many Requests")
            return

        if getattr(request.app.state, "rate_limit_enabled", None) is False:
            return

        from fastapi_limiter.depends import RateLimiter

        async def _identifier(req: Request) -> str:
            return _client_key(req)
        try:
            return await RateLimiter(times=times, seconds=seconds, identifier=_identifier)(request)
        except HTTPException:
            raise
        except Exception:
            # Redis indisponible: pas de 429 en prod
            return
    return _dep


def rate_limit_health_info(request: Request) -> Dict[str, Any]:
    enabled = getattr(request.app.state, "rate_limit_enabled", None)
    from fastapi_limiter import FastAPILimiter
    ready = getattr(FastAPILimiter, "redis", None) is not None
    return {
        "enabled": (bool(enabled) if enabled is not None else None),
        "ready": ready,
        "backend": "redis" if ready else None,
    }
