"""
ASGI entrypoint: expose `app` for process managers / deployments.

- En production, un process manager (ex: gunicorn -k uvicorn.workers.UvicornWorker) importe
  `marketplace.asgi:app`.
- Toute la configuration est centralisée dans marketplace.app_setup.factory.
"""

from marketplace.app import app

if __name__ == "__main__":
    import os
    import uvicorn
    uvicorn.run(
        "marketplace.asgi:app",
        host="0.0.0.0",
        port=int(os.getenv("PORT", "8000")),
        reload=True,
    )
