# module marketplace.app
"""App globale construite par la factory (routers, middlewares, lifespan)."""
from marketplace.app_setup.factory import create_app

app = create_app()
