"""
Registre central des routers.
- API v1: checkout, webhooks, billing, vendors, orders
- Health: health_router
"""
from fastapi import FastAPI
from marketplace.checkout import views as checkout_views
from marketplace.webhooks import views as webhooks_views
from marketplace.billing import views as billing_views
from marketplace.vendors import views as vendors_views
from marketplace.orders import views as orders_views
from marketplace.health.router import router as health_router


def register_routers(app: FastAPI) -> None:
    # API v1
    app.include_router(checkout_views.router)
    app.include_router(webhooks_views.router)
    app.include_router(billing_views.router)
    app.include_router(vendors_views.router)
    app.include_router(orders_views.router)
    # Health & monitoring
    app.include_router(health_router)
