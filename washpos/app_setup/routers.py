"""
Registre central des routers (API v1 caisse, health).
"""
from fastapi import FastAPI
from washpos.pos import views as pos_views
from washpos.health.router import router as health_router

def register_routers(app: FastAPI) -> None:
    # API v1
    app.include_router(pos_views.router)
    # Health & monitoring
    app.include_router(health_router)
