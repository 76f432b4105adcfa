"""
ASGI entrypoint: expose `app` pour les gestionnaires de processus.

- En production, uvicorn/gunicorn importe `washpos.asgi:app`.
- La configuration FastAPI (routers, middlewares, handlers) est centralisée dans
  washpos.app_setup.factory; ce fichier ne fait qu'exposer l'instance.
"""

from washpos.app import app

if __name__ == "__main__":
    import os
    import uvicorn
    uvicorn.run(
        "washpos.asgi:app",
        host="0.0.0.0",
        port=int(os.getenv("PORT", "8000")),
        reload=True,
    )
