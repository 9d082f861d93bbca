# main.py
"""
FastAPI Application Entry Point

Routes live in api/routes.py; this module only wires the app together.
"""

import logging

from dotenv import load_dotenv

load_dotenv()

from fastapi import FastAPI

from api.middleware import setup_middleware
from api.routes import router, get_automation_service
from webpilot import __version__
from webpilot.core.config import settings

logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

app = FastAPI(
    title="WebPilot Agent API",
    description="Hierarchical planning and execution of browser automation tasks",
    version=__version__
)

setup_middleware(
    app,
    allowed_origins=[
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    ]
)

app.include_router(router)


@app.on_event("shutdown")
async def shutdown_event():
    """Cancel running automation and close their browsers."""
    print("[SHUTDOWN] Stopping automation runs...")
    try:
        await get_automation_service().shutdown()
        print("[SHUTDOWN] ✅ Cleanup complete!")
    except Exception as e:
        print(f"[SHUTDOWN] Error during cleanup: {e}")


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("main:app", host=settings.api_host, port=settings.api_port)
