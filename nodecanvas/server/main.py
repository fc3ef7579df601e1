"""
NodeCanvas HTTP + Socket.IO entry point.

    nodecanvas-server
    uvicorn nodecanvas.server.main:socket_app --port 3001
"""
from __future__ import annotations

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from ..config import Settings, configure_logging
from .events.socket_server import create_socket_app
from .routes.graph_routes import router

app = FastAPI(title="NodeCanvas API", version="1.0.0")

# the editor is served from a different origin during development
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.include_router(router, prefix="/api")


@app.get("/health")
async def health() -> dict:
    return {"status": "ok"}


socket_app = create_socket_app(app)


def main() -> None:
    import uvicorn

    settings = Settings.from_env()
    configure_logging(settings)
    uvicorn.run(
        "nodecanvas.server.main:socket_app",
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()
