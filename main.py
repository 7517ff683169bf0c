"""Alpha Pack signal service entry point."""

from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from src.api.error_handlers import register_error_handlers
from src.api.routes import router
from src.utils.config import config
from src.utils.logger import StructuredLogger

logger = StructuredLogger("Application")


@asynccontextmanager
async def lifespan(app: FastAPI):
    try:
        config.validate()
    except ValueError as e:
        logger.critical("Configuration error", {"reason": str(e)})
        raise

    logger.info(
        "Signal service starting",
        {
            "version": app.version,
            "default_assets": config.signals.default_assets,
            "variance_policy": config.signals.venue_variance_policy,
            "primary_predictor": config.prediction.primary_url is not None,
            "secondary_predictor": config.prediction.secondary_url is not None,
        },
    )
    yield
    logger.info("Signal service stopped")


app = FastAPI(
    title="Alpha Pack Signals",
    description="Composite trading signals from technical, arbitrage and prediction sources",
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["GET"],
    allow_headers=["*"],
)

register_error_handlers(app)
app.include_router(router, prefix="/api", tags=["signals"])


@app.get("/health")
async def health_check():
    return {"status": "healthy", "version": app.version}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host=config.server.host, port=config.server.port)
