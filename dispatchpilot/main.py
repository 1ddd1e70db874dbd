import logging

from fastapi import FastAPI

from dispatchpilot.api.routes import recommendations, weights_configs
from dispatchpilot.core.config import settings

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

app = FastAPI(title="DispatchPilot API", version="0.1.0")

app.include_router(recommendations.router, prefix="/api/v1")
app.include_router(weights_configs.router, prefix="/api/v1")


@app.get("/health")
def health_check():
    return {"status": "ok"}
