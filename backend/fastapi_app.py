# fastapi_app.py
from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException, Request

from config import settings
from controller import Controller
from kube_client import KubeClient
from reconciler import Reconciler
from watches import build_watch_sources
from workqueue import RateLimitingQueue

logging.basicConfig(
    level=settings.LOG_LEVEL.upper(),
    format="%(asctime)s %(levelname)s [%(threadName)s] %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


def build_controller() -> Controller:
    """Wire the Kubernetes client, reconciler, watches and work queue."""
    kube = KubeClient(
        namespace=settings.WATCH_NAMESPACE,
        in_cluster=settings.K8S_IN_CLUSTER,
        context=settings.K8S_CONTEXT,
        group=settings.MYAPP_GROUP,
        version=settings.MYAPP_VERSION,
        plural=settings.MYAPP_PLURAL,
        kind=settings.MYAPP_KIND,
    )
    return Controller(
        kube=kube,
        reconciler=Reconciler(kube),
        sources=build_watch_sources(kube),
        queue=RateLimitingQueue(base_delay=settings.BACKOFF_BASE_SECS, max_delay=settings.BACKOFF_MAX_SECS),
        workers=settings.WORKERS,
        watch_timeout_secs=settings.WATCH_TIMEOUT_SECS,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    controller = build_controller()
    controller.start()
    app.state.controller = controller
    logger.info(f"✅ {settings.APP_NAME} started ({settings.APP_ENV})")
    try:
        yield
    finally:
        controller.stop()


# -----------------------------------------------------------------------------
# FastAPI app (health probes)
# -----------------------------------------------------------------------------
app = FastAPI(title="MyApp Operator", version="0.1.0", lifespan=lifespan)


@app.get("/health")
@app.get("/healthz")
async def health():
    return {"status": "healthy"}


@app.get("/readyz")
async def ready(request: Request):
    controller = getattr(request.app.state, "controller", None)
    if controller is None or not controller.ready:
        raise HTTPException(503, "Watches not synced yet")
    return {"status": "ready"}


def main() -> None:
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=settings.HTTP_PORT)


if __name__ == "__main__":
    main()
