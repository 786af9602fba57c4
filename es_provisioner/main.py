from contextlib import asynccontextmanager
import asyncio
import logging
import threading

import kopf
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from starlette import status
from starlette.concurrency import run_in_threadpool

import es_provisioner.operator  # noqa: F401  (registers the kopf handlers)
from es_provisioner.routes.health import router as health_router
from es_provisioner.services.config import OperatorConfig, SearchBackendConfig, load_environment
from es_provisioner.services.dependencies import (
    build_index_reconciler,
    get_search_backend_service_for_config,
    load_kubernetes_config,
)
from es_provisioner.services.search_backend_service import SearchBackendError
from es_provisioner.services.search_connection import SearchConnectionError


logger = logging.getLogger(__name__)

_OPERATOR_SHUTDOWN_TIMEOUT_SECONDS = 30.0


def _ensure_logging() -> None:
    formatter = logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s")
    root = logging.getLogger()
    if not root.handlers:
        logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    else:
        root.setLevel(logging.INFO)
        for handler in root.handlers:
            handler.setFormatter(formatter)


def _run_operator(*, operator_config: OperatorConfig, memo: kopf.Memo, stop_flag: threading.Event) -> None:
    """Run kopf in its own thread and event loop; it stops when `stop_flag` is set."""

    namespaces = [operator_config.watch_namespace] if operator_config.watch_namespace else []
    logger.info("Operator starting (namespace=%s)", operator_config.watch_namespace or "<all>")
    asyncio.run(
        kopf.operator(
            clusterwide=not namespaces,
            namespaces=namespaces,
            standalone=True,
            stop_flag=stop_flag,
            memo=memo,
        )
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    _ensure_logging()
    load_environment()

    operator_config = OperatorConfig.from_env()
    backend_config = SearchBackendConfig.from_env()

    load_kubernetes_config()
    backend_service = await run_in_threadpool(get_search_backend_service_for_config, backend_config)

    # One flag stops both the kopf operator and any saga between two steps.
    stop_flag = threading.Event()
    reconciler = build_index_reconciler(
        backend_service=backend_service,
        operator_config=operator_config,
        stop_event=stop_flag,
    )

    app.state.search_backend = backend_service
    app.state.operator_thread = threading.Thread(
        target=_run_operator,
        kwargs={
            "operator_config": operator_config,
            "memo": kopf.Memo(reconciler=reconciler, operator_config=operator_config),
            "stop_flag": stop_flag,
        },
        name="kopf-operator",
        daemon=True,
    )
    app.state.operator_thread.start()

    yield

    logger.info("Stopping operator")
    stop_flag.set()
    await run_in_threadpool(app.state.operator_thread.join, _OPERATOR_SHUTDOWN_TIMEOUT_SECONDS)
    if app.state.operator_thread.is_alive():
        logger.warning("Operator did not stop within %.0fs", _OPERATOR_SHUTDOWN_TIMEOUT_SECONDS)


app = FastAPI(lifespan=lifespan)

app.include_router(health_router)


@app.exception_handler(SearchBackendError)
@app.exception_handler(SearchConnectionError)
async def search_backend_error_handler(request: Request, exc: Exception) -> JSONResponse:
    """Map backend failures seen by HTTP endpoints to 503 Service Unavailable.

    Returns:
        503 with a JSON body: {"detail": "..."}
    """
    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content={"detail": str(exc)},
    )


@app.get("/")
async def root():
    return {"message": "es-provisioner is running."}
