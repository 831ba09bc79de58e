from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.responses import ORJSONResponse

from nodegate.api.routes import admin_router
from nodegate.core.config import Settings, get_settings
from nodegate.core.logging import configure_logging, get_logger
from nodegate.services.admission import AdmissionTestRunner, NodeClientFactory
from nodegate.services.command_queue import InMemoryCommandQueue
from nodegate.services.node_client import http_node_client_factory
from nodegate.services.node_config_store import NodeConfigStore
from nodegate.services.status_reporter import StatusMessageBuilder

logger = get_logger("nodegate.main")


def create_app(
    settings: Settings | None = None,
    config_store: NodeConfigStore | None = None,
    client_factory: NodeClientFactory | None = None,
) -> FastAPI:
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        configure_logging(settings.log_level)

        store = config_store or NodeConfigStore.from_file(settings.nodes_config_path)
        queue = InMemoryCommandQueue(maxsize=settings.command_queue_maxsize)
        factory = client_factory or http_node_client_factory(
            timeout=settings.request_timeout_sec,
            dtype=settings.model_dtype,
        )

        app.state.settings = settings
        app.state.config_store = store
        app.state.command_queue = queue
        app.state.runner = AdmissionTestRunner.from_settings(settings, store, factory, queue)
        app.state.status_builder = StatusMessageBuilder(
            urgent_window_sec=settings.poc_urgent_window_sec,
            auto_test_threshold_sec=settings.auto_test_threshold_sec,
        )
        logger.info(
            "service_started",
            extra={
                "event": "service.started",
                "nodes": len(store.get_nodes()),
                "run_sample_inference": settings.run_sample_inference,
                "notify_node_on_failure": settings.notify_node_on_failure,
            },
        )
        try:
            yield
        finally:
            logger.info("service_stopped", extra={"event": "service.stopped"})

    app = FastAPI(
        title=settings.app_name,
        default_response_class=ORJSONResponse,
        lifespan=lifespan,
    )
    app.include_router(admin_router, prefix=settings.api_v1_prefix)

    @app.get("/healthz")
    async def healthcheck() -> dict[str, str]:
        return {"status": "ok"}

    return app


app = create_app()
