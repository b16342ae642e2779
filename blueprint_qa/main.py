import os

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.routing import APIRoute
from starlette.middleware import Middleware
from starlette_context import plugins
from starlette_context.middleware import RawContextMiddleware

from opentelemetry import trace
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.sdk.trace.export import BatchSpanProcessor
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.instrumentation.requests import RequestsInstrumentor

from blueprint_qa.api.main import api_router
from blueprint_qa.configs.settings import settings
from blueprint_qa.exceptions.error_handler import register_exception_handlers
from lib.logger import Logger

logger = Logger.get_logger(os.path.basename(__file__))


def custom_generate_unique_id(route: APIRoute) -> str:
    if route.tags and len(route.tags) > 0:
        return f"{route.tags[0]}-{route.name}"
    else:
        return f"default-{route.name}"


def get_application() -> FastAPI:
    middleware = [
        Middleware(
            RawContextMiddleware,
            plugins=(
                plugins.RequestIdPlugin(),
                plugins.CorrelationIdPlugin(),
            ),
        )
    ]

    fastapi_kwargs = {
        **settings.fastapi_kwargs,
        "description": "Construction blueprint QA analysis",
        "generate_unique_id_function": custom_generate_unique_id,
        "middleware": middleware,
    }
    application = FastAPI(**fastapi_kwargs)

    # OpenTelemetry tracing setup
    resource = Resource.create({"service.name": settings.PROJECT_NAME})
    tracer_provider = TracerProvider(resource=resource)

    endpoint = settings.OTEL_EXPORTER_OTLP_ENDPOINT

    # Configure OTLP exporter only if endpoint is provided and tracing is enabled
    if endpoint and settings.OTEL_TRACING_ENABLED:
        exporter = OTLPSpanExporter(endpoint=endpoint, insecure=True)
        tracer_provider.add_span_processor(BatchSpanProcessor(exporter))

    trace.set_tracer_provider(tracer_provider)
    RequestsInstrumentor().instrument()
    FastAPIInstrumentor.instrument_app(application, tracer_provider=tracer_provider)

    application.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_hosts,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    application.add_middleware(GZipMiddleware, minimum_size=1000)

    register_exception_handlers(application)
    application.include_router(api_router, prefix=settings.API_PREFIX)

    logger.info("Application configured", environment=settings.ENVIRONMENT_NAME, api_prefix=settings.API_PREFIX)
    return application


app = get_application()

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8000, log_level="info", server_header=False)
