"""
OpenTelemetry wiring for the order service

The FastAPI app is instrumented when it is built; the database engine and the
outbound mail client are instrumented once the engine exists at startup.
"""
from fastapi import FastAPI
from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.instrumentation.httpx import HTTPXClientInstrumentor
from opentelemetry.instrumentation.sqlalchemy import SQLAlchemyInstrumentor
from opentelemetry.sdk.resources import DEPLOYMENT_ENVIRONMENT, SERVICE_NAME, SERVICE_VERSION, Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor
from opentelemetry.sdk.trace.sampling import ParentBased, TraceIdRatioBased
from sqlalchemy.engine import Engine
from storefront.config import Settings
from typing import Optional
import logging

logger = logging.getLogger(__name__)


def build_resource(settings: Settings) -> Resource:
    return Resource.create({
        SERVICE_NAME: settings.service_name,
        SERVICE_VERSION: settings.service_version,
        DEPLOYMENT_ENVIRONMENT: settings.environment,
    })


class Tracing:
    """Owns the tracer provider and the instrumentors attached to it"""

    def __init__(self, settings: Settings):
        self.settings = settings
        self.provider: Optional[TracerProvider] = None
        self._instrumented_engine = False

    @property
    def enabled(self) -> bool:
        return self.settings.otel_enabled

    def instrument_app(self, app: FastAPI) -> bool:
        """Add request spans; must run before the app starts serving"""
        if not self.enabled:
            return False
        FastAPIInstrumentor.instrument_app(app, excluded_urls=self.settings.otel_excluded_urls)
        logger.info(f"Request tracing enabled, excluding {self.settings.otel_excluded_urls}")
        return True

    def start(self, engine: Engine) -> Optional[TracerProvider]:
        """
        Install the tracer provider and instrument storage and mail calls

        Returns:
            The provider, or None when tracing is disabled
        """
        if not self.enabled:
            logger.info("Tracing disabled")
            return None

        sampler = ParentBased(TraceIdRatioBased(self.settings.otel_sample_ratio))
        self.provider = TracerProvider(resource=build_resource(self.settings), sampler=sampler)
        self.provider.add_span_processor(BatchSpanProcessor(
            OTLPSpanExporter(endpoint=self.settings.otel_endpoint, insecure=self.settings.otel_insecure)
        ))
        trace.set_tracer_provider(self.provider)

        SQLAlchemyInstrumentor().instrument(engine=engine)
        HTTPXClientInstrumentor().instrument()
        self._instrumented_engine = True

        logger.info(
            f"Tracing {self.settings.service_name} to {self.settings.otel_endpoint} "
            f"at sample ratio {self.settings.otel_sample_ratio}"
        )
        return self.provider

    def shutdown(self):
        """Flush pending spans and detach instrumentors"""
        if self._instrumented_engine:
            SQLAlchemyInstrumentor().uninstrument()
            HTTPXClientInstrumentor().uninstrument()
            self._instrumented_engine = False
        if self.provider is not None:
            self.provider.shutdown()
            self.provider = None
