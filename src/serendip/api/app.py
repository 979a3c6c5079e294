"""FastAPI application exposing the serendip discovery services."""

from __future__ import annotations

import time
from dataclasses import dataclass
from uuid import uuid4

from fastapi import Depends, FastAPI, HTTPException, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from serendip.api.schemas import (
    ConnectionModel,
    ConnectionsResponse,
    DeepConnectionModel,
    DeepConnectionsResponse,
    DiscoverRequest,
    IndexStatsResponse,
    TopConnectionsRequest,
)
from serendip.cache import SerendipityCache
from serendip.config import Settings, get_settings
from serendip.discovery.classifier import DomainClassifier, NoteNotFoundError
from serendip.discovery.deep import DeepDiscoveryEngine
from serendip.discovery.standard import StandardDiscoveryEngine
from serendip.embeddings.store import EmbeddingStore
from serendip.metrics.observability import (
    DiscoveryMetrics,
    bind_correlation_id,
    clear_correlation_id,
    configure_logging,
    get_logger,
)
from serendip.models import utcnow
from serendip.scoring.similarity import EmbeddingDimensionError
from serendip.services.analogy import AnalogyService, fallback_analogy
from serendip.services.bootstrap import build_services


@dataclass(frozen=True)
class AppDependencies:
    store: EmbeddingStore
    classifier: DomainClassifier
    engine: StandardDiscoveryEngine
    cache: SerendipityCache
    deep_engine: DeepDiscoveryEngine | None = None
    analogy: AnalogyService | None = None


def _build_dependencies(settings: Settings) -> AppDependencies:
    bundle = build_services(settings)
    return AppDependencies(
        store=bundle.store,
        classifier=bundle.classifier,
        engine=bundle.engine,
        cache=bundle.cache,
        deep_engine=bundle.deep_engine,
        analogy=bundle.analogy,
    )


class RateLimiter:
    """Sliding-window request limiter keyed by client and path."""

    def __init__(self, requests: int, window_seconds: int) -> None:
        self.requests = requests
        self.window = window_seconds
        self._buckets: dict[str, list[float]] = {}

    def __call__(self, request: Request) -> None:
        client_host = request.client.host if request.client else "unknown"
        client_ip = request.headers.get("x-forwarded-for") or client_host
        key = f"{client_ip}:{request.url.path}"
        now = time.time()
        bucket = self._buckets.setdefault(key, [])
        cutoff = now - self.window
        while bucket and bucket[0] < cutoff:
            bucket.pop(0)
        if len(bucket) >= self.requests:
            raise HTTPException(status_code=status.HTTP_429_TOO_MANY_REQUESTS, detail="Rate limit exceeded")
        bucket.append(now)


def create_app(*, settings: Settings | None = None, dependencies: AppDependencies | None = None) -> FastAPI:
    settings = settings or get_settings()
    deps = dependencies or _build_dependencies(settings)

    configure_logging()
    logger = get_logger("api")
    app = FastAPI(title="Serendip API", version="0.1.0")
    app.state.dependencies = deps

    if settings.cors_allow_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=list(settings.cors_allow_origins),
            allow_credentials=settings.cors_allow_credentials,
            allow_methods=list(settings.cors_allow_methods),
            allow_headers=list(settings.cors_allow_headers),
        )

    @app.middleware("http")
    async def add_correlation_id(request: Request, call_next):  # type: ignore[override]
        correlation_id = request.headers.get("X-Request-ID", uuid4().hex)
        request.state.correlation_id = correlation_id
        bind_correlation_id(correlation_id)
        try:
            response = await call_next(request)
        finally:
            clear_correlation_id()
        response.headers["X-Correlation-ID"] = correlation_id
        return response

    def require_api_key(request: Request) -> None:
        expected = settings.api_key
        if not expected:
            return
        if request.headers.get("X-API-Key") != expected:
            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid API key")

    rate_limiter = RateLimiter(settings.rate_limit_requests, settings.rate_limit_window_seconds)

    @app.exception_handler(EmbeddingDimensionError)
    async def handle_dimension_error(request: Request, exc: EmbeddingDimensionError) -> JSONResponse:
        correlation_id = getattr(request.state, "correlation_id", uuid4().hex)
        logger.error("discovery.dimension_mismatch", correlation_id=correlation_id, detail=str(exc))
        return JSONResponse(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            content={"detail": str(exc), "correlation_id": correlation_id},
        )

    @app.exception_handler(Exception)
    async def handle_unexpected_error(request: Request, exc: Exception) -> JSONResponse:
        correlation_id = getattr(request.state, "correlation_id", uuid4().hex)
        logger.error("unhandled.error", correlation_id=correlation_id, detail=str(exc))
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"detail": "Internal Server Error", "correlation_id": correlation_id},
        )

    def get_dependencies(request: Request) -> AppDependencies:
        return request.app.state.dependencies

    def _stats(dep: AppDependencies) -> IndexStatsResponse:
        embedded = dep.store.count()
        DiscoveryMetrics.embedded_notes.set(embedded)
        return IndexStatsResponse(
            indexed_notes=dep.classifier.note_count,
            embedded_notes=embedded,
            embeddings_source=settings.embeddings_source,
            classification_method=dep.classifier.strategy.name,
        )

    @app.post("/connections/discover", response_model=ConnectionsResponse)
    async def discover_connections(
        payload: DiscoverRequest,
        dep: AppDependencies = Depends(get_dependencies),
        _auth: None = Depends(require_api_key),
        _rl: None = Depends(rate_limiter),
    ) -> ConnectionsResponse:
        try:
            connections = dep.engine.discover(payload.note_id)
        except NoteNotFoundError as exc:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
        if payload.explain:
            for connection in connections:
                if dep.analogy is not None:
                    dep.analogy.attach(connection)
                else:
                    connection.attach_explanation(fallback_analogy(connection))
        return ConnectionsResponse(connections=[ConnectionModel.from_connection(conn) for conn in connections])

    @app.post("/connections/top", response_model=ConnectionsResponse)
    async def top_connections(
        payload: TopConnectionsRequest,
        dep: AppDependencies = Depends(get_dependencies),
        _auth: None = Depends(require_api_key),
        _rl: None = Depends(rate_limiter),
    ) -> ConnectionsResponse:
        connections = dep.engine.find_top_serendipitous_connections(limit=payload.limit)
        timestamp = utcnow()
        dep.cache.save_standard(connections, timestamp=timestamp)
        return ConnectionsResponse(
            connections=[ConnectionModel.from_connection(conn) for conn in connections],
            timestamp=timestamp,
        )

    @app.get("/connections/top/cached", response_model=ConnectionsResponse)
    async def cached_top_connections(dep: AppDependencies = Depends(get_dependencies)) -> ConnectionsResponse:
        cached = dep.cache.load_standard()
        if cached is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="No cached connections")
        return ConnectionsResponse(
            connections=[ConnectionModel.from_connection(conn) for conn in cached.connections],
            timestamp=cached.timestamp,
        )

    @app.delete("/connections/top/cached", status_code=status.HTTP_204_NO_CONTENT)
    async def clear_top_connections(
        dep: AppDependencies = Depends(get_dependencies),
        _auth: None = Depends(require_api_key),
    ) -> Response:
        dep.cache.clear_standard()
        return Response(status_code=status.HTTP_204_NO_CONTENT)

    @app.post("/connections/deep", response_model=DeepConnectionsResponse)
    async def deep_connections(
        dep: AppDependencies = Depends(get_dependencies),
        _auth: None = Depends(require_api_key),
        _rl: None = Depends(rate_limiter),
    ) -> DeepConnectionsResponse:
        if dep.deep_engine is None:
            raise HTTPException(
                status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
                detail="Deep discovery requires an evaluator model",
            )
        connections = dep.deep_engine.discover()
        timestamp = utcnow()
        dep.cache.save_deep(connections, timestamp=timestamp)
        return DeepConnectionsResponse(
            connections=[DeepConnectionModel.from_connection(conn) for conn in connections],
            timestamp=timestamp,
        )

    @app.get("/connections/deep/cached", response_model=DeepConnectionsResponse)
    async def cached_deep_connections(dep: AppDependencies = Depends(get_dependencies)) -> DeepConnectionsResponse:
        cached = dep.cache.load_deep()
        if cached is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="No cached deep connections")
        return DeepConnectionsResponse(
            connections=[DeepConnectionModel.from_connection(conn) for conn in cached.connections],
            timestamp=cached.timestamp,
        )

    @app.delete("/connections/deep/cached", status_code=status.HTTP_204_NO_CONTENT)
    async def clear_deep_connections(
        dep: AppDependencies = Depends(get_dependencies),
        _auth: None = Depends(require_api_key),
    ) -> Response:
        dep.cache.clear_deep()
        return Response(status_code=status.HTTP_204_NO_CONTENT)

    @app.post("/index/refresh", response_model=IndexStatsResponse)
    async def refresh_index(
        dep: AppDependencies = Depends(get_dependencies),
        _auth: None = Depends(require_api_key),
    ) -> IndexStatsResponse:
        dep.classifier.refresh_index()
        return _stats(dep)

    @app.get("/index/stats", response_model=IndexStatsResponse)
    async def index_stats(dep: AppDependencies = Depends(get_dependencies)) -> IndexStatsResponse:
        return _stats(dep)

    @app.get("/metrics")
    async def metrics() -> Response:
        return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)

    @app.get("/healthz")
    async def healthcheck() -> dict[str, str]:
        from serendip import __version__

        return {"status": "ok", "version": __version__, "environment": settings.environment}

    @app.head("/healthz")
    async def healthcheck_head() -> Response:
        return Response(status_code=status.HTTP_200_OK)

    @app.get("/livez")
    async def liveness() -> dict[str, str]:
        return {"status": "alive"}

    @app.get("/healthz/ready")
    async def readiness(dep: AppDependencies = Depends(get_dependencies)) -> dict[str, str]:
        try:
            dep.store.count()
            return {"status": "ready"}
        except Exception as exc:  # pragma: no cover
            return {"status": "error", "detail": str(exc)}

    return app


app = create_app()
