"""
Support Assistant - Main Application
=====================================

AI-assisted support bot for chat communities.

Modules:
- Knowledge: Operator-curated corpus with embedding search
- Assistant: Grounded response composition and sentiment classification
- Support: Ticket/response lifecycle, approvals, feedback and the Discord gateway

Clean Architecture Layers:
- Interfaces: FastAPI controllers
- Application: Services and DTOs
- Domain: Entities and value objects
- Infrastructure: Database, LLM providers, Discord
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

# Configuration and Core
from config import settings
from core import ApplicationException, ConfigurationException

# Infrastructure
from infrastructure.database import init_database, close_database, create_tables
from infrastructure.llm import build_embedding_client, build_chat_client

# Knowledge Module
from knowledge.application import EmbeddingGateway, KnowledgeIndex, KnowledgeService
from knowledge.infrastructure import SQLAlchemyKnowledgeRepository, EmbeddingProviderAdapter

# Assistant Module
from assistant.application import ResponseComposer, SentimentClassifier
from assistant.infrastructure import CompletionProviderAdapter

# Support Module
from support.application import TicketLifecycle, FeedbackAggregator, SupportEventDispatcher
from support.infrastructure import (
    SQLAlchemyTicketRepository,
    SQLAlchemyBotResponseRepository,
    SQLAlchemyFeedbackRepository,
    SQLAlchemyBotConfigRepository,
    SQLAlchemyPausedChannelRepository,
    DiscordGateway,
    StuckResponseMonitor,
)

# Module Routers
from knowledge.interfaces import knowledge_router
from support.interfaces import support_router

# Logging
from shared.infrastructure.logging import setup_logging, get_logger
from shared.infrastructure.grafana import init_grafana_exporter

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator:
    """
    Application lifespan manager.

    STARTUP:
    1. Setup structured logging
    2. Initialize database and create tables
    3. Initialize Grafana exporter
    4. Build LLM providers and services
    5. Start Discord gateway
    6. Start stuck-response monitor

    SHUTDOWN:
    1. Stop monitor
    2. Close Discord gateway
    3. Close database connections
    """
    # === STARTUP ===
    setup_logging(level=settings.log_level, environment=settings.environment)
    logger.info("Starting Support Assistant", extra={
        "version": settings.app_version,
        "environment": settings.environment
    })

    logger.info("Initializing database")
    init_database()

    # Create tables (for development - use migrations in production)
    logger.info("Creating database tables")
    try:
        await create_tables()
    except Exception as e:
        logger.warning(f"Database not available - running in degraded mode: {e}")

    logger.info("Initializing Grafana OTLP exporter")
    try:
        if settings.grafana_host and settings.grafana_api_key and settings.grafana_instance_id:
            init_grafana_exporter(
                host=settings.grafana_host,
                api_key=settings.grafana_api_key,
                instance_id=settings.grafana_instance_id
            )
            logger.info("Grafana OTLP exporter initialized successfully")
        else:
            logger.info("Grafana OTLP exporter not configured - metrics will not be exported")
    except Exception as e:
        logger.warning(f"Grafana exporter initialization failed: {e}")

    app.state.knowledge_service = None
    app.state.ticket_lifecycle = None
    app.state.feedback_aggregator = None
    app.state.dispatcher = None
    gateway = None
    monitor = None

    try:
        embedding_client = build_embedding_client()
        chat_client = build_chat_client()
    except ConfigurationException as e:
        logger.error(f"LLM providers not configured - assistant disabled: {e.message}")
    else:
        knowledge_repository = SQLAlchemyKnowledgeRepository()
        tickets = SQLAlchemyTicketRepository()
        responses = SQLAlchemyBotResponseRepository()

        gateway_embeddings = EmbeddingGateway(EmbeddingProviderAdapter(embedding_client))
        completion = CompletionProviderAdapter(chat_client)

        knowledge_service = KnowledgeService(knowledge_repository, gateway_embeddings)
        lifecycle = TicketLifecycle(
            tickets=tickets,
            responses=responses,
            configs=SQLAlchemyBotConfigRepository(),
            paused_channels=SQLAlchemyPausedChannelRepository(),
            knowledge=knowledge_repository,
            classifier=SentimentClassifier(completion),
            composer=ResponseComposer(completion, KnowledgeIndex(gateway_embeddings))
        )
        aggregator = FeedbackAggregator(
            responses=responses,
            feedback=SQLAlchemyFeedbackRepository(),
            tickets=tickets,
            knowledge=knowledge_repository
        )
        dispatcher = SupportEventDispatcher(lifecycle, aggregator, knowledge_repository)

        if settings.discord_bot_token:
            gateway = DiscordGateway(dispatcher)
            lifecycle.attach_sink(gateway)
            dispatcher.set_approval_notifier(gateway)
            await gateway.start()
        else:
            logger.warning("DISCORD_BOT_TOKEN not set - responses will not be delivered")

        if settings.stuck_monitor_interval > 0:
            monitor = StuckResponseMonitor(lifecycle, settings.stuck_monitor_interval)
            await monitor.start()

        app.state.knowledge_service = knowledge_service
        app.state.ticket_lifecycle = lifecycle
        app.state.feedback_aggregator = aggregator
        app.state.dispatcher = dispatcher

    app.state.discord_gateway = gateway
    app.state.stuck_monitor = monitor

    logger.info("Support Assistant started successfully")

    yield  # Application runs here

    # === SHUTDOWN ===
    logger.info("Shutting down Support Assistant")

    if monitor:
        await monitor.stop()

    if gateway:
        await gateway.close()

    await close_database()

    logger.info("Support Assistant shutdown complete")


# Create FastAPI application
app = FastAPI(
    title="Support Assistant API",
    description="""
    ## AI-Assisted Community Support

    Operator dashboard API for the Discord support assistant.

    ---

    ### 📚 Knowledge

    - `GET /knowledge` - List the corpus (newest first)
    - `POST /knowledge` - Teach a subject
    - `DELETE /knowledge/{id}` - Forget a subject
    - `POST /knowledge/search` - Semantic search
    - `POST /knowledge/backfill` - Embed entries stored without an embedding

    ### 🎫 Support

    - `GET /tickets`, `GET /tickets/{id}` - Inbound tickets
    - `GET /responses`, `GET /responses/pending`, `GET /responses/stuck` - Bot responses
    - `POST /responses/{id}/approve`, `POST /responses/{id}/reject` - Operator decisions
    - `GET /config`, `PATCH /config` - Bot configuration
    - `GET /channels/paused`, `POST /channels/paused`, `DELETE /channels/paused/{channel_id}` - Pause gate
    - `GET /stats`, `GET /feedback` - Satisfaction metrics

    ---
    """,
    version=settings.app_version,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan
)

# === CORS Middleware ===
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# === Custom Middleware (from shared) ===
from shared.api.middleware import (
    CorrelationIDMiddleware,
    LoggingMiddleware,
    application_exception_handler,
    global_exception_handler
)

app.add_middleware(CorrelationIDMiddleware)
app.add_middleware(LoggingMiddleware)
app.add_exception_handler(ApplicationException, application_exception_handler)
app.add_exception_handler(Exception, global_exception_handler)

# === Include Module Routers ===
app.include_router(knowledge_router)
app.include_router(support_router)


# === Health Check Endpoint ===

@app.get("/health", tags=["Health"])
async def health_check(request: Request):
    """
    Health check endpoint for load balancers and orchestrators.

    Reports service wiring, the Discord connection and the monitor state.
    """
    gateway = getattr(request.app.state, "discord_gateway", None)
    monitor = getattr(request.app.state, "stuck_monitor", None)

    checks = {
        "services": "available" if getattr(request.app.state, "ticket_lifecycle", None) else "unavailable",
        "discord": "not_configured",
        "stuck_monitor": "running" if monitor and monitor.is_running else "stopped",
        "knowledge_entries": "unknown"
    }
    if gateway is not None:
        checks["discord"] = "connected" if gateway.client.is_ready() else "connecting"

    knowledge_service = getattr(request.app.state, "knowledge_service", None)
    if knowledge_service is not None:
        try:
            checks["knowledge_entries"] = await knowledge_service.count()
        except Exception as e:
            checks["knowledge_entries"] = f"error: {str(e)}"

    return {
        "status": "healthy" if checks["services"] == "available" else "degraded",
        "version": settings.app_version,
        "environment": settings.environment,
        "checks": checks
    }


@app.get("/", tags=["Root"])
async def root():
    """Root endpoint with API information."""
    return {
        "service": "Support Assistant",
        "version": settings.app_version,
        "architecture": "Clean Architecture / Modular Monolith",
        "docs": "/docs",
        "health": "/health",
        "modules": {
            "knowledge": {"prefix": "/knowledge"},
            "support": {
                "endpoints": [
                    "/tickets",
                    "/responses",
                    "/config",
                    "/channels/paused",
                    "/stats",
                    "/feedback"
                ]
            }
        }
    }


# === Development Entry Point ===

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.environment == "development",
        log_level="info"
    )
