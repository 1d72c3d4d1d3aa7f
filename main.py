from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager
from app.agents.assessment_generator import AssessmentGenerator
from app.api.assessment import router as assessment_router
from app.api.health_concerns import router as health_concerns_router
from app.api.patient import router as patient_router
from app.config.database import Database
from app.config.settings import settings
from app.errors import register_exception_handlers
from app.middleware import JWTAuthMiddleware
from app.services.assessment_service import get_assessment_service
from app.services.context_builder import ContextBuilder
from app.services.health_concern_service import get_health_concern_service
from app.services.llm_gateway import LLMGateway
from app.services.patient_service import get_patient_service
from app.services.report_trigger import get_report_trigger
from app.services.response_service import get_response_service
import logging

# Configure logging
logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


def build_assessment_generator(gateway: LLMGateway) -> AssessmentGenerator:
    assessment_service = get_assessment_service()
    health_concern_service = get_health_concern_service()
    context_builder = ContextBuilder(
        health_concern_service=health_concern_service,
        patient_service=get_patient_service(),
        assessment_service=assessment_service,
        response_service=get_response_service(),
    )
    return AssessmentGenerator(
        gateway=gateway,
        assessment_service=assessment_service,
        health_concern_service=health_concern_service,
        context_builder=context_builder,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager for startup and shutdown events."""
    # Startup
    logger.info("Starting Assessment Service...")
    logger.info(f"Environment: {settings.environment}")

    try:
        await Database.connect_db()
        await Database.ensure_indexes()
        logger.info("MongoDB connected successfully")
    except Exception as e:
        logger.error(f"Failed to connect to MongoDB: {e}")
        raise

    gateway = LLMGateway(settings)
    app.state.llm_gateway = gateway
    app.state.assessment_generator = build_assessment_generator(gateway)
    logger.info(f"LLM gateway ready (model: {settings.openai_model})")

    yield

    # Shutdown
    logger.info("Shutting down Assessment Service...")
    await get_report_trigger().drain()
    await gateway.aclose()
    await Database.close_db()
    logger.info("MongoDB connection closed")


# Initialize FastAPI app
app = FastAPI(
    title="Assessment Service",
    description="Generates screening questionnaires for patient health concerns and validates the answers.",
    version="1.0.0",
    lifespan=lifespan,
)

register_exception_handlers(app)

# add_middleware stacks LIFO: CORS is added last so it runs first and
# every response, 401s included, carries CORS headers.
app.add_middleware(JWTAuthMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Register routers
app.include_router(assessment_router)
app.include_router(health_concerns_router)
app.include_router(patient_router)


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    try:
        db = Database.get_database()
        await db.command("ping")
        mongodb_status = "connected"
    except Exception as e:
        logger.error(f"MongoDB health check failed: {e}")
        mongodb_status = f"error: {str(e)}"

    gateway = getattr(app.state, "llm_gateway", None)
    llm_configured = gateway.is_configured if gateway else bool(settings.openai_api_key)

    return {
        "status": "ok",
        "service": settings.service_name,
        "version": "1.0.0",
        "dependencies": {
            "mongodb": mongodb_status,
            "llm": {
                "status": "configured" if llm_configured else "not configured",
                "model": settings.openai_model,
            },
        },
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "main:app",
        host="0.0.0.0",
        port=settings.service_port,
        reload=settings.environment == "development",
    )
