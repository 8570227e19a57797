from fastapi import FastAPI, HTTPException, Query
from fastapi.middleware.cors import CORSMiddleware
from prompt_enhancer.config import Settings
from prompt_enhancer.models.enhancement import EnhanceResult, Tier
from prompt_enhancer.models.request_models import EnhancePromptRequest
from prompt_enhancer.models.response_models import (
    EnhanceResponse,
    EnhancementHistoryEntry,
    EnhancementHistoryResponse,
    RateLimitStatusResponse,
)
from prompt_enhancer.services.completion_client import GeminiCompletionClient
from prompt_enhancer.services.database import DatabaseService
from prompt_enhancer.services.enhancement_orchestrator import EnhancementOrchestrator
from prompt_enhancer.services.errors import QuotaStoreUnavailable
from prompt_enhancer.services.quota_tracker import QuotaTracker
from prompt_enhancer.services.rate_limit_store import InMemoryRateLimitStore, SqlRateLimitStore
from prompt_enhancer.services.session_store import InMemorySessionStore, SqlSessionStore
from typing import Optional, Tuple
import logging

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

ERROR_STATUS_CODES = {
    "validation_error": 400,
    "rate_limited": 429,
    "service_unavailable": 503,
    "enhancement_failed": 502,
}

def build_orchestrator(settings: Settings) -> Tuple[EnhancementOrchestrator, Optional[DatabaseService]]:
    """Wire stores, quota tracker and completion client for the configured backend."""
    database = None
    if settings.storage_backend == "memory":
        logger.warning("Using in-memory storage; quota and sessions are lost on restart")
        rate_limit_store = InMemoryRateLimitStore()
        session_store = InMemorySessionStore()
    else:
        database = DatabaseService(settings.database_url)
        rate_limit_store = SqlRateLimitStore(database)
        session_store = SqlSessionStore(database)

    orchestrator = EnhancementOrchestrator(
        settings=settings,
        quota_tracker=QuotaTracker(rate_limit_store, window=settings.window),
        session_store=session_store,
        completion_client=GeminiCompletionClient(settings),
    )
    return orchestrator, database

def to_response(result: EnhanceResult) -> EnhanceResponse:
    """Map an enhancement result to a response, raising HTTPException for failures."""
    if result.success:
        return EnhanceResponse.from_result(result)

    detail = {"error": result.error}
    if result.error_code == "rate_limited":
        detail.update({
            "remaining": result.remaining,
            "limit": result.limit,
            "resets_at": result.resets_at.isoformat() if result.resets_at else None,
        })
    if result.session_id:
        detail["session_id"] = result.session_id
    raise HTTPException(status_code=ERROR_STATUS_CODES.get(result.error_code, 500), detail=detail)

def create_app(settings: Optional[Settings] = None,
               orchestrator: Optional[EnhancementOrchestrator] = None,
               database: Optional[DatabaseService] = None) -> FastAPI:
    settings = settings or Settings.from_env()
    if orchestrator is None:
        orchestrator, database = build_orchestrator(settings)

    app = FastAPI(
        title="Prompt Enhancer API",
        description="Rate-limited AI enhancement of prompt text",
        version="1.0.0"
    )
    app.state.settings = settings
    app.state.orchestrator = orchestrator

    @app.on_event("startup")
    async def startup_event():
        """Initialize database connection on startup"""
        if database is None:
            return
        try:
            await database.initialize()
            logger.info("Database initialized successfully")
        except Exception as e:
            logger.error(f"Failed to initialize database: {str(e)}")
            # Quota checks fail closed until the database is reachable

    @app.on_event("shutdown")
    async def shutdown_event():
        """Close database connections on shutdown"""
        if database is None:
            return
        try:
            await database.close()
            logger.info("Database connections closed")
        except Exception as e:
            logger.error(f"Error closing database connections: {str(e)}")

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/")
    async def root():
        """Root endpoint with API information"""
        return {
            "message": "Prompt Enhancer API",
            "version": "1.0.0",
            "endpoints": {
                "/api/prompts/{prompt_id}/enhance": "Enhance an existing prompt",
                "/api/prompts/enhance-new": "Enhance text before the prompt is created",
                "/api/enhancement/rate-limit": "Current enhancement quota",
                "/api/prompts/{prompt_id}/enhancement-history": "Enhancement sessions for a prompt",
                "/api/enhancement/history": "Enhancement sessions for a user",
                "/health": "Health check"
            }
        }

    @app.get("/health")
    async def health_check():
        """Health check endpoint"""
        return {
            "status": "healthy",
            "enhancement_configured": orchestrator.completion_client.is_configured,
            "storage_backend": settings.storage_backend,
        }

    @app.post("/api/prompts/{prompt_id}/enhance", response_model=EnhanceResponse)
    async def enhance_prompt(prompt_id: str, request: EnhancePromptRequest):
        """Enhance an existing prompt and record the attempt in its history"""
        result = await orchestrator.enhance(
            user_id=request.user_id,
            original_content=request.content,
            prompt_id=prompt_id,
            options=request.to_options(),
            tier=request.tier,
        )
        return to_response(result)

    @app.post("/api/prompts/enhance-new", response_model=EnhanceResponse)
    async def enhance_new_prompt(request: EnhancePromptRequest):
        """Enhance text for a prompt that has not been created yet"""
        result = await orchestrator.complete_without_session(
            user_id=request.user_id,
            content=request.content,
            options=request.to_options(),
            tier=request.tier,
        )
        return to_response(result)

    @app.get("/api/enhancement/rate-limit", response_model=RateLimitStatusResponse)
    async def rate_limit_status(user_id: str = Query(..., min_length=1), tier: Tier = Tier.FREE):
        """Current enhancement quota for a user"""
        try:
            info = await orchestrator.check_status(user_id, tier)
        except QuotaStoreUnavailable:
            raise HTTPException(status_code=503, detail={"error": "Rate limit status is temporarily unavailable"})
        return RateLimitStatusResponse.from_info(info)

    async def _history(user_id: str, prompt_id: Optional[str], limit: int) -> EnhancementHistoryResponse:
        try:
            sessions = await orchestrator.get_history(user_id, prompt_id=prompt_id, limit=limit)
        except Exception as e:
            logger.error(f"Error loading enhancement history for {user_id}: {str(e)}")
            raise HTTPException(status_code=500, detail={"error": "Could not load enhancement history"})
        return EnhancementHistoryResponse(
            user_id=user_id,
            sessions=[EnhancementHistoryEntry.from_session(session) for session in sessions],
        )

    @app.get("/api/prompts/{prompt_id}/enhancement-history", response_model=EnhancementHistoryResponse)
    async def prompt_enhancement_history(prompt_id: str, user_id: str = Query(..., min_length=1),
                                         limit: int = Query(50, ge=1, le=200)):
        """Enhancement sessions recorded for one prompt"""
        return await _history(user_id, prompt_id, limit)

    @app.get("/api/enhancement/history", response_model=EnhancementHistoryResponse)
    async def user_enhancement_history(user_id: str = Query(..., min_length=1),
                                       limit: int = Query(50, ge=1, le=200)):
        """All enhancement sessions recorded for a user"""
        return await _history(user_id, None, limit)

    return app
