import time
import asyncio
import uuid
import logging
from typing import List, Optional

from prompt_enhancer.config import Settings
from prompt_enhancer.models.enhancement import (
    EnhanceResult,
    EnhancementOptions,
    EnhancementSession,
    RateLimitInfo,
    Reservation,
    SessionStatus,
    Tier,
)
from prompt_enhancer.services.completion_client import Completion, CompletionClient
from prompt_enhancer.services.errors import (
    ConfigurationError,
    ContentValidationError,
    RateLimitExceeded,
)
from prompt_enhancer.services.instruction_builder import build_system_instructions
from prompt_enhancer.services.quota_tracker import QuotaTracker

logger = logging.getLogger(__name__)

RATE_LIMIT_MESSAGE = "rate limit exceeded"
NOT_CONFIGURED_MESSAGE = "Enhancement service is not configured"
FAILURE_MESSAGE = "Failed to enhance prompt. Please try again."


def new_session_id() -> str:
    return f"enh_{uuid.uuid4().hex}"


class EnhancementOrchestrator:
    """
    Entry point for prompt enhancement.

    Each request is validated, reserves one unit of quota, records a session,
    calls the completion service and then settles: the session is marked
    success or failed, and quota is refunded when the call failed. No lock is
    held while the completion call is in flight.
    """

    def __init__(self, settings: Settings, quota_tracker: QuotaTracker, session_store,
                 completion_client: CompletionClient):
        self.settings = settings
        self.quota_tracker = quota_tracker
        self.session_store = session_store
        self.completion_client = completion_client

    async def enhance(self, user_id: str, original_content: str, prompt_id: Optional[str] = None,
                      options: Optional[EnhancementOptions] = None,
                      tier: Tier = Tier.FREE) -> EnhanceResult:
        """
        Enhance prompt text and keep a session record of the attempt.

        Args:
            user_id: Owner of the request
            original_content: Text to enhance
            prompt_id: Existing prompt being enhanced, if any
            options: Platform, tone and focus preferences
            tier: Subscription tier, decides the quota ceiling

        Returns:
            EnhanceResult with the enhanced text or a caller-safe error
        """
        return await self._run(user_id, original_content, options or EnhancementOptions(), tier,
                               persist=True, prompt_id=prompt_id)

    async def complete_without_session(self, user_id: str, content: str,
                                       options: Optional[EnhancementOptions] = None,
                                       tier: Tier = Tier.FREE) -> EnhanceResult:
        """Enhance text for a prompt that does not exist yet. Quota applies, no session is stored."""
        return await self._run(user_id, content, options or EnhancementOptions(), tier, persist=False)

    async def check_status(self, user_id: str, tier: Tier = Tier.FREE) -> RateLimitInfo:
        """Current quota for the user. Works without completion credentials."""
        return await self.quota_tracker.status(user_id, self.settings.limit_for(tier))

    async def get_history(self, user_id: str, prompt_id: Optional[str] = None,
                          limit: int = 50) -> List[EnhancementSession]:
        return await self.session_store.get_sessions_by_user(user_id, prompt_id=prompt_id, limit=limit)

    def _validate(self, content: Optional[str]) -> None:
        if content is None or not content.strip():
            raise ContentValidationError("Content is required")
        if len(content) > self.settings.max_content_length:
            raise ContentValidationError(
                f"Content exceeds the maximum length of {self.settings.max_content_length} characters"
            )

    async def _reserve(self, user_id: str, tier: Tier) -> Reservation:
        reservation = await self.quota_tracker.reserve(user_id, self.settings.limit_for(tier))
        if not reservation.granted:
            info = reservation.info
            raise RateLimitExceeded(RATE_LIMIT_MESSAGE, info.remaining, info.limit, info.resets_at)
        return reservation

    async def _run(self, user_id: str, content: str, options: EnhancementOptions, tier: Tier,
                   persist: bool, prompt_id: Optional[str] = None) -> EnhanceResult:
        try:
            self._validate(content)
            if not self.completion_client.is_configured:
                raise ConfigurationError(NOT_CONFIGURED_MESSAGE)
            reservation = await self._reserve(user_id, tier)
        except ContentValidationError as e:
            return EnhanceResult(success=False, error=str(e), error_code="validation_error")
        except ConfigurationError:
            logger.warning(f"Enhancement requested by {user_id} but the completion service is not configured")
            return EnhanceResult(success=False, error=NOT_CONFIGURED_MESSAGE, error_code="service_unavailable")
        except RateLimitExceeded as e:
            return EnhanceResult(
                success=False,
                error=RATE_LIMIT_MESSAGE,
                error_code="rate_limited",
                remaining=e.remaining,
                limit=e.limit,
                resets_at=e.resets_at,
            )

        session_id = None
        if persist:
            session = EnhancementSession(
                id=new_session_id(),
                user_id=user_id,
                prompt_id=prompt_id,
                original_content=content,
                options=options,
            )
            try:
                await self.session_store.create_session(session)
            except asyncio.CancelledError:
                cancelled = asyncio.CancelledError("Request cancelled while creating the session")
                await asyncio.shield(self._settle_failure(user_id, session.id, cancelled, 0, reservation))
                raise
            except Exception as e:
                logger.error(f"Failed to create enhancement session for {user_id}: {str(e)}")
                await self._release(user_id, reservation)
                return EnhanceResult(success=False, error=FAILURE_MESSAGE, error_code="enhancement_failed")
            session_id = session.id
            logger.info(f"Enhancement session {session_id} created for {user_id}")

        instructions = build_system_instructions(options)
        start = time.perf_counter()
        try:
            completion = await self.completion_client.complete(instructions, content)
        except asyncio.CancelledError:
            # The caller went away; settle before propagating so nothing stays pending
            elapsed_ms = int((time.perf_counter() - start) * 1000)
            cancelled = asyncio.CancelledError("Request cancelled before the completion returned")
            await asyncio.shield(self._settle_failure(user_id, session_id, cancelled, elapsed_ms, reservation))
            raise
        except Exception as e:
            elapsed_ms = int((time.perf_counter() - start) * 1000)
            return await self._settle_failure(user_id, session_id, e, elapsed_ms, reservation)

        return await self._settle_success(session_id, completion, reservation)

    async def _settle_success(self, session_id: Optional[str], completion: Completion,
                              reservation: Reservation) -> EnhanceResult:
        if session_id is not None:
            try:
                await self.session_store.update_session(session_id, {
                    "status": SessionStatus.SUCCESS,
                    "enhanced_content": completion.text,
                    "api_response_time": completion.response_time_ms,
                })
                logger.info(f"Enhancement session {session_id} succeeded in {completion.response_time_ms}ms")
            except Exception as e:
                logger.error(f"Failed to record success for session {session_id}: {str(e)}")

        info = reservation.info
        return EnhanceResult(
            success=True,
            enhanced=completion.text,
            session_id=session_id,
            remaining=info.remaining,
            limit=info.limit,
            resets_at=info.resets_at,
        )

    async def _settle_failure(self, user_id: str, session_id: Optional[str], error: BaseException,
                              elapsed_ms: int, reservation: Reservation) -> EnhanceResult:
        logger.error(f"Completion call failed for {user_id} ({type(error).__name__}): {str(error)}")

        if session_id is not None:
            try:
                await self.session_store.update_session(session_id, {
                    "status": SessionStatus.FAILED,
                    "error_message": f"{type(error).__name__}: {str(error)}",
                    "api_response_time": elapsed_ms,
                })
            except Exception as e:
                logger.error(f"Failed to record failure for session {session_id}: {str(e)}")

        await self._release(user_id, reservation)

        if isinstance(error, ConfigurationError):
            return EnhanceResult(success=False, error=NOT_CONFIGURED_MESSAGE,
                                 error_code="service_unavailable", session_id=session_id)
        return EnhanceResult(success=False, error=FAILURE_MESSAGE,
                             error_code="enhancement_failed", session_id=session_id)

    async def _release(self, user_id: str, reservation: Reservation) -> None:
        try:
            await self.quota_tracker.release(user_id, reservation.window_start)
        except Exception as e:
            logger.error(f"Failed to release quota for {user_id}: {str(e)}")
