from datetime import datetime
from pydantic import BaseModel, Field
from typing import List, Optional
from prompt_enhancer.models.enhancement import EnhanceResult, EnhancementSession, RateLimitInfo

class EnhanceResponse(BaseModel):
    success: bool = Field(description="Whether the enhancement succeeded")
    enhanced: Optional[str] = Field(default=None, description="Enhanced prompt text")
    session_id: Optional[str] = Field(default=None, description="Enhancement session id, when one was recorded")
    remaining: Optional[int] = Field(default=None, description="Enhancements left in the current window")
    limit: Optional[int] = Field(default=None, description="Enhancements allowed per window")
    resets_at: Optional[datetime] = Field(default=None, description="When the current window ends")

    class Config:
        json_schema_extra = {
            "example": {
                "success": True,
                "enhanced": "Compose an evocative poem about autumn in free verse...",
                "session_id": "enh_3f1c2a9b0d8e4f6a8b7c6d5e4f3a2b1c",
                "remaining": 9,
                "limit": 10,
                "resets_at": "2026-10-19T13:00:00+00:00"
            }
        }

    @classmethod
    def from_result(cls, result: EnhanceResult) -> "EnhanceResponse":
        return cls(
            success=result.success,
            enhanced=result.enhanced,
            session_id=result.session_id,
            remaining=result.remaining,
            limit=result.limit,
            resets_at=result.resets_at,
        )

class RateLimitStatusResponse(BaseModel):
    allowed: bool = Field(description="Whether another enhancement is allowed now")
    remaining: int = Field(description="Enhancements left in the current window")
    limit: int = Field(description="Enhancements allowed per window")
    resets_at: datetime = Field(description="When the current window ends")

    @classmethod
    def from_info(cls, info: RateLimitInfo) -> "RateLimitStatusResponse":
        return cls(allowed=info.allowed, remaining=info.remaining, limit=info.limit, resets_at=info.resets_at)

class EnhancementOptionsInfo(BaseModel):
    platform: Optional[str] = None
    tone: Optional[str] = None
    focus: Optional[str] = None

class EnhancementHistoryEntry(BaseModel):
    id: str = Field(description="Enhancement session id")
    prompt_id: Optional[str] = Field(default=None, description="Prompt the session belongs to")
    original_content: str = Field(description="Submitted text")
    enhanced_content: Optional[str] = Field(default=None, description="Result text, present on success")
    options: EnhancementOptionsInfo = Field(description="Options used for the enhancement")
    status: str = Field(description="pending, success or failed")
    api_response_time: Optional[int] = Field(default=None, description="Milliseconds spent in the completion call")
    created_at: datetime = Field(description="Creation timestamp")

    @classmethod
    def from_session(cls, session: EnhancementSession) -> "EnhancementHistoryEntry":
        # error_message stays server-side
        return cls(
            id=session.id,
            prompt_id=session.prompt_id,
            original_content=session.original_content,
            enhanced_content=session.enhanced_content,
            options=EnhancementOptionsInfo(**session.options.to_dict()),
            status=session.status.value,
            api_response_time=session.api_response_time,
            created_at=session.created_at,
        )

class EnhancementHistoryResponse(BaseModel):
    user_id: str
    sessions: List[EnhancementHistoryEntry] = Field(default=[], description="Sessions, newest first")
