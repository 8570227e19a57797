from dataclasses import dataclass, field, asdict
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional


class Tone(str, Enum):
    PROFESSIONAL = "professional"
    CASUAL = "casual"
    ACADEMIC = "academic"
    CREATIVE = "creative"


class Focus(str, Enum):
    CLARITY = "clarity"
    ENGAGEMENT = "engagement"
    SPECIFICITY = "specificity"
    STRUCTURE = "structure"


class Tier(str, Enum):
    FREE = "free"
    PREMIUM = "premium"


class SessionStatus(str, Enum):
    PENDING = "pending"
    SUCCESS = "success"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self is not SessionStatus.PENDING


@dataclass(frozen=True)
class EnhancementOptions:
    """Optional preferences for an enhancement. Missing values mean no preference."""
    platform: Optional[str] = None
    tone: Optional[Tone] = None
    focus: Optional[Focus] = None

    def to_dict(self) -> Dict[str, Optional[str]]:
        return {
            "platform": self.platform,
            "tone": self.tone.value if self.tone else None,
            "focus": self.focus.value if self.focus else None,
        }

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "EnhancementOptions":
        """
        Build options from a plain mapping (request body or stored JSON).

        Raises:
            ValueError: If tone or focus is not one of the known values
        """
        if not data:
            return cls()
        platform = data.get("platform") or None
        tone = data.get("tone") or None
        focus = data.get("focus") or None
        return cls(
            platform=platform.strip() if isinstance(platform, str) and platform.strip() else None,
            tone=Tone(tone) if tone else None,
            focus=Focus(focus) if focus else None,
        )


@dataclass
class EnhancementSession:
    """Durable record of one enhancement attempt and its outcome."""
    id: str
    user_id: str
    original_content: str
    options: EnhancementOptions = field(default_factory=EnhancementOptions)
    prompt_id: Optional[str] = None
    status: SessionStatus = SessionStatus.PENDING
    enhanced_content: Optional[str] = None
    error_message: Optional[str] = None
    api_response_time: Optional[int] = None
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


@dataclass(frozen=True)
class RateLimitWindow:
    user_id: str
    count: int
    window_start: datetime


@dataclass(frozen=True)
class RateLimitInfo:
    allowed: bool
    remaining: int
    limit: int
    resets_at: datetime

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["resets_at"] = self.resets_at.isoformat()
        return data


@dataclass(frozen=True)
class Reservation:
    granted: bool
    info: RateLimitInfo
    # Start of the window the unit was taken from; None when nothing was reserved
    window_start: Optional[datetime] = None


@dataclass
class EnhanceResult:
    """Uniform, caller-safe outcome of an enhancement request."""
    success: bool
    enhanced: Optional[str] = None
    error: Optional[str] = None
    error_code: Optional[str] = None
    session_id: Optional[str] = None
    remaining: Optional[int] = None
    limit: Optional[int] = None
    resets_at: Optional[datetime] = None
