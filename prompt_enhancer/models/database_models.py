from sqlalchemy import Column, Integer, String, DateTime, Text, JSON, Index
from sqlalchemy.orm import declarative_base
from sqlalchemy.sql import func

Base = declarative_base()

class RateLimitWindowRecord(Base):
    """
    Table to track enhancement quota windows.
    One row per user: units consumed in the current fixed window and when it began.
    The ceiling itself is not stored; it depends on the user's tier at call time.
    """
    __tablename__ = "enhancement_rate_limits"

    user_id = Column(String(255), primary_key=True)
    count = Column(Integer, default=0, nullable=False)
    window_start = Column(DateTime(timezone=True), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

class EnhancementSessionRecord(Base):
    """
    Table to store enhancement attempts and their outcomes.
    Rows start as 'pending' and are settled exactly once to 'success' or 'failed'.
    """
    __tablename__ = "enhancement_sessions"

    id = Column(String(64), primary_key=True)
    user_id = Column(String(255), index=True, nullable=False)
    prompt_id = Column(String(255), nullable=True)  # absent when enhancing before the prompt exists
    original_content = Column(Text, nullable=False)
    enhanced_content = Column(Text, nullable=True)
    options = Column(JSON, nullable=True)  # {"platform": ..., "tone": ..., "focus": ...}
    status = Column(String(16), default="pending", nullable=False)
    error_message = Column(Text, nullable=True)
    api_response_time = Column(Integer, nullable=True)  # milliseconds
    created_at = Column(DateTime(timezone=True), nullable=False)

    __table_args__ = (
        Index('ix_enhancement_user_created_at', 'user_id', 'created_at'),
        Index('ix_enhancement_prompt_created_at', 'prompt_id', 'created_at'),
    )
