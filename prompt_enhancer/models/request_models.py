from pydantic import BaseModel, Field, ConfigDict
from typing import Optional
from prompt_enhancer.models.enhancement import EnhancementOptions, Focus, Tier, Tone

class EnhancementOptionsModel(BaseModel):
    """Optional enhancement preferences. Missing values mean no preference."""
    platform: Optional[str] = Field(default=None, description="Target AI system, e.g. ChatGPT", max_length=100)
    tone: Optional[Tone] = Field(default=None, description="Desired tone of the enhanced prompt")
    focus: Optional[Focus] = Field(default=None, description="What the enhancement should emphasize")

    def to_options(self) -> EnhancementOptions:
        return EnhancementOptions.from_dict(self.model_dump(mode="json"))

class EnhancePromptRequest(EnhancementOptionsModel):
    """Request model for enhancing an existing prompt."""
    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "user_id": "user_123",
                "content": "Write a poem",
                "platform": "ChatGPT",
                "tone": "creative",
                "focus": "clarity"
            }
        }
    )

    user_id: str = Field(..., description="Owner of the request, used for quota and history", min_length=1)
    tier: Tier = Field(default=Tier.FREE, description="Subscription tier of the user")
    # Not constrained here so blank content reaches the service's own validation
    content: str = Field(..., description="Prompt text to enhance")
