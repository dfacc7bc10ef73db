# ============================================================================
# src/document_intake/config/ai_config.py
# ============================================================================
"""
AI Extractor Settings
- Disabled by default; a disabled extractor is a normal runtime condition
- Talks to a local Ollama-compatible server
"""

from pydantic import Field
from pydantic_settings import BaseSettings

class AISettings(BaseSettings):
    AI_EXTRACTION_ENABLED: bool = Field(
        default=False,
        description="Try the AI extractor before the rule-based extractor"
    )
    AI_HOST: str = Field(
        default="http://localhost:11434",
        description="Base URL of the Ollama server"
    )
    AI_MODEL: str = Field(
        default="MedAIBase/MedGemma1.5:4b-it-q8_0",
        description="Model used for field extraction"
    )
    AI_TIMEOUT: int = Field(
        default=120,
        ge=1,
        description="Per-request timeout in seconds"
    )
    AI_MAX_TOKENS: int = Field(
        default=1024,
        ge=1,
        description="Max tokens to generate"
    )
    AI_TEMPERATURE: float = Field(
        default=0.1,
        ge=0.0, le=2.0,
        description="Sampling temperature"
    )

ai_settings = AISettings()
