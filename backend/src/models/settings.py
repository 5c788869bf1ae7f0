"""Pydantic models for user settings and stored credentials."""

from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field


class AIModel(str, Enum):
    """Models a user may select for the assistant."""
    GEMINI_25_FLASH = "gemini-2.5-flash"
    GEMINI_25_PRO = "gemini-2.5-pro"
    GEMINI_20_FLASH = "gemini-2.0-flash"
    GEMINI_20_PRO = "gemini-2.0-pro"


DEFAULT_AI_MODEL = AIModel.GEMINI_25_FLASH

AI_MODEL_LABELS = {
    AIModel.GEMINI_25_FLASH: "Gemini 2.5 Flash",
    AIModel.GEMINI_25_PRO: "Gemini 2.5 Pro",
    AIModel.GEMINI_20_FLASH: "Gemini 2.0 Flash",
    AIModel.GEMINI_20_PRO: "Gemini 2.0 Pro",
}


class ProviderKey(str, Enum):
    """Entries of a user's credential bundle."""
    GEMINI = "gemini_key"
    TAVILY = "tavily_key"


class ApiKeysUpdate(BaseModel):
    """Keys to merge into the stored bundle. Omitted fields are left as-is."""
    gemini_key: Optional[str] = Field(None, max_length=512, description="Gemini API key")
    tavily_key: Optional[str] = Field(None, max_length=512, description="Tavily API key")


class MaskedApiKeys(BaseModel):
    """Stored keys as shown back to the user."""
    gemini_key: str = Field("", description="Masked Gemini key")
    tavily_key: str = Field("", description="Masked Tavily key")
    has_gemini: bool = False
    has_tavily: bool = False


class ModelPreferenceUpdate(BaseModel):
    """Request payload for selecting the assistant model."""
    model: AIModel


class ModelOption(BaseModel):
    """One entry of the model picker."""
    value: AIModel
    label: str


class ModelOptionsResponse(BaseModel):
    """Available models and the user's current choice."""
    models: List[ModelOption]
    selected: AIModel
