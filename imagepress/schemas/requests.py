from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing import Literal, Optional

from imagepress.core.config import get_settings

FitMode = Literal['cover', 'contain', 'fill', 'inside', 'outside']

class ResizeOptions(BaseModel):
    model_config = ConfigDict(frozen=True)

    width: Optional[int] = Field(default=None, ge=1, le=10000)
    height: Optional[int] = Field(default=None, ge=1, le=10000)
    fit: FitMode = 'inside'

class ProcessSettings(BaseModel):
    model_config = ConfigDict(frozen=True)

    format: str
    quality: Optional[int] = Field(default=None, ge=1, le=100)
    resize: Optional[ResizeOptions] = None

    @field_validator('format')
    @classmethod
    def validate_format(cls, v):
        allowed = get_settings().OUTPUT_FORMATS
        if v not in allowed:
            raise ValueError(f"Format must be one of: {', '.join(allowed)}")
        return v
