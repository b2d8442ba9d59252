"""Response and record schemas exchanged with the workbench frontend."""

from typing import Any, Dict, List, Optional
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from .image_settings import ImageSettings


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class GridPosition(_CamelModel):
    row: int = Field(ge=0, le=1)
    col: int = Field(ge=0, le=1)


class SplitImage(_CamelModel):
    """A stored sheet: where to fetch it and where it goes in the grid"""

    url: str = Field(description="Address returned by the sheet store.")
    position: GridPosition
    page_number: int = Field(ge=1, le=4)


class SplitImageResult(_CamelModel):
    images: List[SplitImage]
    settings: ImageSettings


class UploadResponse(_CamelModel):
    url: str
    filename: str
    size: int
    dimensions: Dict[str, int] = Field(
        description="Decoded pixel size as {'width': w, 'height': h}."
    )


class PrintJob(BaseModel):
    """Saved print job record (snake_case keys, as stored)"""

    id: str
    user_id: str
    original_image_url: str
    split_images: List[SplitImage]
    settings: ImageSettings
    created_at: str


class ActionResponse(_CamelModel):
    success: bool
    data: Optional[Any] = None
    error: Optional[str] = None

    @classmethod
    def ok(cls, data: Any = None) -> "ActionResponse":
        return cls(success=True, data=data)

    @classmethod
    def fail(cls, error: str) -> "ActionResponse":
        return cls(success=False, error=error)


class ValidationResult(BaseModel):
    valid: bool
    error: Optional[str] = None
    reason: Optional[str] = None
