"""Settings controlling how an uploaded image is turned into print sheets."""

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class ImageSettings(BaseModel):
    """User-chosen transform for one split"""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    target_width_inches: float = Field(
        default=6.5,
        gt=0,
        description="Physical width of the reassembled print. The editor limits this to 4-8 inches, the splitter accepts any positive value.",
    )
    rotation: float = Field(
        default=0,
        ge=-180,
        le=180,
        description="Signed rotation in degrees applied to the whole image before splitting.",
    )
    overlap_mm: float = Field(
        default=0,
        ge=0,
        description="Overlap between neighbouring sheets. Stored with the job, no overlap is produced.",
    )
    dpi: float = Field(
        default=0,
        ge=0,
        description="Source pixels per printed inch, shown as a quality hint only.",
    )
    scale_factor: float = Field(
        default=1,
        gt=0,
        description="Editor canvas zoom.",
    )

    def with_dpi(self, original_width_px: int) -> "ImageSettings":
        """Return a copy whose informational DPI matches the given source width."""
        return self.model_copy(
            update={"dpi": round(original_width_px / self.target_width_inches)}
        )

    def is_within_policy(self, min_inches: float = 4, max_inches: float = 8) -> bool:
        return min_inches <= self.target_width_inches <= max_inches
