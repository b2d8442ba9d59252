"""Split sheet dataclass combining grid position with encoded image bytes."""

import base64
from dataclasses import dataclass
from pathlib import Path
from io import BytesIO
from PIL import Image

from .sheet_models import ImageDimensions, SheetPosition


@dataclass
class SplitSheet:
    """One printable quadrant, already padded to the common sheet size."""

    position: SheetPosition
    image_bytes: bytes
    dimensions: ImageDimensions
    image_format: str = "PNG"

    @property
    def page_number(self) -> int:
        return self.position.page_number

    @property
    def content_type(self) -> str:
        return f"image/{self.image_format.lower()}"

    @classmethod
    def from_pil_image(
        cls, position: SheetPosition, pil_image: Image.Image, format: str = "PNG"
    ) -> "SplitSheet":
        """Create from PIL Image object."""
        buffer = BytesIO()
        pil_image.save(buffer, format=format)
        buffer.seek(0)
        return cls(
            position=position,
            image_bytes=buffer.read(),
            dimensions=ImageDimensions(pil_image.width, pil_image.height),
            image_format=format,
        )

    def to_pil_image(self) -> Image.Image:
        """Convert back to PIL Image for processing."""
        return Image.open(BytesIO(self.image_bytes))

    def to_data_url(self) -> str:
        encoded = base64.b64encode(self.image_bytes).decode("utf-8")
        return f"data:{self.content_type};base64,{encoded}"

    def save_to_disk(self, output_dir: Path, stem: str = "sheet") -> Path:
        """Save image to disk and return its path."""
        filepath = output_dir / f"{stem}-page-{self.page_number}.png"
        filepath.parent.mkdir(parents=True, exist_ok=True)

        with open(filepath, "wb") as f:
            f.write(self.image_bytes)

        return filepath
