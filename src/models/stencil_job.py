"""StencilJob model: one upload, its settings and the sheets split from it."""

import asyncio
import logging
import time
from typing import List, Optional, Tuple

from config import Config
from errors import StencilError
from image_processor import (
    ensure_processable,
    ensure_valid_image_file,
    fetch_image,
    get_image_dimensions,
    split_image_into_sheets,
)
from job_store import JobStore
from print_utils import generate_pdf
from sheet_store import SheetStore, make_sheet_key, make_upload_key

from .api_schemas import (
    GridPosition,
    PrintJob,
    SplitImage,
    SplitImageResult,
    UploadResponse,
)
from .callbacks import SplitCallbacks
from .image_settings import ImageSettings
from .sheet_models import ImageDimensions
from .split_sheet import SplitSheet

log = logging.getLogger(__name__)


class StencilJob:
    """Encapsulates the state of one stencil being prepared for print."""

    def __init__(
        self,
        job_id: str,
        user_id: str,
        store: SheetStore,
        config: Optional[Config] = None,
    ) -> None:
        self.job_id = job_id
        self.user_id = user_id
        self.store = store
        self.config = config or Config()
        self.settings = ImageSettings(
            target_width_inches=self.config.DEFAULT_TARGET_WIDTH_IN
        )
        self.original_image_url: Optional[str] = None
        self.original_dimensions: Optional[ImageDimensions] = None
        self.sheets: Optional[List[SplitSheet]] = None
        self.split_images: Optional[List[SplitImage]] = None
        self.processing_task: Optional[asyncio.Task] = None

    def is_processing(self) -> bool:
        """Check if a split is currently running."""
        return self.processing_task is not None

    def upload(
        self, image_bytes: bytes, filename: str, content_type: str
    ) -> UploadResponse:
        """Validate and store a new source image, discarding earlier sheets."""
        ensure_valid_image_file(content_type, len(image_bytes), self.config)
        dimensions = get_image_dimensions(image_bytes)
        ensure_processable(dimensions)

        key = make_upload_key(self.user_id, int(time.time() * 1000), filename)
        url = self.store.store(image_bytes, key, content_type)

        self.original_image_url = url
        self.original_dimensions = dimensions
        self.settings = self.settings.with_dpi(dimensions.width)
        self.sheets = None
        self.split_images = None
        log.info(
            f"Job {self.job_id}: uploaded {filename} ({dimensions.width}x{dimensions.height}, {len(image_bytes)} bytes)"
        )

        return UploadResponse(
            url=url,
            filename=filename,
            size=len(image_bytes),
            dimensions={"width": dimensions.width, "height": dimensions.height},
        )

    def update_settings(self, **changes) -> ImageSettings:
        """Merge changes into the settings, re-deriving the informational DPI."""
        merged = {**self.settings.model_dump(), **changes}
        settings = ImageSettings.model_validate(merged)
        if self.original_dimensions is not None:
            settings = settings.with_dpi(self.original_dimensions.width)
        self.settings = settings
        return settings

    def _store_sheets(
        self, sheets: List[SplitSheet], callbacks: SplitCallbacks
    ) -> List[SplitImage]:
        timestamp = int(time.time() * 1000)
        stored: List[Tuple[str, SplitImage]] = []
        for sheet in sheets:
            key = make_sheet_key(self.user_id, timestamp, sheet.page_number)
            try:
                url = self.store.store(sheet.image_bytes, key, sheet.content_type)
            except (OSError, ValueError) as e:
                log.error(
                    f"Job {self.job_id}: sheet {sheet.page_number} upload failed: {e}"
                )
                self._discard([address for address, _ in stored])
                raise StencilError(f"Failed to upload sheet {sheet.page_number}") from e

            split_image = SplitImage(
                url=url,
                position=GridPosition(row=sheet.position.row, col=sheet.position.col),
                page_number=sheet.page_number,
            )
            stored.append((url, split_image))
            callbacks.on_sheet_ready(self.job_id, sheet.page_number, url)
        return [split_image for _, split_image in stored]

    def _discard(self, addresses: List[str]) -> None:
        for address in addresses:
            try:
                self.store.delete(address)
            except OSError as e:
                log.warning(f"Job {self.job_id}: could not remove {address}: {e}")

    async def run(self, callbacks: Optional[SplitCallbacks] = None) -> SplitImageResult:
        """Fetch the uploaded image, split it and store all four sheets."""
        callbacks = callbacks or SplitCallbacks.silent()
        if self.original_image_url is None:
            raise ValueError("No image uploaded")

        self.processing_task = asyncio.current_task()
        start_time = time.time()
        settings = self.settings
        try:
            callbacks.on_stage(self.job_id, "fetching")
            image_bytes = await asyncio.to_thread(
                fetch_image, self.original_image_url, self.config.FETCH_TIMEOUT
            )

            callbacks.on_stage(self.job_id, "splitting")
            sheets = await asyncio.to_thread(
                split_image_into_sheets, image_bytes, settings, None, self.config
            )

            callbacks.on_stage(self.job_id, "storing")
            split_images = self._store_sheets(sheets, callbacks)
        except Exception as e:
            callbacks.on_error(self.job_id, str(e) or type(e).__name__)
            raise
        finally:
            self.processing_task = None

        self.sheets = sheets
        self.split_images = split_images
        elapsed = time.time() - start_time
        callbacks.on_complete(self.job_id, len(split_images), elapsed)
        log.info(f"Job {self.job_id}: split finished in {elapsed:.2f}s")
        return SplitImageResult(images=split_images, settings=settings)

    def save(self, job_store: JobStore) -> PrintJob:
        if self.original_image_url is None or not self.split_images:
            raise ValueError("Nothing to save: split the image first")
        return job_store.create(
            user_id=self.user_id,
            original_image_url=self.original_image_url,
            split_images=self.split_images,
            settings=self.settings,
        )

    def to_pdf(self) -> bytes:
        if not self.sheets:
            raise ValueError("Nothing to print: split the image first")
        return generate_pdf(self.sheets, self.config)
