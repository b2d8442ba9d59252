"""
pywebview GUI backend for the stencil splitter workbench
"""

import os
import webview
import asyncio
import logging
import threading
import mimetypes
from pathlib import Path
from typing import Any, Dict, List, Optional
from dataclasses import dataclass, asdict, field

from config import Config
from errors import StencilError
from job_store import JobStore
from models.api_schemas import ActionResponse
from models.callbacks import SplitCallbacks
from models.image_settings import ImageSettings
from models.stencil_job import StencilJob
from print_utils import save_pdf
from sheet_store import get_sheet_store

config = Config()
log = logging.getLogger(__name__)

# Configure logging to show backend logs
log_level = logging.DEBUG if config.DEBUG_MODE else logging.INFO
log_file = os.environ.get("STENCIL_LOG_FILE")
if log_file:
    logging.basicConfig(
        level=log_level,
        filename=log_file,
        filemode="w",
        format="[%(asctime)s] [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
else:
    logging.basicConfig(
        level=log_level,
        format="[%(asctime)s] [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


@dataclass
class SplitJobState:
    job_id: str
    status: str
    sheets_ready: int = 0
    messages: List[str] = field(default_factory=list)
    elapsed: float = 0.0
    error: Optional[str] = None
    result: Optional[Dict[str, Any]] = None


class StencilWorkbenchApi:
    def __init__(self, config: Optional[Config] = None):
        self.config = config or Config()
        self.store = get_sheet_store(self.config)
        self.job_store = JobStore(self.config.jobs_path)
        self.job = StencilJob("job_0", self.config.USER_ID, self.store, self.config)
        self.state = SplitJobState(job_id=self.job.job_id, status="idle")
        self.window = None
        self.is_processing = False
        self._lock = threading.Lock()
        self._split_thread: Optional[threading.Thread] = None
        log.info("StencilWorkbenchApi initialized")

    def set_window(self, window):
        log.debug("Setting window reference")
        self.window = window

    def _update_backend_state(self):
        """Push the current job state to the frontend"""
        if self.window and hasattr(self.window, "state"):
            self.window.state.backendState = asdict(self.state)
        else:
            log.debug("Cannot update backend state - window not available")

    def _respond(self, response: ActionResponse) -> Dict[str, Any]:
        return response.model_dump(mode="json", by_alias=True)

    def select_image_file(self) -> Optional[str]:
        """Open file dialog for image selection"""
        log.info("Opening file dialog for image selection")
        try:
            result = self.window.create_file_dialog(
                webview.FileDialog.OPEN,
                allow_multiple=False,
                file_types=("Images (*.jpg;*.jpeg;*.png;*.webp)", "All Files (*.*)"),
            )
        except Exception as e:
            log.error(f"File selection error: {e}")
            return None
        if result:
            log.info(f"Image file selected: {result[0]}")
            return result[0]
        log.info("No file selected")
        return None

    def upload_image(self, path: str) -> Dict[str, Any]:
        """Validate a local image and make it the current stencil source"""
        with self._lock:
            if self.is_processing:
                return self._respond(ActionResponse.fail("A split is already running"))
        file_path = Path(path)
        content_type = mimetypes.guess_type(file_path.name)[0] or ""
        try:
            image_bytes = file_path.read_bytes()
            upload = self.job.upload(image_bytes, file_path.name, content_type)
        except (StencilError, OSError) as e:
            log.error(f"Upload failed for {path}: {e}")
            return self._respond(ActionResponse.fail(str(e) or "Failed to upload image"))

        self.state = SplitJobState(job_id=self.job.job_id, status="uploaded")
        self._update_backend_state()
        return self._respond(ActionResponse.ok(upload.model_dump(by_alias=True)))

    def update_settings(self, settings: Dict[str, Any]) -> Dict[str, Any]:
        try:
            changes = ImageSettings.model_validate(settings).model_dump(
                exclude_unset=True
            )
            updated = self.job.update_settings(**changes)
        except ValueError as e:
            return self._respond(ActionResponse.fail(str(e)))
        return self._respond(ActionResponse.ok(updated.model_dump(by_alias=True)))

    def _callbacks(self) -> SplitCallbacks:
        return SplitCallbacks(
            on_stage=self._on_stage,
            on_sheet_ready=self._on_sheet_ready,
            on_error=self._on_error,
            on_complete=self._on_complete,
        )

    def split_image(self) -> Dict[str, Any]:
        """Start splitting the uploaded image into four sheets in the background"""
        with self._lock:
            if self.is_processing:
                return self._respond(ActionResponse.fail("A split is already running"))
            if self.job.original_image_url is None:
                return self._respond(ActionResponse.fail("No image uploaded"))
            self.is_processing = True

        job_id = self.job.job_id
        self.state = SplitJobState(job_id=job_id, status="processing")
        self._update_backend_state()

        def run_async_processing():
            log.info(f"Starting split thread for job {job_id}")
            loop = asyncio.new_event_loop()
            try:
                asyncio.set_event_loop(loop)
                result = loop.run_until_complete(self.job.run(self._callbacks()))
                self.state.result = result.model_dump(mode="json", by_alias=True)
            except Exception as e:
                log.error(f"Split failed for job {job_id}: {e}", exc_info=True)
                self.state.status = "error"
                self.state.error = str(e) or "Failed to split image"
            finally:
                loop.close()
                with self._lock:
                    self.is_processing = False
                self._update_backend_state()
                log.debug(f"Split thread for job {job_id} finished")

        self._split_thread = threading.Thread(target=run_async_processing, daemon=True)
        self._split_thread.start()
        log.info(f"Job {job_id} started in background thread")
        return self._respond(ActionResponse.ok({"jobId": job_id}))

    def get_state(self) -> Dict[str, Any]:
        """Current split state, polled by the frontend"""
        with self._lock:
            processing = self.is_processing
        return {**asdict(self.state), "isProcessing": processing}

    def save_job(self) -> Dict[str, Any]:
        try:
            job = self.job.save(self.job_store)
        except (ValueError, OSError) as e:
            log.error(f"Save job error: {e}")
            return self._respond(ActionResponse.fail(str(e)))
        return self._respond(ActionResponse.ok({"id": job.id}))

    def list_jobs(self) -> Dict[str, Any]:
        jobs = self.job_store.list(user_id=self.job.user_id)
        return self._respond(
            ActionResponse.ok([job.model_dump(mode="json") for job in jobs])
        )

    def delete_job(self, job_id: str) -> Dict[str, Any]:
        job = self.job_store.get(job_id)
        if job is None or job.user_id != self.job.user_id:
            return self._respond(ActionResponse.fail("Print job not found"))
        for split_image in job.split_images:
            try:
                self.store.delete(split_image.url)
            except (ValueError, OSError) as e:
                log.warning(f"Could not remove sheet {split_image.url}: {e}")
        self.job_store.delete(job_id)
        return self._respond(ActionResponse.ok({"id": job_id}))

    def export_pdf(self, path: Optional[str] = None) -> Dict[str, Any]:
        """Write all four sheets to a PDF, one page each"""
        target = Path(path) if path else Path.cwd() / self.config.PDF_FILENAME
        try:
            saved = save_pdf(self.job.to_pdf(), target)
        except (ValueError, OSError) as e:
            log.error(f"PDF export failed: {e}")
            return self._respond(ActionResponse.fail(str(e)))
        return self._respond(ActionResponse.ok({"path": str(saved)}))

    def _on_stage(self, job_id: str, stage: str):
        log.debug(f"Job {job_id} stage: {stage}")
        self.state.messages.append(f"Stage: {stage}")
        self._update_backend_state()

    def _on_sheet_ready(self, job_id: str, page_number: int, url: str):
        log.info(f"Sheet {page_number} ready for job {job_id}")
        self.state.sheets_ready += 1
        self.state.messages.append(f"Sheet {page_number} of 4 ready")
        self._update_backend_state()

    def _on_error(self, job_id: str, error: str):
        log.error(f"Error callback for job {job_id}: {error}")
        self.state.status = "error"
        self.state.error = error
        self.state.messages.append(f"Error: {error}")
        self._update_backend_state()

    def _on_complete(self, job_id: str, sheet_count: int, elapsed: float):
        log.info(f"Job {job_id} completed: {sheet_count} sheets in {elapsed:.2f}s")
        self.state.status = "completed"
        self.state.elapsed = elapsed
        self.state.messages.append("Split completed successfully")
        self._update_backend_state()


if __name__ == "__main__":
    api = StencilWorkbenchApi(config)
    log.info(
        f"Starting Stencil Workbench in {'debug' if config.DEBUG_MODE else 'production'} mode"
    )

    if config.DEBUG_MODE:
        log.info("Using development server URL: http://localhost:5173/")
        url = "http://localhost:5173/"
    else:
        log.info("Using production build: frontend/dist/index.html")
        url = "frontend/dist/index.html"

    window = webview.create_window(
        "Stencil Workbench",
        url,
        js_api=api,
        min_size=(config.GUI_WINDOW_WIDTH, config.GUI_WINDOW_HEIGHT),
    )
    api.set_window(window)
    log.info("Starting webview main loop")
    webview.start(debug=config.DEBUG_MODE)
