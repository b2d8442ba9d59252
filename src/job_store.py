"""Print job history persisted as a JSON file."""

import json
import logging
import random
import string
import threading
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Union

from models.api_schemas import PrintJob, SplitImage
from models.image_settings import ImageSettings

log = logging.getLogger(__name__)

_ID_ALPHABET = string.digits + string.ascii_lowercase


def new_job_id() -> str:
    suffix = "".join(random.choices(_ID_ALPHABET, k=9))
    return f"job_{int(time.time() * 1000)}_{suffix}"


class JobStore:
    """Create, list and delete saved print jobs."""

    def __init__(self, path: Union[str, Path]) -> None:
        self.path = Path(path)
        self._lock = threading.Lock()

    def _read(self) -> Dict[str, dict]:
        if not self.path.exists():
            return {}
        with open(self.path, "r") as f:
            return json.load(f)

    def _write(self, jobs: Dict[str, dict]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        with open(tmp_path, "w") as f:
            json.dump(jobs, f, indent=2)
        tmp_path.replace(self.path)

    def create(
        self,
        user_id: str,
        original_image_url: str,
        split_images: Sequence[SplitImage],
        settings: ImageSettings,
    ) -> PrintJob:
        job = PrintJob(
            id=new_job_id(),
            user_id=user_id,
            original_image_url=original_image_url,
            split_images=list(split_images),
            settings=settings,
            created_at=datetime.now(timezone.utc).isoformat(),
        )
        with self._lock:
            jobs = self._read()
            jobs[job.id] = job.model_dump(mode="json")
            self._write(jobs)
        log.info(f"Print job saved: {job.id}")
        return job

    def get(self, job_id: str) -> Optional[PrintJob]:
        with self._lock:
            record = self._read().get(job_id)
        return PrintJob.model_validate(record) if record else None

    def list(self, user_id: Optional[str] = None) -> List[PrintJob]:
        """Saved jobs, newest first, optionally for one user only."""
        with self._lock:
            records = list(self._read().values())
        jobs = [PrintJob.model_validate(r) for r in records]
        if user_id is not None:
            jobs = [job for job in jobs if job.user_id == user_id]
        return sorted(jobs, key=lambda job: job.created_at, reverse=True)

    def delete(self, job_id: str) -> bool:
        with self._lock:
            jobs = self._read()
            if job_id not in jobs:
                log.warning(f"Print job {job_id} not found for deletion")
                return False
            del jobs[job_id]
            self._write(jobs)
        log.info(f"Print job deleted: {job_id}")
        return True

    def clear(self) -> None:
        with self._lock:
            if self.path.exists():
                self.path.unlink()
