import re
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import BinaryIO, Optional

from fastapi import HTTPException

from app.core.config import settings
from app.core.logger import logger

ALLOWED_SLIP_TYPES = {"application/pdf", "image/jpeg", "image/jpg", "image/png"}
SLIP_DIR = "appointment-slips"
CHUNK_SIZE = 64 * 1024

@dataclass
class StoredFile:
    filename: str
    original_name: str
    size: int
    mimetype: str
    path: str # relative to the storage root

class SlipStorage:
    """Appointment slips on local disk under ``UPLOAD_DIR/appointment-slips``."""

    def __init__(self, base_dir: Optional[str] = None, max_bytes: Optional[int] = None):
        self.base_dir = Path(base_dir or settings.UPLOAD_DIR)
        self.max_bytes = max_bytes or settings.MAX_UPLOAD_BYTES

    def resolve(self, relative_path: str) -> Path:
        path = (self.base_dir / relative_path).resolve()
        if self.base_dir.resolve() not in path.parents:
            raise ValueError(f"Path escapes storage root: {relative_path}")
        return path

    def save(self, user_id, fileobj: BinaryIO, original_name: str, mimetype: Optional[str]) -> StoredFile:
        if mimetype not in ALLOWED_SLIP_TYPES:
            raise HTTPException(
                status_code=400,
                detail="Invalid file type. Only PDF, JPEG, JPG, and PNG files are allowed.",
            )

        directory = self.base_dir / SLIP_DIR
        directory.mkdir(parents=True, exist_ok=True)

        original = Path(original_name or "slip")
        stem = re.sub(r"[^a-zA-Z0-9]", "_", original.stem) or "slip"
        filename = f"{user_id}_{int(time.time() * 1000)}_{stem}{original.suffix.lower()}"
        target = directory / filename

        size = 0
        with target.open("wb") as out:
            while chunk := fileobj.read(CHUNK_SIZE):
                size += len(chunk)
                if size > self.max_bytes:
                    break
                out.write(chunk)
        if size > self.max_bytes:
            target.unlink(missing_ok=True)
            limit_mb = self.max_bytes // (1024 * 1024)
            raise HTTPException(status_code=400, detail=f"File size too large. Maximum size is {limit_mb}MB.")
        if size == 0:
            target.unlink(missing_ok=True)
            raise HTTPException(status_code=400, detail="Appointment slip file is required")

        return StoredFile(
            filename=filename,
            original_name=original_name,
            size=size,
            mimetype=mimetype,
            path=f"{SLIP_DIR}/{filename}",
        )

    def delete(self, relative_path: str) -> None:
        try:
            self.resolve(relative_path).unlink(missing_ok=True)
        except (OSError, ValueError) as exc:
            logger.error(f"Error deleting appointment slip {relative_path}: {exc}")

    def info(self, relative_path: str) -> Optional[dict]:
        try:
            path = self.resolve(relative_path)
            stat = path.stat()
        except (OSError, ValueError):
            return None
        return {
            "filename": path.name,
            "size": stat.st_size,
            "created": datetime.fromtimestamp(stat.st_mtime, tz=timezone.utc),
        }

slip_storage = SlipStorage()

def get_slip_storage() -> SlipStorage:
    return slip_storage
