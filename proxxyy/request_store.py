import asyncio
import json
import logging
import os
import re
import threading
import time

from .models import CaptureRecord

logger = logging.getLogger("RequestStore")

CATALOG_FILENAME = "mocked-request.toml"
CATALOG_HEADER = (
    "# Mock configuration file generated by proxxyy\n"
    "# Each entry represents a mock endpoint\n"
)

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9_]")


def sanitize_filename(path_and_query: str) -> str:
    """'/users?page=1&per_page=10' -> 'users_page_1_per_page_10'"""
    path, _, query = path_and_query.partition("?")
    name = path[1:] if path.startswith("/") else path
    if query:
        name = f"{name}_{query.replace('&', '_').replace('=', '_')}"
    return _UNSAFE_CHARS.sub("_", name)


def extension_for(content_type) -> str:
    mime = (content_type or "").split(";", 1)[0].strip().lower()
    if mime == "text/html":
        return ".html"
    if mime.startswith("text/"):
        return ".txt"
    return ".json"


def _toml_string(value: str) -> str:
    # JSON string escapes are a subset of TOML basic string escapes
    return json.dumps(value, ensure_ascii=False).replace("\x7f", "\\u007f")


def format_mock_entry(record: CaptureRecord) -> str:
    return (
        "[[mocks]]\n"
        f"method = {_toml_string(record.method)}\n"
        f"path = {_toml_string(record.path)}\n"
        f"status = {record.status}\n"
        f"body = {_toml_string(record.file_name)}\n"
    )


class RequestStore:
    """Save observed responses as body files plus entries in a replayable mock catalog"""

    def __init__(self, storage_dir, clock=time.time):
        self.storage_dir = storage_dir
        self.catalog_path = os.path.join(storage_dir, CATALOG_FILENAME)
        self.clock = clock
        # Serializes the body-write + catalog-append unit across threads
        self._lock = threading.Lock()

    def build_record(self, method, path, status, body, content_type=None) -> CaptureRecord:
        return CaptureRecord(
            method=method.upper(),
            path=path,
            timestamp=int(self.clock()),
            sanitized_name=sanitize_filename(path),
            status=status,
            body=body,
            extension=extension_for(content_type),
        )

    def save_response(self, record: CaptureRecord):
        """
        Write the body file and append the catalog entry for `record`.

        Returns the body file path, or None when the capture could not be
        written. Failures are logged and never raised: capture is advisory.
        """
        with self._lock:
            try:
                os.makedirs(self.storage_dir, exist_ok=True)
            except OSError as e:
                logger.error(f"Failed to create save directory {self.storage_dir}: {e}")
                return None

            body_path = os.path.join(self.storage_dir, record.file_name)
            try:
                with open(body_path, "wb") as f:
                    f.write(record.body)
            except OSError as e:
                logger.error(f"Failed to save response to {body_path}: {e}")
                return None
            logger.info(f"Saved response to {body_path}")

            try:
                self._append_entry(record)
            except OSError as e:
                logger.error(f"Failed to update mock config {self.catalog_path}: {e}")
                return None
            logger.info(f"Updated mock config at {self.catalog_path}")
            return body_path

    def _append_entry(self, record: CaptureRecord):
        is_new = not os.path.exists(self.catalog_path) or os.path.getsize(self.catalog_path) == 0
        with open(self.catalog_path, "a", encoding="utf-8") as f:
            if is_new:
                f.write(CATALOG_HEADER)
            f.write("\n")
            f.write(format_mock_entry(record))

    async def record(self, method, path, status, body, content_type=None):
        capture = self.build_record(method, path, status, body, content_type)
        return await asyncio.to_thread(self.save_response, capture)
