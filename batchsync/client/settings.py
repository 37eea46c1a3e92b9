# batchsync/client/settings.py
from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

# Storage server defaults (info/configuration).
DEFAULT_MAX_POST_RECORDS = 100
DEFAULT_MAX_POST_BYTES = 2 * 1024 * 1024  # 2 MiB
DEFAULT_MAX_TOTAL_RECORDS = 10_000
DEFAULT_MAX_TOTAL_BYTES = 100 * 1024 * 1024  # 100 MiB
DEFAULT_MAX_RECORD_PAYLOAD_BYTES = 256 * 1024  # 256 KiB


class UploadLimits(BaseModel):
    """Size bounds advertised by the storage server."""

    max_post_records: int = Field(default=DEFAULT_MAX_POST_RECORDS, gt=0)
    max_post_bytes: int = Field(default=DEFAULT_MAX_POST_BYTES, gt=0)
    """Per-request bounds."""

    max_total_records: int = Field(default=DEFAULT_MAX_TOTAL_RECORDS, gt=0)
    max_total_bytes: int = Field(default=DEFAULT_MAX_TOTAL_BYTES, gt=0)
    """Per-batch bounds."""

    max_record_payload_bytes: int = Field(default=DEFAULT_MAX_RECORD_PAYLOAD_BYTES, gt=0)


class UploaderSettings(BaseSettings):
    """Batch uploader settings.

    All settings can be configured via environment variables with the prefix BATCHSYNC_.
    For example, BATCHSYNC_REQUEST_TIMEOUT=10 sets request_timeout=10.0 and
    BATCHSYNC_LIMITS__MAX_POST_RECORDS=50 overrides one nested limit.
    """

    model_config = SettingsConfigDict(
        env_prefix="BATCHSYNC_",
        env_file=".env",
        env_nested_delimiter="__",
        nested_model_default_partial_update=True,
        extra="ignore",
    )

    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"

    # HTTP settings
    collection_url: str | None = None
    request_timeout: float = Field(default=30.0, gt=0)
    """Seconds a single payload request may take before it counts as a transport error."""

    limits: UploadLimits = Field(default_factory=UploadLimits)
