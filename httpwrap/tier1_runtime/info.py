"""
httpwrap.tier1_runtime.info
─────────────────────────────
Transfer metadata snapshot: the fixed set of facts a transport reports
about the most recent exchange (effective URL, status, sizes, timings).

Times are in seconds, sizes in bytes, speeds in bytes per second.
"""
from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict


class TransferInfo(BaseModel):
    """Metadata for one completed transfer."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    url: str
    content_type: str | None = None
    http_code: int = 0
    header_size: int = 0
    request_size: int = 0
    filetime: int = -1
    ssl_verify_result: int = 0
    redirect_count: int = 0
    total_time: float = 0.0
    namelookup_time: float = 0.0
    connect_time: float = 0.0
    pretransfer_time: float = 0.0
    size_upload: float = 0.0
    size_download: float = 0.0
    speed_download: float = 0.0
    speed_upload: float = 0.0
    download_content_length: float = -1.0
    upload_content_length: float = -1.0
    starttransfer_time: float = 0.0
    redirect_time: float = 0.0

    @classmethod
    def keys(cls) -> tuple[str, ...]:
        return tuple(cls.model_fields)

    def as_dict(self) -> dict[str, Any]:
        return self.model_dump()


__all__ = ["TransferInfo"]
