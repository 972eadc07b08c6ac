from pydantic import BaseModel, Field, field_validator
from typing import Literal

from fixity_core.hashing import DEFAULT_CHUNK_SIZE

Tier = Literal["none", "info", "low", "medium", "high"]


class HashingConfig(BaseModel):
    algorithms: list[Literal["sha2-512/256", "blake2b"]] = Field(
        default_factory=lambda: ["sha2-512/256", "blake2b"], min_length=1
    )
    chunk_size: int = Field(default=DEFAULT_CHUNK_SIZE, gt=0)

    @field_validator("algorithms")
    @classmethod
    def dedupe_algorithms(cls, v: list[str]) -> list[str]:
        return list(dict.fromkeys(v))


class ScanConfig(BaseModel):
    workers: int = Field(default=4, gt=0)
    ignore_patterns: list[str] = Field(default_factory=list)


class ReportConfig(BaseModel):
    min_tier: Tier = "none"
    format: Literal["table", "json"] = "table"
    fail_on: Tier = "high"


class FixityConfig(BaseModel):
    hashing: HashingConfig = Field(default_factory=HashingConfig)
    scan: ScanConfig = Field(default_factory=ScanConfig)
    report: ReportConfig = Field(default_factory=ReportConfig)
    log_level: Literal["debug", "info", "warn", "error"] = "info"
    log_format: Literal["text", "json"] = "text"
