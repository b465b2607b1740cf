"""Models for the subset of `borg info --json` output the exporter reads"""

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from borg_exporter.errors import ParseError


class CacheStats(BaseModel):
    """Chunk and size counters reported by the borg cache"""

    model_config = ConfigDict(extra="ignore", strict=True)

    total_chunks: int = Field(ge=0, description="Number of chunks, counting duplicates")
    total_csize: int = Field(ge=0, description="Compressed size of all chunks")
    total_size: int = Field(ge=0, description="Original size of all chunks")
    total_unique_chunks: int = Field(ge=0, description="Number of distinct chunks")
    unique_csize: int = Field(ge=0, description="Compressed size of distinct chunks")
    unique_size: int = Field(ge=0, description="Original size of distinct chunks")


class Cache(BaseModel):
    model_config = ConfigDict(extra="ignore")

    stats: CacheStats


class Repository(BaseModel):
    model_config = ConfigDict(extra="ignore")

    last_modified: str = Field(description="Local time of the last change, with fractional seconds")


class BorgInfo(BaseModel):
    """Parsed `borg info --json` response; encryption, ids and paths are dropped"""

    model_config = ConfigDict(extra="ignore")

    cache: Cache
    repository: Repository


def parse_info(payload: bytes | str) -> BorgInfo:
    """
    Parse the stdout of `borg info --json`

    Raises:
        ParseError: If the payload is not JSON or lacks a required field
    """
    try:
        return BorgInfo.model_validate_json(payload)
    except ValidationError as e:
        raise ParseError(f"Invalid response from borg info: {e}") from e
