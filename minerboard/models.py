"""Pydantic request models for the REST API."""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class ContributionRequest(BaseModel):
    """Body of POST /api/contributions. Presence and range checks happen in SnapshotIngest."""

    model_config = ConfigDict(populate_by_name=True)

    worker: Optional[str] = None
    hashrate1m: Optional[float] = None
    hashrate10m: Optional[float] = None
    accepted: Optional[int] = 0
    rejected: Optional[int] = 0
    total_hashes: Optional[int] = Field(default=0, alias="totalHashes")
