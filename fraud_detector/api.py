"""
Status API.

``GET /`` and ``POST /`` both return the latest published checkpoint. The
app only reads from the :class:`StatusStore`; it has no write routes.
"""

from __future__ import annotations

from typing import Optional

from fastapi import FastAPI
from pydantic import BaseModel, ConfigDict, Field

from .models import VerificationOutcome, VerifiedBlockStatus
from .status import StatusStore


class MismatchRecord(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    rollup_block_number: int = Field(alias="rollupBlockNumber")
    committed_root: str = Field(alias="committedRoot")
    canonical_root: str = Field(alias="canonicalRoot")
    verifier_root: str = Field(alias="verifierRoot")
    outcome: VerificationOutcome


class VerifiedBlockStatusResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    last_verified_block: int = Field(alias="lastVerifiedBlock")
    cumulative_root_count: int = Field(alias="cumulativeRootCount")
    halted: bool
    mismatch: Optional[MismatchRecord] = None

    @classmethod
    def from_status(cls, status: VerifiedBlockStatus) -> "VerifiedBlockStatusResponse":
        return cls.model_validate(status.to_dict())


def create_app(store: StatusStore) -> FastAPI:
    app = FastAPI(
        title="Fraud Detector Status API",
        description="Last checkpoint verified against the commitment chain and both rollup nodes.",
        version="0.1.0",
    )

    @app.get("/", response_model=VerifiedBlockStatusResponse)
    @app.post("/", response_model=VerifiedBlockStatusResponse)
    def read_status() -> VerifiedBlockStatusResponse:
        """Return the most recently published checkpoint snapshot."""
        return VerifiedBlockStatusResponse.from_status(store.snapshot())

    return app
