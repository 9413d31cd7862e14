"""
Deployment Journal API Server
=============================

Read-only API surfacing persisted journals for one network.
Nothing here executes actions or writes to a journal.

Endpoints:
- GET /health                              -> Server status
- GET /api/v1/journals                     -> Journals on disk
- GET /api/v1/journals/{module}            -> Entries of one journal
- GET /api/v1/journals/{module}/verify     -> Hash chain verification

Usage:
    DEPLOYKIT_STATE_DIR=./deployments uvicorn deploykit.api.server:app
"""
import logging
import os
from contextlib import asynccontextmanager
from typing import Any, Dict, List, Optional

from fastapi import FastAPI, HTTPException
from pydantic import BaseModel

from ..contracts.errors import JournalCorruptionError
from ..engine import DEFAULT_STATE_DIR, STATE_DIR_ENV, Deployer, DeployerConfig
from ..journal.journal import ExecutionJournal
from ..journal.store import FileJournalStore

logger = logging.getLogger(__name__)

NETWORK_ENV = "DEPLOYKIT_NETWORK"


# =============================================================================
# RESPONSE MODELS
# =============================================================================

class JournalSummary(BaseModel):
    module: str
    location: str
    entry_count: int
    head_hash: Optional[str] = None
    valid: bool
    error: Optional[str] = None


class JournalEntryView(BaseModel):
    sequence: int
    action_id: str
    status: str
    attempt: int
    content_hash: str
    dependencies: List[str]
    result_value: Any = None
    error: Optional[Dict[str, Any]] = None
    recorded_at: str
    previous_hash: str
    entry_hash: str


class JournalDetail(BaseModel):
    module: str
    network: str
    location: str
    head_hash: str
    entries: List[JournalEntryView]


class VerificationReport(BaseModel):
    module: str
    valid: bool
    entry_count: int
    head_hash: Optional[str] = None
    message: Optional[str] = None


# =============================================================================
# INFRASTRUCTURE SETUP
# =============================================================================

deployer_config: Optional[DeployerConfig] = None


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Resolve the state directory on startup."""
    global deployer_config

    state_dir = os.environ.get(STATE_DIR_ENV, DEFAULT_STATE_DIR)
    network = os.environ.get(NETWORK_ENV, "default")
    deployer_config = DeployerConfig.from_env(state_dir=state_dir, network=network)

    logger.info(f"Serving journals from {deployer_config.journal.storage_dir}")

    yield

    deployer_config = None


app = FastAPI(
    title="DeployKit Journal API",
    version="0.1.0",
    description="Read-only view over deployment journals",
    lifespan=lifespan
)


def _config() -> DeployerConfig:
    if deployer_config is None:
        raise HTTPException(status_code=503, detail="Server not initialized")
    return deployer_config


def _open(module: str) -> ExecutionJournal:
    config = _config()
    if not config.journal.exists(module):
        raise HTTPException(status_code=404, detail=f"No journal for module '{module}'")
    return Deployer(config=config).open_journal(module)


# =============================================================================
# ENDPOINTS
# =============================================================================

@app.get("/health")
async def health_check():
    """System status."""
    config = _config()
    return {
        "status": "online",
        "mode": "read-only",
        "network": config.network,
        "state_dir": config.journal.storage_dir,
    }


@app.get("/api/v1/journals", response_model=List[JournalSummary])
async def list_journals():
    """
    List every journal for the configured network.

    A journal that cannot be read is listed with valid=false rather
    than hidden.
    """
    directory = _config().journal.storage_dir
    if not os.path.isdir(directory):
        return []

    summaries = []
    for filename in sorted(os.listdir(directory)):
        if not filename.endswith(".jsonl"):
            continue
        path = os.path.join(directory, filename)
        fallback_name = filename[:-len(".jsonl")]
        try:
            entries = list(FileJournalStore(path).read_entries())
            module = entries[0].record.module_name if entries else fallback_name
            journal = ExecutionJournal(module, FileJournalStore(path))
            summaries.append(JournalSummary(
                module=module,
                location=path,
                entry_count=len(journal),
                head_hash=journal.state.head_hash,
                valid=True,
            ))
        except JournalCorruptionError as e:
            summaries.append(JournalSummary(
                module=fallback_name,
                location=path,
                entry_count=0,
                valid=False,
                error=str(e),
            ))
    return summaries


@app.get("/api/v1/journals/{module}", response_model=JournalDetail)
async def get_journal(module: str):
    """
    Get the entries of one journal in sequence order.

    Constraint: a corrupted journal is reported (409), never partially served.
    """
    try:
        journal = _open(module)
    except JournalCorruptionError as e:
        raise HTTPException(status_code=409, detail=str(e))

    entries = []
    for entry in journal.replay():
        data = entry.record.to_dict()
        entries.append(JournalEntryView(
            sequence=entry.sequence.value,
            action_id=data["action_id"],
            status=data["status"],
            attempt=data["attempt"],
            content_hash=data["content_hash"],
            dependencies=data["dependencies"],
            result_value=data["result_value"],
            error=data["error"],
            recorded_at=data["recorded_at"],
            previous_hash=entry.previous_hash,
            entry_hash=entry.entry_hash,
        ))

    return JournalDetail(
        module=module,
        network=_config().network,
        location=journal.location,
        head_hash=journal.state.head_hash,
        entries=entries,
    )


@app.get("/api/v1/journals/{module}/verify", response_model=VerificationReport)
async def verify_journal(module: str):
    """Re-walk the hash chain of one journal."""
    try:
        journal = _open(module)
    except JournalCorruptionError as e:
        return VerificationReport(module=module, valid=False, entry_count=0, message=str(e))

    valid, message = journal.verify_integrity()
    return VerificationReport(
        module=module,
        valid=valid,
        entry_count=len(journal),
        head_hash=journal.state.head_hash,
        message=message,
    )


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("deploykit.api.server:app", host="127.0.0.1", port=8000)
