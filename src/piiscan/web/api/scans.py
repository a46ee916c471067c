"""REST API for PII scans and stored scan reports."""

from __future__ import annotations

from fastapi import APIRouter, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse

from piiscan.scanner.engine import ScanEngine
from piiscan.scanner.models import ScanOutcome
from piiscan.storage.repos import ReportRepo
from piiscan.web.validation import (
    optional_string_list,
    read_body,
    require_patterns,
    require_string,
)

router = APIRouter(tags=["scans"])


async def _save(request: Request, outcome: ScanOutcome, kind: str) -> dict:
    payload = outcome.to_dict()
    repo = ReportRepo(request.app.state.db)
    payload["scan_id"] = await repo.save(outcome, kind=kind)
    return payload


@router.post("/scan-github")
async def scan_github(request: Request):
    body = await read_body(request)
    owner = require_string(body, "owner")
    repo = require_string(body, "repo")
    patterns = require_patterns(body)
    extensions = optional_string_list(body, "fileExtensions")

    engine: ScanEngine = request.app.state.engine
    outcome = await engine.scan_remote(owner, repo, extensions, patterns)
    return await _save(request, outcome, "github")


@router.post("/scan-directory")
async def scan_directory(request: Request):
    body = await read_body(request)
    directory = require_string(body, "directoryPath")
    extensions = optional_string_list(body, "extensionArray", required=True)
    patterns = require_patterns(body)

    engine: ScanEngine = request.app.state.engine
    outcome = await run_in_threadpool(engine.scan_local, directory, extensions, patterns)
    return await _save(request, outcome, "local")


@router.get("/scans")
async def list_scans(request: Request, limit: int = 50, offset: int = 0):
    repo = ReportRepo(request.app.state.db)
    return await repo.list_all(limit=limit, offset=offset)


@router.get("/scans/{scan_id}")
async def get_scan(scan_id: str, request: Request):
    repo = ReportRepo(request.app.state.db)
    result = await repo.get(scan_id)
    if not result:
        return JSONResponse(
            status_code=404,
            content={"detail": "Scan not found"},
        )
    return result
