"""REST API for language composition of a directory or repository."""

from __future__ import annotations

from fastapi import APIRouter, Request
from fastapi.concurrency import run_in_threadpool

from piiscan.scanner.engine import ScanEngine
from piiscan.web.validation import read_body, require_string

router = APIRouter(tags=["languages"])


@router.post("/analyze-github-repo")
async def analyze_github_repo(request: Request):
    body = await read_body(request)
    owner = require_string(body, "owner")
    repo = require_string(body, "repo")

    engine: ScanEngine = request.app.state.engine
    return await engine.analyze_remote(owner, repo)


@router.post("/analyze-local-directory")
async def analyze_local_directory(request: Request):
    body = await read_body(request)
    directory = require_string(body, "directoryPath")

    engine: ScanEngine = request.app.state.engine
    return await run_in_threadpool(engine.analyze_local, directory)
