"""Repository class for async CRUD on stored scan reports."""

from __future__ import annotations

import json
import uuid

import aiosqlite

from piiscan.scanner.models import ScanOutcome


class ReportRepo:
    """CRUD for scan reports and their matches."""

    def __init__(self, db: aiosqlite.Connection) -> None:
        self._db = db

    async def save(self, outcome: ScanOutcome, kind: str = "local") -> str:
        report_id = uuid.uuid4().hex[:12]
        await self._db.execute(
            "INSERT INTO scan_reports "
            "(id, kind, source, files_scanned, files_skipped, "
            "remaining_budget, duration, timestamp) "
            "VALUES (?, ?, ?, ?, ?, ?, ?, ?)",
            (
                report_id,
                kind,
                outcome.source,
                outcome.files_scanned,
                outcome.files_skipped,
                outcome.remaining_budget,
                outcome.duration,
                outcome.timestamp,
            ),
        )

        for match in outcome.vulnerabilities:
            await self._db.execute(
                "INSERT INTO scan_matches "
                "(report_id, category, file_path, occurrences, lines, match_count) "
                "VALUES (?, ?, ?, ?, ?, ?)",
                (
                    report_id,
                    match.category,
                    match.file,
                    json.dumps(list(match.occurrences)),
                    json.dumps(list(match.lines)),
                    match.count,
                ),
            )

        await self._db.commit()
        return report_id

    async def get(self, report_id: str) -> dict | None:
        cursor = await self._db.execute(
            "SELECT * FROM scan_reports WHERE id = ?", (report_id,)
        )
        row = await cursor.fetchone()
        if not row:
            return None

        result = dict(row)
        cursor = await self._db.execute(
            "SELECT category, file_path, occurrences, lines, match_count "
            "FROM scan_matches WHERE report_id = ? ORDER BY id",
            (report_id,),
        )
        matches = []
        async for r in cursor:
            match = dict(r)
            match["occurrences"] = json.loads(match["occurrences"])
            match["lines"] = json.loads(match["lines"])
            matches.append(match)
        result["matches"] = matches
        return result

    async def list_all(self, limit: int = 50, offset: int = 0) -> list[dict]:
        cursor = await self._db.execute(
            "SELECT * FROM scan_reports ORDER BY timestamp DESC LIMIT ? OFFSET ?",
            (limit, offset),
        )
        return [dict(row) async for row in cursor]
