from __future__ import annotations

import json
import re
import uuid
from datetime import datetime, timezone
from pathlib import Path

import aiosqlite

from reviewgen.pipeline.models import GeneratedDocument, GenerationRequest

_SCHEMA = """
CREATE TABLE IF NOT EXISTS generation_jobs (
    id              TEXT PRIMARY KEY,
    requested_by    TEXT,
    title           TEXT NOT NULL,
    content_type    TEXT NOT NULL,
    request         TEXT NOT NULL,
    status          TEXT NOT NULL DEFAULT 'pending',
    error           TEXT,
    document_id     TEXT,
    created_at      TEXT NOT NULL,
    updated_at      TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS documents (
    id               TEXT PRIMARY KEY,
    job_id           TEXT REFERENCES generation_jobs(id),
    requested_by     TEXT,
    title            TEXT NOT NULL,
    slug             TEXT NOT NULL,
    content_type     TEXT NOT NULL,
    status           TEXT NOT NULL DEFAULT 'draft',
    data             TEXT NOT NULL,
    rendered_html    TEXT NOT NULL,
    word_count       INTEGER,
    input_tokens     INTEGER,
    output_tokens    INTEGER,
    total_tokens     INTEGER,
    cost_usd         REAL,
    provider         TEXT,
    model            TEXT,
    elapsed_seconds  REAL,
    created_at       TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS llm_calls (
    id              TEXT PRIMARY KEY,
    document_id     TEXT REFERENCES documents(id),
    stage           TEXT,
    provider        TEXT,
    model           TEXT,
    input_tokens    INTEGER,
    output_tokens   INTEGER,
    cost_usd        REAL,
    duration_ms     INTEGER,
    estimated       INTEGER NOT NULL DEFAULT 0,
    created_at      TEXT NOT NULL
);
"""


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _uuid() -> str:
    return uuid.uuid4().hex[:12]


def slugify(text: str) -> str:
    text = text.strip().lower()
    text = re.sub(r"[^\w\s-]", "", text)
    text = re.sub(r"[\s_]+", "-", text)
    return text.strip("-")


class Database:
    def __init__(self, db_path: Path) -> None:
        self._db_path = db_path
        self._conn: aiosqlite.Connection | None = None

    async def connect(self) -> None:
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._conn = await aiosqlite.connect(self._db_path)
        self._conn.row_factory = aiosqlite.Row
        await self._conn.executescript(_SCHEMA)
        await self._conn.commit()

    async def close(self) -> None:
        if self._conn:
            await self._conn.close()

    @property
    def conn(self) -> aiosqlite.Connection:
        assert self._conn is not None, "Database not connected"
        return self._conn

    # --- Jobs ---

    async def create_job(self, request: GenerationRequest, requested_by: str | None = None) -> dict:
        job_id = _uuid()
        now = _now()
        await self.conn.execute(
            "INSERT INTO generation_jobs (id, requested_by, title, content_type, request, status, created_at, updated_at) "
            "VALUES (?, ?, ?, ?, ?, 'pending', ?, ?)",
            (job_id, requested_by, request.title, request.content_type.value,
             request.model_dump_json(), now, now),
        )
        await self.conn.commit()
        return {"id": job_id, "title": request.title, "status": "pending", "requested_by": requested_by}

    async def get_job(self, job_id: str) -> dict | None:
        async with self.conn.execute("SELECT * FROM generation_jobs WHERE id = ?", (job_id,)) as cur:
            row = await cur.fetchone()
            return dict(row) if row else None

    async def list_jobs(self) -> list[dict]:
        async with self.conn.execute("SELECT * FROM generation_jobs ORDER BY created_at DESC") as cur:
            return [dict(r) for r in await cur.fetchall()]

    async def update_job(self, job_id: str, **fields) -> None:
        fields["updated_at"] = _now()
        sets = ", ".join(f"{k} = ?" for k in fields)
        vals = list(fields.values()) + [job_id]
        await self.conn.execute(f"UPDATE generation_jobs SET {sets} WHERE id = ?", vals)
        await self.conn.commit()

    # --- Documents ---

    async def save_document(
        self,
        document: GeneratedDocument,
        job_id: str | None = None,
        requested_by: str | None = None,
    ) -> str:
        """Persist a complete document and its per-stage call log in one transaction."""
        doc_id = _uuid()
        now = _now()
        usage = document.usage
        await self.conn.execute(
            """INSERT INTO documents (id, job_id, requested_by, title, slug, content_type, data, rendered_html,
               word_count, input_tokens, output_tokens, total_tokens, cost_usd, provider, model,
               elapsed_seconds, created_at)
               VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
            (doc_id, job_id, requested_by, document.title, slugify(document.title),
             document.content_type.value, document.model_dump_json(exclude={"rendered_document"}),
             document.rendered_document, document.word_count, usage.input_tokens, usage.output_tokens,
             usage.total_tokens, document.cost, document.provider_used, document.model_used,
             document.elapsed_seconds, now),
        )
        await self.conn.executemany(
            """INSERT INTO llm_calls (id, document_id, stage, provider, model, input_tokens, output_tokens,
               cost_usd, duration_ms, estimated, created_at)
               VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
            [
                (_uuid(), doc_id, c.stage, c.provider, c.model, c.input_tokens, c.output_tokens,
                 c.cost, c.duration_ms, int(c.estimated_usage), now)
                for c in document.calls
            ],
        )
        await self.conn.commit()
        return doc_id

    async def get_document(self, doc_id: str) -> dict | None:
        async with self.conn.execute("SELECT * FROM documents WHERE id = ?", (doc_id,)) as cur:
            row = await cur.fetchone()
            return dict(row) if row else None

    async def load_document(self, doc_id: str) -> GeneratedDocument | None:
        row = await self.get_document(doc_id)
        if not row:
            return None
        data = json.loads(row["data"])
        data["rendered_document"] = row["rendered_html"]
        return GeneratedDocument.model_validate(data)

    async def list_documents(self, requested_by: str | None = None) -> list[dict]:
        query = "SELECT id, job_id, requested_by, title, slug, content_type, status, word_count, total_tokens, cost_usd, provider, model, created_at FROM documents"
        params: list = []
        if requested_by:
            query += " WHERE requested_by = ?"
            params.append(requested_by)
        async with self.conn.execute(query + " ORDER BY created_at DESC", params) as cur:
            return [dict(r) for r in await cur.fetchall()]

    # --- LLM Calls ---

    async def list_llm_calls(self, doc_id: str) -> list[dict]:
        async with self.conn.execute(
            "SELECT * FROM llm_calls WHERE document_id = ? ORDER BY created_at, rowid", (doc_id,)
        ) as cur:
            return [dict(r) for r in await cur.fetchall()]

    async def get_llm_stats(self) -> dict:
        async with self.conn.execute(
            "SELECT COUNT(*) as calls, COALESCE(SUM(input_tokens),0) as input_tokens, COALESCE(SUM(output_tokens),0) as output_tokens, COALESCE(SUM(cost_usd),0) as total_cost FROM llm_calls"
        ) as cur:
            row = await cur.fetchone()
            return dict(row) if row else {}
