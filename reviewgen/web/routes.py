from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import HTMLResponse

from reviewgen.pipeline.models import GenerationRequest

router = APIRouter()


class GenerateBody(GenerationRequest):
    requested_by: str | None = None


def _get_db(request: Request):
    return request.app.state.db


def _get_jobs(request: Request):
    return request.app.state.job_manager


@router.post("/api/generate", status_code=202)
async def generate(body: GenerateBody, jm=Depends(_get_jobs)):
    request = GenerationRequest.model_validate(body.model_dump(exclude={"requested_by"}))
    job = await jm.submit(request, requested_by=body.requested_by)
    return {"job_id": job["id"], "status": job["status"]}


@router.get("/api/jobs")
async def list_jobs(db=Depends(_get_db)):
    return await db.list_jobs()


@router.get("/api/jobs/{job_id}")
async def job_status(job_id: str, db=Depends(_get_db), jm=Depends(_get_jobs)):
    """JSON API endpoint for polling job status."""
    job = await db.get_job(job_id)
    if not job:
        raise HTTPException(status_code=404, detail="Job not found")
    return {
        "id": job["id"],
        "title": job["title"],
        "content_type": job["content_type"],
        "status": job["status"],
        "document_id": job["document_id"],
        "error": job["error"],
        "is_running": jm.is_running(job_id),
    }


@router.get("/api/documents")
async def list_documents(requested_by: str | None = None, db=Depends(_get_db)):
    return await db.list_documents(requested_by=requested_by)


@router.get("/api/documents/{doc_id}")
async def document_detail(doc_id: str, db=Depends(_get_db)):
    document = await db.load_document(doc_id)
    if document is None:
        raise HTTPException(status_code=404, detail="Document not found")
    data = document.model_dump(mode="json")
    data["id"] = doc_id
    data["calls"] = await db.list_llm_calls(doc_id)
    return data


@router.get("/documents/{doc_id}", response_class=HTMLResponse)
async def document_html(doc_id: str, db=Depends(_get_db)):
    row = await db.get_document(doc_id)
    if not row:
        return HTMLResponse("Document not found", status_code=404)
    return HTMLResponse(row["rendered_html"])


@router.get("/api/stats")
async def llm_stats(db=Depends(_get_db)):
    return await db.get_llm_stats()
