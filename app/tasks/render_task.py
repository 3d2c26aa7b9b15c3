from __future__ import annotations

import logging

from app.tasks import celery_app
from config import Config
from services.rendering import RenderingRefused, render_candidate_document

log = logging.getLogger("render")


@celery_app.task(bind=True, max_retries=3, default_retry_delay=30)
def render_candidate_task(self, candidate_id: str):
    """Render the visa document for one candidate; retried when rendering fails."""
    try:
        path = render_candidate_document(candidate_id, cfg=Config(), raise_refusal=True)
    except RenderingRefused as e:
        return {"candidateId": candidate_id, "artifactPath": None, "skipped": str(e)}
    if path is None:
        log.warning("render_task_retry candidate=%s attempt=%s", candidate_id, self.request.retries)
        raise self.retry()
    return {"candidateId": candidate_id, "artifactPath": path}
