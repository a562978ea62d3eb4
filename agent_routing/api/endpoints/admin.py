"""
Administrative endpoints for corpus maintenance.
Requires a bearer token equal to ADMIN_TOKEN or CRON_SECRET.
"""

import logging
import secrets

from fastapi import APIRouter, Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from agent_routing.api.endpoints.routing import get_service
from agent_routing.api.models import CorpusOperationResponse, RetireExamplesRequest
from agent_routing.service import RoutingService
from agent_routing.utils.monitoring import monitor_operation

logger = logging.getLogger(__name__)

router = APIRouter()
security = HTTPBearer()


async def verify_admin_token(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    service: RoutingService = Depends(get_service)
):
    """Verify admin authentication token."""
    tokens = service.settings.admin_tokens
    if not tokens:
        logger.warning("Admin request rejected: no admin token configured")
        raise HTTPException(status_code=403, detail="Administrative access is not configured")

    if not any(secrets.compare_digest(credentials.credentials, token) for token in tokens):
        logger.warning("Admin request rejected: invalid token")
        raise HTTPException(status_code=403, detail="Invalid admin token")
    return credentials


@router.post(
    "/feedback/process",
    response_model=CorpusOperationResponse,
    dependencies=[Depends(verify_admin_token)]
)
async def process_pending_feedback(service: RoutingService = Depends(get_service)):
    """Promote pending incorrect/improved feedback into a new corpus version."""
    with monitor_operation("process_pending_feedback"):
        count = await service.feedback_loop.process_pending()
    return CorpusOperationResponse(count=count, corpus_version=service.corpus.current().version)


@router.post(
    "/examples/seed-embeddings",
    response_model=CorpusOperationResponse,
    dependencies=[Depends(verify_admin_token)]
)
async def seed_example_embeddings(service: RoutingService = Depends(get_service)):
    """Back-fill embeddings for examples that do not have one yet."""
    with monitor_operation("seed_example_embeddings"):
        count = await service.feedback_loop.seed_example_embeddings()
    return CorpusOperationResponse(count=count, corpus_version=service.corpus.current().version)


@router.post(
    "/examples/retire",
    response_model=CorpusOperationResponse,
    dependencies=[Depends(verify_admin_token)]
)
async def retire_examples(request: RetireExamplesRequest, service: RoutingService = Depends(get_service)):
    """Publish a corpus version without the given examples."""
    count = await service.corpus.retire_examples(request.example_ids)
    return CorpusOperationResponse(count=count, corpus_version=service.corpus.current().version)


@router.get("/corpus", dependencies=[Depends(verify_admin_token)])
async def corpus_status(service: RoutingService = Depends(get_service)):
    """Published corpus version with per-agent example counts."""
    snapshot = service.corpus.current()
    summary = await service.store.get_corpus_summary(await service.store.get_current_version())
    summary["loaded_version"] = snapshot.version
    summary["loaded_examples"] = len(snapshot)
    return summary
