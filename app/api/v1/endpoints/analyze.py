"""Start-analysis endpoint

POST /analyze runs a full analysis and streams its progress as
`data: <json>\n\n` events. The stream always ends with exactly one
`completed` or `error` event; input problems are reported on the stream
rather than as HTTP errors.
"""
from typing import AsyncIterator

from fastapi import APIRouter, Depends
from fastapi.responses import StreamingResponse

from app.dependencies.pipeline import get_orchestrator
from app.schemas.analysis import AnalyzeRequest
from app.services.orchestrator import AnalysisOrchestrator
from app.services.progress import encode_event

router = APIRouter(tags=["analysis"])


@router.post("/analyze")
async def analyze_repository(
    body: AnalyzeRequest,
    orchestrator: AnalysisOrchestrator = Depends(get_orchestrator),
) -> StreamingResponse:
    """Analyze a GitHub repository and stream progress events."""

    async def event_stream() -> AsyncIterator[str]:
        async for event in orchestrator.run(body.repo_url, body.github_token):
            yield encode_event(event)

    return StreamingResponse(
        event_stream(),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "Connection": "keep-alive"},
    )
