from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Request, Response
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse

from app.schemas.scan import ScanRequestIn, ScanVerdictOut
from app.services.ai_gateway import AIGatewayError
from app.services.scanner import DocumentScanner, fail_open_verdict, get_document_scanner

# Public, open to every origin. Every response (errors included) keeps the
# {isSafe, warnings} contract and fails open, so callers that only read isSafe never block.
router = APIRouter(prefix="/functions/v1", tags=["scan"])

logger = logging.getLogger(__name__)

SCAN_CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Headers": "authorization, x-client-info, apikey, content-type",
}

_FAIL_OPEN_MESSAGES = {
    429: "Rate limit exceeded. Please try again in a moment.",
    402: "AI credits exhausted.",
}


def _fail_open(status_code: int, message: str) -> JSONResponse:
    payload = {"error": message, **fail_open_verdict().to_payload()}
    return JSONResponse(status_code=status_code, content=payload, headers=SCAN_CORS_HEADERS)


@router.options("/scan-document")
def scan_document_preflight():
    return Response(status_code=200, headers=SCAN_CORS_HEADERS)


@router.post("/scan-document", responses={200: {"model": ScanVerdictOut}})
async def scan_document(request: Request, scanner: DocumentScanner = Depends(get_document_scanner)):
    try:
        payload = ScanRequestIn.model_validate(await request.json())
        verdict = await run_in_threadpool(
            scanner.scan,
            content=payload.content,
            file_name=payload.file_name,
            file_type=payload.file_type,
        )
    except AIGatewayError as exc:
        if exc.status_code in _FAIL_OPEN_MESSAGES:
            logger.warning("AI gateway returned %s; failing open", exc.status_code)
            return _fail_open(exc.status_code, _FAIL_OPEN_MESSAGES[exc.status_code])
        logger.exception("Error in scan-document")
        return _fail_open(500, str(exc) or "Unknown error")
    except Exception as exc:
        logger.exception("Error in scan-document")
        return _fail_open(500, str(exc) or "Unknown error")

    return JSONResponse(status_code=200, content=verdict.to_payload(), headers=SCAN_CORS_HEADERS)
