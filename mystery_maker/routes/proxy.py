"""Chat proxy with server-side prompts."""

import json

from fastapi import APIRouter, Request, Response
from fastapi.responses import JSONResponse

from mystery_maker.ai_proxy import CORS_HEADERS, handle_chat_request

router = APIRouter()


@router.options("/proxy-with-prompts")
async def proxy_preflight():
    return Response(status_code=204, headers=CORS_HEADERS)


@router.post("/proxy-with-prompts")
async def proxy_with_prompts(request: Request):
    """Chat completion with locale detection; always answers 200."""
    try:
        body = json.loads(await request.body() or b"{}")
    except ValueError:
        body = {}
    if not isinstance(body, dict):
        body = {}
    result = await handle_chat_request(body)
    return JSONResponse(result, status_code=200, headers=CORS_HEADERS)
