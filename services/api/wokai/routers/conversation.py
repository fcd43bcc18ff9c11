"""Conversational agent endpoints.

Endpoints:
- GET /conversation/signed-url - Signed conversation URL for a private ElevenLabs agent
"""

import logging

import httpx
from fastapi import APIRouter, HTTPException, Request
from slowapi import Limiter
from slowapi.util import get_remote_address

from ..schemas import SignedUrlResponse
from ..settings import settings

router = APIRouter(prefix="/conversation", tags=["conversation"])
limiter = Limiter(key_func=get_remote_address)
logger = logging.getLogger("wokai.conversation")


@router.get("/signed-url", response_model=SignedUrlResponse)
@limiter.limit("10/minute")
async def get_signed_url(request: Request):
    agent_id = settings.elevenlabs_agent_id
    api_key = settings.elevenlabs_api_key

    if not agent_id:
        raise HTTPException(status_code=500, detail="ELEVENLABS_AGENT_ID not configured")
    if not api_key:
        raise HTTPException(status_code=500, detail="ELEVENLABS_API_KEY not configured")

    url = f"{settings.elevenlabs_api_base}/v1/convai/conversation/get_signed_url"
    try:
        async with httpx.AsyncClient() as client:
            response = await client.get(
                url,
                params={"agent_id": agent_id},
                headers={"xi-api-key": api_key},
                timeout=10.0,
            )
    except httpx.HTTPError as e:
        logger.error(f"ElevenLabs request failed: {e}")
        raise HTTPException(status_code=502, detail="Failed to reach ElevenLabs")

    if response.status_code != 200:
        logger.error(f"ElevenLabs API error: {response.text}")
        raise HTTPException(status_code=response.status_code, detail="Failed to get signed URL from ElevenLabs")

    signed_url = response.json().get("signed_url")
    if not signed_url:
        raise HTTPException(status_code=502, detail="No signed URL returned")
    return SignedUrlResponse(signed_url=signed_url)
