"""
NoteLens - Note Parsing API Routes
Section detection and selective update planning endpoints
"""

import logging
from typing import List, Optional
from fastapi import APIRouter, HTTPException, UploadFile, File, Depends, status

from notelens.config import settings
from notelens.schemas import ParsedNote, NoteParseRequest, SectionUpdateConfig, UpdatePlanRequest
from notelens.exceptions import UnknownPresetError, UnsupportedDocumentError
from notelens.modules.section_detection import parse_clinical_note
from notelens.modules.selective_update import build_update_plan, apply_preset
from notelens.services.cache_service import RedisCacheService, get_cache_service
from notelens.services.document_parser import extract_note_text

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/notes", tags=["Notes"])


def get_parse_cache() -> Optional[RedisCacheService]:
    """Parse cache, or None when caching is switched off"""
    if not settings.enable_parse_cache:
        return None
    return get_cache_service()


def _parse_with_cache(text: str, cache: Optional[RedisCacheService]) -> ParsedNote:
    if cache is not None:
        cached = cache.get_cached_parsed_note(text)
        if cached is not None:
            return cached

    parsed = parse_clinical_note(text)

    if cache is not None:
        cache.cache_parsed_note(text, parsed)
    return parsed


@router.post("/parse", response_model=ParsedNote)
async def parse_note(
    request: NoteParseRequest,
    cache: Optional[RedisCacheService] = Depends(get_parse_cache)
):
    """
    Segment a clinical note into typed sections

    Parsing never fails on unusual text: unrecognised layouts fall back to
    paragraph classification and problems are reported in parse_metadata.
    """
    try:
        logger.info(f"Parsing note ({len(request.text)} chars)")
        return _parse_with_cache(request.text, cache if request.use_cache else None)
    except Exception as e:
        logger.error(f"Note parsing failed: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Note parsing failed: {str(e)}"
        )


@router.post("/parse/file", response_model=ParsedNote)
async def parse_note_file(
    file: UploadFile = File(...),
    cache: Optional[RedisCacheService] = Depends(get_parse_cache)
):
    """Parse an uploaded previous note (.txt, .pdf, .docx)"""
    try:
        content = await file.read()
        text = extract_note_text(content, file.filename or "", file.content_type)

        logger.info(f"Parsing uploaded note: {file.filename} ({len(text)} chars)")
        return _parse_with_cache(text, cache)

    except UnsupportedDocumentError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=e.message
        )
    except Exception as e:
        logger.error(f"Error parsing uploaded note: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"File parsing failed: {str(e)}"
        )


@router.post("/update-plan", response_model=List[SectionUpdateConfig])
async def create_update_plan(request: UpdatePlanRequest):
    """
    Decide which sections of a previous note to refresh

    Defaults follow the visit type; a preset, when given, overrides them.
    """
    try:
        configs = build_update_plan(request.parsed_note, request.visit_type)
        if request.preset:
            configs = apply_preset(configs, request.preset)
        return configs

    except UnknownPresetError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(e)
        )
    except Exception as e:
        logger.error(f"Update planning failed: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Update planning failed: {str(e)}"
        )
