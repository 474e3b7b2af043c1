"""FastAPI application serving the LanguageTool check API."""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Dict, List

from fastapi import FastAPI, Form, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware

from ltapiserv.checkers.pipeline import Checkers
from ltapiserv.config import AppConfig
from ltapiserv.errors import (
    LtApiServError,
    MalformedAnnotationsError,
    TextTooLongError,
    UnsupportedLanguageError,
)
from ltapiserv.models import Language, Match
from ltapiserv.text.annotated import AnnotatedText, parse_request_data

LOGGER = logging.getLogger(__name__)

app = FastAPI(title="ltapiserv", version="0.1.0")
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)
app.state.checkers = None
app.state.config = AppConfig()


def _get_checkers(request: Request) -> Checkers:
    checkers = request.app.state.checkers
    if checkers is None:
        raise HTTPException(status_code=503, detail="Language model not loaded")
    return checkers


def _language_response(language: Language) -> Dict[str, Any]:
    return {**language.to_dict(), "detectedLanguage": language.to_dict()}


def _prepare(
    checkers: Checkers, config: AppConfig, text: str | None, data: str | None, language: str
) -> AnnotatedText:
    """Validate a request before any detector runs."""
    requested = Language.from_request(language)
    if requested != checkers.language:
        raise UnsupportedLanguageError(supports=str(checkers.language), request=str(requested))

    annotated = parse_request_data(text, data)
    text_length = annotated.text_len()
    if text_length > config.max_text_length:
        raise TextTooLongError(text_length, config.max_text_length)
    return annotated


def _status_for(exc: LtApiServError) -> int:
    if isinstance(exc, TextTooLongError):
        return 413
    if isinstance(exc, (MalformedAnnotationsError, UnsupportedLanguageError)):
        return 400
    return 500


async def _check(
    request: Request, text: str | None, data: str | None, language: str
) -> dict[str, Any]:
    start = time.perf_counter()
    LOGGER.info("Received query")
    checkers = _get_checkers(request)
    config: AppConfig = request.app.state.config

    try:
        annotated = _prepare(checkers, config, text, data, language)
    except LtApiServError as exc:
        LOGGER.error("%s", exc)
        raise HTTPException(status_code=_status_for(exc), detail=str(exc)) from exc

    matches: List[Match] = await asyncio.to_thread(checkers.suggest, annotated)

    elapsed = time.perf_counter() - start
    LOGGER.info(
        "Served query in %d ms (%.1f chars/s) with %d suggestions",
        elapsed * 1000,
        annotated.text_len() / elapsed if elapsed > 0 else 0.0,
        len(matches),
    )
    return {
        "matches": [match.to_dict() for match in matches],
        "language": _language_response(checkers.language),
    }


@app.post("/v2/check")
async def check_v2(
    request: Request,
    text: str | None = Form(None),
    data: str | None = Form(None),
    language: str = Form(...),
) -> dict[str, Any]:
    return await _check(request, text, data, language)


@app.post("/check")
async def check(
    request: Request,
    text: str | None = Form(None),
    data: str | None = Form(None),
    language: str = Form(...),
) -> dict[str, Any]:
    return await _check(request, text, data, language)


@app.get("/v2/languages")
async def list_languages(request: Request) -> List[Dict[str, str]]:
    """List the language served by the loaded model."""
    language = _get_checkers(request).language
    return [{"name": language.name, "code": language.code.split("-")[0], "longCode": language.code}]
