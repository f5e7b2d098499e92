"""FastAPI application exposing the image generation agent."""
from __future__ import annotations

import os

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware

from .api_models import ErrorResponse, HealthResponse
from .schemas import GenerationRequest, GenerationResponse
from .utils import get_agent_hook

APP_DESCRIPTION = (
    "Service that turns a plain-language description of an image into a stored "
    "image. It classifies the intent, builds an optimized prompt, calls the image "
    "model with retries and returns the image URL with a reasoning trace."
)
HOOK = get_agent_hook()


app = FastAPI(
    title="Image Generation Agent API",
    description=APP_DESCRIPTION,
    version=os.getenv("APP_VERSION", "0.1.0"),
    openapi_url="/openapi.json",
    docs_url="/docs",
    redoc_url="/redoc",
)


origins = HOOK.parse_csv_env("CORS_ALLOW_ORIGINS", ["*"])

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/", response_model=HealthResponse, tags=["health"])
async def healthcheck() -> HealthResponse:
    """Simple liveness probe used by orchestrators."""

    return HealthResponse(
        status="ok",
        detail="ready",
        image_model=HOOK.get_agent().get_config().model,
        preset=HOOK.preset,
    )


@app.post(
    "/v1/generations",
    response_model=GenerationResponse,
    response_model_by_alias=True,
    response_model_exclude_none=True,
    responses={
        400: {"model": ErrorResponse, "description": "Intent rejected as too short or vague"},
        422: {"description": "Validation error"},
        502: {"model": ErrorResponse, "description": "Image model or storage failure"},
        500: {"model": ErrorResponse, "description": "Unexpected server error"},
    },
    tags=["generations"],
)
async def generate_endpoint(request: GenerationRequest) -> GenerationResponse:
    """Generate an image for the supplied intent and optional hints."""

    agent = HOOK.get_agent()
    try:
        response = await agent.generate(request)
    except HTTPException:
        raise
    except Exception as exc:  # pragma: no cover - generate() reports failures itself
        HOOK.logger.exception("Agent raised instead of returning a failure response")
        raise HOOK.build_error_exception(
            500,
            code="generation_unexpected_error",
            message="Unexpected error while generating the image",
            details=str(exc),
            action="Inspect server logs or retry later",
        ) from exc

    if not response.success:
        raise HOOK.error_for_response(response)

    return response
