"""
FastAPI application for quiz generation.

Endpoints:
- POST /generate-quiz: turn document text into quiz questions
- GET  /health: service status and configured model
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Any, List, Optional

from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from loguru import logger
from pydantic import BaseModel, ConfigDict, Field

from ..agents.quiz_generator import QuizGenerationClient
from ..config import config
from ..errors import SynapseError, ValidationError
from ..utils.log import configure_logging


# ==================== Schemas ====================


class GenerateQuizRequest(BaseModel):
    """Body of POST /generate-quiz."""

    model_config = ConfigDict(populate_by_name=True)

    content: Optional[str] = None
    difficulty: str = "medium"
    question_count: Optional[int] = Field(default=None, alias="questionCount")


class WireQuestion(BaseModel):
    question: str
    type: str
    options: str  # JSON-encoded list
    correct: str


class GenerateQuizResponse(BaseModel):
    questions: List[WireQuestion]


# ==================== Dependencies ====================

_client: Optional[QuizGenerationClient] = None


def get_generation_client() -> QuizGenerationClient:
    """Shared generation client, created on first request."""
    global _client
    if _client is None:
        _client = QuizGenerationClient()
    return _client


# ==================== App ====================


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging()
    logger.info(
        f"Starting Synapse quiz service (provider={config.model.provider}, "
        f"model={config.model.model_name})"
    )
    for problem in config.validate():
        logger.warning(problem)
    yield
    logger.info("Shutting down Synapse quiz service...")


app = FastAPI(
    title="Synapse",
    description="AI quiz generation for collaborative study rooms.",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["authorization", "x-client-info", "apikey", "content-type"],
)


@app.exception_handler(SynapseError)
async def synapse_error_handler(request: Request, exc: SynapseError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error(f"{request.url.path} failed: {exc!r}")
    else:
        logger.warning(f"{request.url.path} rejected: {exc!r}")
    return JSONResponse(status_code=exc.status_code, content={"error": exc.message})


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    first = exc.errors()[0] if exc.errors() else {}
    location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
    message = f"Invalid request: {location} {first.get('msg', '')}".strip()
    logger.warning(f"{request.url.path} rejected: {message}")
    return JSONResponse(status_code=400, content={"error": message})


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.opt(exception=exc).error(f"{request.url.path} failed unexpectedly")
    return JSONResponse(status_code=500, content={"error": "Failed to generate quiz"})


@app.post("/generate-quiz", response_model=GenerateQuizResponse, tags=["Quiz"])
def generate_quiz(
    body: GenerateQuizRequest,
    client: QuizGenerationClient = Depends(get_generation_client),
) -> dict[str, Any]:
    """Generate quiz questions from document text."""
    if not body.content:
        raise ValidationError("Document content is required", code="MISSING_CONTENT")

    logger.info(
        f"Generating quiz: difficulty={body.difficulty}, count={body.question_count}, "
        f"content length={len(body.content)}"
    )
    questions = client.generate(
        body.content,
        difficulty=body.difficulty,
        question_count=body.question_count,
    )
    return {"questions": [q.to_wire() for q in questions]}


@app.get("/health", tags=["Health"])
def health_check() -> dict[str, str]:
    return {
        "status": "healthy",
        "provider": config.model.provider,
        "model": config.model.model_name,
    }
