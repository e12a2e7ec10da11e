"""
Quiz Attempt Server - Motor de tentativas de quiz

FastAPI server with:
- Attempt lifecycle (begin, resume, save progress, submit)
- Accessibility window per quiz schedule
- Deterministic grading with external semantic grader for free-text
- Authenticated (gateway header) and invite-link identity flows
"""

import logging
from contextlib import asynccontextmanager

from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from quiz.config import QuizConfig
from quiz.engine import AccessibilityWindow, AttemptStateMachine, QuizGradingEngine
from quiz.errors import QuizEngineError
from quiz.llm import HttpSemanticGrader
from quiz.router import router as quiz_router
from quiz.storage import AttemptStore, MemoryKV, QuizStore

logger = logging.getLogger(__name__)


# =============================================================================
# FASTAPI APP
# =============================================================================


def create_app(config: QuizConfig | None = None, kv=None, grader=None, clock=None) -> FastAPI:
    """Cria a aplicacao com suas dependencias.

    Args:
        config: Configuracao (padrao: QuizConfig.from_env())
        kv: Backend KV compartilhado (padrao: MemoryKV novo)
        grader: Avaliador semantico (padrao: HttpSemanticGrader do config)
        clock: Relogio injetavel para testes

    Returns:
        Aplicacao FastAPI pronta para servir
    """
    if config is None:
        load_dotenv()
        config = QuizConfig.from_env()

    logging.basicConfig(
        level=config.log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Manage app lifecycle."""
        storage = kv if kv is not None else MemoryKV()
        owned_grader = None
        semantic = grader
        if semantic is None:
            owned_grader = HttpSemanticGrader(
                config.grader_url,
                timeout=config.grader_timeout,
                api_key=config.grader_api_key,
            )
            semantic = owned_grader

        engine_kwargs = {"default_duration": config.default_duration_minutes}
        if clock is not None:
            engine_kwargs["clock"] = clock

        app.state.config = config
        app.state.kv = storage
        app.state.quiz_store = QuizStore(storage)
        app.state.attempt_store = AttemptStore(storage)
        app.state.engine = AttemptStateMachine(
            app.state.quiz_store,
            app.state.attempt_store,
            QuizGradingEngine(grader=semantic, timeout=config.grader_timeout),
            AccessibilityWindow(default_timezone=config.default_timezone),
            **engine_kwargs,
        )
        logger.info(f"Quiz Attempt Server iniciado (grader: {config.grader_url})")

        yield

        if owned_grader is not None:
            await owned_grader.aclose()
            logger.info("Cliente do grader fechado")

    app = FastAPI(
        title="Quiz Attempt Engine",
        description="Attempt lifecycle, accessibility window and grading for timed quizzes",
        version="1.0.0",
        lifespan=lifespan,
    )

    # CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[
            "http://localhost:3000",
            "http://127.0.0.1:3000",
        ],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(QuizEngineError)
    async def quiz_engine_error_handler(request: Request, exc: QuizEngineError):
        """Converte erros do motor em JSON com o status HTTP da classe."""
        if exc.status_code >= 500:
            logger.error(f"{request.method} {request.url.path}: {exc.message}")
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    # =========================================================================
    # HEALTH ENDPOINTS
    # =========================================================================

    @app.get("/health")
    async def health_check():
        """Health check."""
        return {
            "status": "healthy",
            "default_timezone": config.default_timezone,
            "grader_url": config.grader_url,
        }

    app.include_router(quiz_router)
    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8001)
