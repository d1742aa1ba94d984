import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from errors import QuizPlayError

# Routers
from routers.achievements import router as achievements_router
from routers.admin import router as admin_router
from routers.health import router as health_router
from routers.quizzes import router as quizzes_router
from routers.rankings import router as rankings_router
from routers.sessions import router as sessions_router
from routers.stats import router as stats_router

logger = logging.getLogger("quizplay")
logging.basicConfig(level=logging.INFO)

app = FastAPI(title="QuizPlay – Session & Scoring API")

# Allow calls from the web client in dev and production
app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    ],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*", "x-api-key", "x-admin-token", "x-user-id", "x-user-role"],
)


@app.exception_handler(QuizPlayError)
async def handle_quizplay_error(request: Request, exc: QuizPlayError):
    return JSONResponse(status_code=exc.status_code, content={"ok": False, "error": exc.message})


@app.exception_handler(Exception)
async def handle_unexpected(request: Request, exc: Exception):
    # don't leak internals to clients
    logger.exception("unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"ok": False, "error": "internal server error"})


@app.get("/")
def health_root():
    return {"ok": True}


app.include_router(sessions_router)  # /sessions/...
app.include_router(quizzes_router)  # /quizzes/...
app.include_router(stats_router)  # /stats/...
app.include_router(achievements_router)  # /achievements/...
app.include_router(rankings_router)  # /rankings/...
app.include_router(admin_router)  # /admin/...
app.include_router(health_router)  # /health/...
