from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.api.v1.lessons.router import router as lessons_router
from app.api.v1.schedule_slots.router import router as schedule_slots_router
from app.core.logging_config import configure_logging
from app.db.session import create_tables


@asynccontextmanager
async def lifespan(app: FastAPI):
    await create_tables()
    yield


def create_app() -> FastAPI:
    configure_logging()
    app = FastAPI(title="Lesson Scheduling Backend", lifespan=lifespan)

    # CORS: allow the console frontend to call this API
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Routers
    app.include_router(schedule_slots_router)
    app.include_router(lessons_router)

    return app


app = create_app()
