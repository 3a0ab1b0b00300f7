# main.py
from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.api.endpoints import health
from app.api.endpoints.web import schedules
from app.core.config import settings
from app.db.mongo import connect_to_mongo, close_mongo_connection

if not settings.is_production:
    print(f"⚠️ Running in {settings.ENVIRONMENT} mode.")


# [수명 주기 관리] DB 연결 및 해제
@asynccontextmanager
async def lifespan(app: FastAPI):
    await connect_to_mongo()
    yield
    await close_mongo_connection()

app = FastAPI(title="Study Planner Backend", lifespan=lifespan)

# CORS: 프론트엔드 접근 허용
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/")
async def read_root():
    return {"message": "Backend is running!"}

app.include_router(health.router)
app.include_router(schedules.router, prefix="/schedules", tags=["schedules"])
