from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from api.routes.health import router as health_router
from api.routes.ops import router as ops_router
from api.routes.videos import router as videos_router
from core import db
from core.config import get_settings

settings = get_settings()

app = FastAPI(title="ThumbWatch API", version="0.1.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=list(settings.cors_origins),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.on_event("startup")
def startup() -> None:
    db.init_db()


app.include_router(health_router)
app.include_router(videos_router)
app.include_router(ops_router)
