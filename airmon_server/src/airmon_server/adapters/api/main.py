from contextlib import asynccontextmanager

from fastapi import FastAPI

from airmon_server.adapters.api.routes import get_live_registry, router


@asynccontextmanager
async def lifespan(_app: FastAPI):
    yield
    get_live_registry().close_all()


app = FastAPI(title="Facility Air Monitor", lifespan=lifespan)
app.include_router(router)
