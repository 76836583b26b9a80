import sys

from fastapi import FastAPI
from loguru import logger
from tortoise.contrib.fastapi import register_tortoise

from app import settings
from app.routers import auth, booking, payments, time_slots, workshops

logger.remove()
logger.add(sys.stderr, level=settings.LOG_LEVEL)

app = FastAPI(title="Workshop Bookings Service")

app.include_router(auth.router)
app.include_router(time_slots.router)
app.include_router(booking.router)
app.include_router(payments.router)
app.include_router(workshops.router)

register_tortoise(
    app,
    db_url=settings.db_url,
    modules={"models": ["app.models"]},
    generate_schemas=True,
    add_exception_handlers=False,
)


@app.get("/health")
async def health():
    return {"status": "ok", "service": "workshop-bookings"}
