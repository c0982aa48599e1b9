from fastapi import APIRouter

from app.api.endpoints import relay, web

api_router = APIRouter()

api_router.include_router(relay.router, tags=["relay"])
api_router.include_router(web.router, tags=["web"])
