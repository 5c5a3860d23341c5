from fastapi import APIRouter

from threatscope.api.routes import countries, relay, threats, utils

api_router = APIRouter()
api_router.include_router(utils.router)
api_router.include_router(relay.router)
api_router.include_router(countries.router)
api_router.include_router(threats.router)
