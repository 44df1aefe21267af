from fastapi import APIRouter

from decisionlog.api.routes import exports, storage

api_router = APIRouter()
api_router.include_router(exports.router)
api_router.include_router(storage.router)
