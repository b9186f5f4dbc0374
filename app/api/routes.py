from fastapi import APIRouter

from app.api.v1.accounts import router as accounts_router
from app.api.v1.connect import router as connect_router

api_router = APIRouter()

api_router.include_router(connect_router, prefix="/connect", tags=["oauth2"])
api_router.include_router(accounts_router, prefix="/accounts", tags=["accounts"])
