from fastapi import APIRouter
from imagepress.api.v1.endpoints import jobs, system

api_router = APIRouter()

api_router.include_router(jobs.router)
api_router.include_router(system.router)
