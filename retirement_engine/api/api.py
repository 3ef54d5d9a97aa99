from fastapi import APIRouter
from . import retirement, milestones

api_router = APIRouter()
api_router.include_router(retirement.router, prefix="/retirement-plans", tags=["retirement-plans"])
api_router.include_router(milestones.router, prefix="/milestones", tags=["milestones"])
