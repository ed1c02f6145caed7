"""
API v1 main router
Combines all v1 endpoint routers
"""

from fastapi import APIRouter

from assessment.api.v1.endpoints import battle, cohorts, health, leaderboard, quizzes

api_router = APIRouter()

api_router.include_router(health.router, tags=["Health"])
api_router.include_router(quizzes.router, prefix="/quizzes", tags=["Quizzes"])
api_router.include_router(battle.router, prefix="/battle", tags=["Battle"])
api_router.include_router(leaderboard.router, prefix="/leaderboard", tags=["Leaderboard"])
api_router.include_router(cohorts.router, prefix="/cohorts", tags=["Cohorts"])
