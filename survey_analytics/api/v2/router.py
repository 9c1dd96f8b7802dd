from fastapi import APIRouter
from survey_analytics.api.v2 import (
    surveys,
    questions,
    survey_generator,
    websocket,
)

api_router = APIRouter()

# Include all v2 routers
api_router.include_router(surveys.router, prefix="/surveys", tags=["surveys"])
api_router.include_router(questions.router, prefix="/questions", tags=["questions"])
api_router.include_router(survey_generator.router, prefix="/survey-generator", tags=["survey-generator"])
api_router.include_router(websocket.router, tags=["websocket"])
