# claimease/api/v1/chatbot.py
from fastapi import APIRouter, Depends

from claimease.core.dependencies import get_chatbot_service, get_current_user
from claimease.models.schemas import ChatRequest

router = APIRouter()


@router.post("/")
async def chat(data: ChatRequest, user=Depends(get_current_user)):
    """Answer an insurance question for the signed-in user."""
    return await get_chatbot_service().chat(user, data.message)


@router.get("/suggestions")
async def suggestions():
    return {"success": True, "suggestions": get_chatbot_service().suggestions()}


@router.get("/faqs")
async def faqs():
    return {"success": True, "faqs": get_chatbot_service().faqs()}
