"""
SMS Webhook Endpoint
"""

from fastapi import APIRouter, Depends, Form, Response
from sqlalchemy.ext.asyncio import AsyncSession
from xml.sax.saxutils import escape

from app.api.deps import get_db
from app.services.sms_processor import SMSProcessor

router = APIRouter()

def twiml_message(text: str) -> str:
    return f'<?xml version="1.0" encoding="UTF-8"?><Response><Message>{escape(text)}</Message></Response>'

@router.post("/webhook")
async def sms_webhook(
    From: str = Form(...),
    Body: str = Form(""),
    db: AsyncSession = Depends(get_db)
):
    """
    Inbound SMS from the messaging provider; replies with TwiML
    """
    reply = await SMSProcessor(db).process_message(From, Body)
    return Response(content=twiml_message(reply), media_type="application/xml")
