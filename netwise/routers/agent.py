"""Endpoints polled by the on-host agents."""

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from netwise.database import get_db
from netwise.schemas.agent import AgentCheckIn, AgentCheckInResponse, AgentResult
from netwise.services import agent_service

router = APIRouter()


@router.post("/check", response_model=AgentCheckInResponse)
async def check_in(payload: AgentCheckIn, db: AsyncSession = Depends(get_db)):
    try:
        return await agent_service.check_in(db, payload)
    except agent_service.AgentAuthError:
        raise HTTPException(status_code=401, detail="Invalid agent credentials")


@router.post("/result")
async def report_result(payload: AgentResult, db: AsyncSession = Depends(get_db)):
    try:
        await agent_service.report_result(db, payload)
    except agent_service.AgentAuthError:
        raise HTTPException(status_code=401, detail="Invalid agent credentials")
    except agent_service.CommandConflictError as exc:
        raise HTTPException(status_code=409, detail=str(exc))
    return {"ok": True}
