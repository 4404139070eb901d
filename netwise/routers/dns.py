"""DNS server CRUD + firewall endpoints."""

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from netwise.database import get_db
from netwise.schemas.common import AgentCommandState
from netwise.schemas.dns import DnsFirewallPolicy, DnsServerCreate, DnsServerResponse, DnsServerUpdate
from netwise.services import agent_service, dns_service
from netwise.services.script_generator import ScriptGenerationError

router = APIRouter()


@router.get("/", response_model=list[DnsServerResponse])
async def list_servers(db: AsyncSession = Depends(get_db)):
    return await dns_service.list_servers(db)


@router.get("/{server_id}", response_model=DnsServerResponse)
async def get_server(server_id: str, db: AsyncSession = Depends(get_db)):
    server = await dns_service.get_server(db, server_id)
    if not server:
        raise HTTPException(status_code=404, detail="DNS server not found")
    return server


@router.post("/", response_model=DnsServerResponse, status_code=201)
async def create_server(data: DnsServerCreate, db: AsyncSession = Depends(get_db)):
    return await dns_service.create_server(db, data)


@router.patch("/{server_id}", response_model=DnsServerResponse)
async def update_server(
    server_id: str, data: DnsServerUpdate, db: AsyncSession = Depends(get_db)
):
    server = await dns_service.update_server(db, server_id, data)
    if not server:
        raise HTTPException(status_code=404, detail="DNS server not found")
    return server


@router.delete("/{server_id}", status_code=204)
async def delete_server(server_id: str, db: AsyncSession = Depends(get_db)):
    deleted = await dns_service.delete_server(db, server_id)
    if not deleted:
        raise HTTPException(status_code=404, detail="DNS server not found")


@router.put("/{server_id}/firewall", response_model=AgentCommandState)
async def update_firewall(
    server_id: str, policy: DnsFirewallPolicy, db: AsyncSession = Depends(get_db)
):
    """Replace the allow-lists and push them to the host through the agent."""
    try:
        state = await dns_service.update_firewall(db, server_id, policy)
    except agent_service.CommandConflictError as exc:
        raise HTTPException(status_code=409, detail=str(exc))
    except ScriptGenerationError as exc:
        raise HTTPException(status_code=422, detail=str(exc))
    if not state:
        raise HTTPException(status_code=404, detail="DNS server not found")
    return state
