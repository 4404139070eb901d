"""Zabbix server and proxy endpoints."""

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from netwise.database import get_db
from netwise.schemas.zabbix import (
    ZabbixProxyCreate,
    ZabbixProxyResponse,
    ZabbixServerCreate,
    ZabbixServerResponse,
)
from netwise.services import zabbix_service

router = APIRouter()


@router.get("/", response_model=list[ZabbixServerResponse])
async def list_servers(db: AsyncSession = Depends(get_db)):
    return await zabbix_service.list_servers(db)


@router.get("/{server_id}", response_model=ZabbixServerResponse)
async def get_server(server_id: str, db: AsyncSession = Depends(get_db)):
    server = await zabbix_service.get_server(db, server_id)
    if not server:
        raise HTTPException(status_code=404, detail="Zabbix server not found")
    return server


@router.post("/", response_model=ZabbixServerResponse, status_code=201)
async def create_server(data: ZabbixServerCreate, db: AsyncSession = Depends(get_db)):
    return await zabbix_service.create_server(db, data)


@router.delete("/{server_id}", status_code=204)
async def delete_server(server_id: str, db: AsyncSession = Depends(get_db)):
    deleted = await zabbix_service.delete_server(db, server_id)
    if not deleted:
        raise HTTPException(status_code=404, detail="Zabbix server not found")


# ── Proxies ──────────────────────────────────────────────────────────


@router.get("/{server_id}/proxies", response_model=list[ZabbixProxyResponse])
async def list_proxies(server_id: str, db: AsyncSession = Depends(get_db)):
    proxies = await zabbix_service.list_proxies(db, server_id)
    if proxies is None:
        raise HTTPException(status_code=404, detail="Zabbix server not found")
    return proxies


@router.post("/{server_id}/proxies", response_model=ZabbixProxyResponse, status_code=201)
async def create_proxy(
    server_id: str, data: ZabbixProxyCreate, db: AsyncSession = Depends(get_db)
):
    proxy = await zabbix_service.create_proxy(db, server_id, data)
    if not proxy:
        raise HTTPException(status_code=404, detail="Zabbix server not found")
    return proxy


@router.delete("/{server_id}/proxies/{proxy_id}", status_code=204)
async def delete_proxy(server_id: str, proxy_id: str, db: AsyncSession = Depends(get_db)):
    deleted = await zabbix_service.delete_proxy(db, server_id, proxy_id)
    if not deleted:
        raise HTTPException(status_code=404, detail="Proxy not found")
