"""Zabbix server and proxy API tests."""

import pytest
from httpx import AsyncClient
from sqlalchemy import select

from netwise.models import ZabbixProxy, ZabbixServer
from netwise.utils import crypto

from conftest import ZABBIX_PAYLOAD


@pytest.mark.asyncio
async def test_create_and_get_server(client: AsyncClient, db, zabbix_server):
    assert zabbix_server["status"] == "pending"
    assert zabbix_server["zabbix_version"] == "7.0"
    assert zabbix_server["zabbix_db_user"] == "zabbix"
    assert zabbix_server["install_grafana"] is False
    assert not any("password" in key for key in zabbix_server)

    resp = await client.get(f"/api/zabbix/servers/{zabbix_server['id']}")
    assert resp.status_code == 200

    stored = await db.get(ZabbixServer, zabbix_server["id"])
    assert crypto.decrypt(stored.zabbix_db_password_encrypted) == "dbpw"
    assert crypto.decrypt(stored.zabbix_db_root_password_encrypted) == "dbrootpw"
    assert crypto.decrypt(stored.ssh_password_encrypted) == "rootpw"


@pytest.mark.asyncio
async def test_list_servers(client: AsyncClient, zabbix_server):
    resp = await client.get("/api/zabbix/servers/")
    assert [s["id"] for s in resp.json()] == [zabbix_server["id"]]


@pytest.mark.parametrize(
    "override",
    [
        {"zabbix_version": "latest"},
        {"zabbix_db_user": "zabbix'; DROP"},
        {"zabbix_db_password": ""},
        {"firewall_allowed_ips": ["example.com"]},
        {"firewall_allowed_ips": ["10.1.2.3/8"]},
    ],
)
@pytest.mark.asyncio
async def test_create_validation(client: AsyncClient, override):
    resp = await client.post("/api/zabbix/servers/", json={**ZABBIX_PAYLOAD, **override})
    assert resp.status_code == 422


@pytest.mark.asyncio
async def test_proxies(client: AsyncClient, zabbix_server):
    base = f"/api/zabbix/servers/{zabbix_server['id']}/proxies"
    assert (await client.get(base)).json() == []

    resp = await client.post(base, json={"name": "proxy-a", "ipv4": "192.0.2.30"})
    assert resp.status_code == 201
    proxy = resp.json()
    assert proxy["proxy_type"] == "active"
    assert proxy["server_id"] == zabbix_server["id"]

    resp = await client.post(base, json={"name": "proxy-b", "ipv4": "192.0.2.31", "proxy_type": "bogus"})
    assert resp.status_code == 422

    assert [p["name"] for p in (await client.get(base)).json()] == ["proxy-a"]

    assert (await client.delete(f"{base}/{proxy['id']}")).status_code == 204
    assert (await client.delete(f"{base}/{proxy['id']}")).status_code == 404


@pytest.mark.asyncio
async def test_proxies_of_unknown_server(client: AsyncClient):
    assert (await client.get("/api/zabbix/servers/missing/proxies")).status_code == 404
    resp = await client.post(
        "/api/zabbix/servers/missing/proxies", json={"name": "p", "ipv4": "192.0.2.30"}
    )
    assert resp.status_code == 404


@pytest.mark.asyncio
async def test_delete_cascades_to_proxies(client: AsyncClient, db, zabbix_server):
    base = f"/api/zabbix/servers/{zabbix_server['id']}"
    await client.post(f"{base}/proxies", json={"name": "proxy-a", "ipv4": "192.0.2.30"})
    await client.post(f"{base}/proxies", json={"name": "proxy-b", "ipv4": "192.0.2.31"})

    assert (await client.delete(base)).status_code == 204
    assert (await client.get(base)).status_code == 404

    remaining = await db.execute(select(ZabbixProxy).where(ZabbixProxy.server_id == zabbix_server["id"]))
    assert remaining.scalars().all() == []
