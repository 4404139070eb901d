"""Shared fixtures: a throwaway SQLite database and an ASGI test client."""

import os
import tempfile

_tmpdir = tempfile.mkdtemp(prefix="netwise-tests-")
os.environ["NETWISE_ENV"] = "test"
os.environ["NETWISE_DATABASE_URL"] = f"sqlite+aiosqlite:///{_tmpdir}/netwise.db"
os.environ["NETWISE_VAULT_KEY"] = "00112233445566778899aabbccddeeff" * 2
os.environ["NETWISE_API_URL"] = "https://netwise.example.net"

import pytest_asyncio  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402

import netwise.models  # noqa: E402,F401
from netwise.database import Base, async_session, engine  # noqa: E402
from netwise.main import app  # noqa: E402
from netwise.services import installer  # noqa: E402

DNS_PAYLOAD = {
    "name": "resolver-01",
    "client_name": "ACME Telecom",
    "ipv4": "192.0.2.10",
    "ssh_user": "admin",
    "ssh_password": "s3cret pass'word",
    "ssh_port": 2222,
    "allowed_ssh_ips": ["203.0.113.5"],
    "allowed_dns_ipv4": ["198.51.100.0/24"],
}

ZABBIX_PAYLOAD = {
    "name": "zabbix-01",
    "ipv4": "192.0.2.20",
    "ssh_user": "root",
    "ssh_password": "rootpw",
    "zabbix_db_password": "dbpw",
    "zabbix_db_root_password": "dbrootpw",
}


@pytest_asyncio.fixture
async def tables():
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield
    await installer.shutdown()
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest_asyncio.fixture
async def client(tables):
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


@pytest_asyncio.fixture
async def db(tables):
    async with async_session() as session:
        yield session


@pytest_asyncio.fixture
async def dns_server(client):
    resp = await client.post("/api/dns/servers/", json=DNS_PAYLOAD)
    assert resp.status_code == 201
    return resp.json()


@pytest_asyncio.fixture
async def zabbix_server(client):
    resp = await client.post("/api/zabbix/servers/", json=ZABBIX_PAYLOAD)
    assert resp.status_code == 201
    return resp.json()
