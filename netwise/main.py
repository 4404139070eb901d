"""FastAPI application entrypoint."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from netwise import __version__
from netwise.config import settings
from netwise.database import init_db
from netwise.routers import agent, dns, server_actions, zabbix
from netwise.schemas.common import ServerKind
from netwise.services import installer
from netwise.utils import crypto

# ── Logging setup ────────────────────────────────────────────────────
logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)-8s [%(name)s] %(message)s",
    datefmt="%H:%M:%S",
)
# paramiko logs every channel open at INFO
logging.getLogger("paramiko").setLevel(logging.WARNING)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup: refuse to run without a usable vault key in production
    crypto.load_key()
    await init_db()
    logger.info("NetWise %s started (env=%s)", __version__, settings.env)

    yield

    # Shutdown — in-flight installs are cancelled and marked as failed
    await installer.shutdown()


app = FastAPI(
    title="NetWise",
    description="Remote provisioning of DNS resolvers and Zabbix servers",
    version=__version__,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Mount routers
app.include_router(dns.router, prefix="/api/dns/servers", tags=["dns"])
app.include_router(
    server_actions.build_router(ServerKind.DNS), prefix="/api/dns/servers", tags=["dns"]
)
app.include_router(zabbix.router, prefix="/api/zabbix/servers", tags=["zabbix"])
app.include_router(
    server_actions.build_router(ServerKind.ZABBIX), prefix="/api/zabbix/servers", tags=["zabbix"]
)
app.include_router(agent.router, prefix="/api/agent", tags=["agent"])


@app.get("/health")
async def health():
    return {"status": "ok", "service": "netwise", "version": __version__}
