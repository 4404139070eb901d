from netwise.models.dns_server import DnsServer
from netwise.models.zabbix_server import ZabbixProxy, ZabbixServer
from netwise.schemas.common import ServerKind

SERVER_MODELS: dict[ServerKind, type[DnsServer] | type[ZabbixServer]] = {
    ServerKind.DNS: DnsServer,
    ServerKind.ZABBIX: ZabbixServer,
}

__all__ = ["DnsServer", "SERVER_MODELS", "ZabbixProxy", "ZabbixServer"]
