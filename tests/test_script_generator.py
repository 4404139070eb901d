"""Install script generation tests."""

import shlex

import pytest

from netwise.models import DnsServer, ZabbixServer
from netwise.schemas.common import ServerKind
from netwise.services import script_generator
from netwise.services.script_generator import AgentIdentity, ScriptGenerationError, ZabbixSecrets

TOKEN = "ab" * 32


def _dns(**overrides) -> DnsServer:
    fields = dict(
        id="11111111-2222-3333-4444-555555555555",
        name="resolver-01",
        ipv4="192.0.2.10",
        ssh_user="admin",
        ssh_port=2222,
        allowed_ssh_ips=["203.0.113.5"],
        allowed_dns_ipv4=["198.51.100.0/24"],
        allowed_dns_ipv6=[],
        loopback_ipv4_1=None,
        loopback_ipv4_2=None,
        loopback_ipv6_1=None,
        loopback_ipv6_2=None,
    )
    fields.update(overrides)
    return DnsServer(**fields)


def _zabbix(**overrides) -> ZabbixServer:
    fields = dict(
        id="99999999-2222-3333-4444-555555555555",
        name="zabbix-01",
        ipv4="192.0.2.20",
        ssh_user="root",
        ssh_port=22,
        zabbix_version="7.0",
        zabbix_db_user="zabbix",
        install_grafana=False,
        enable_firewall=False,
        firewall_allow_all=False,
        firewall_allowed_ips=[],
    )
    fields.update(overrides)
    return ZabbixServer(**fields)


def _identity(kind=ServerKind.DNS, server_id="11111111-2222-3333-4444-555555555555", **kw):
    return AgentIdentity(
        kind=kind, server_id=server_id, agent_token=TOKEN, api_url="https://cp.example.net/", **kw
    )


def test_dns_script_contents():
    script = script_generator.dns_install_script(_dns(), _identity())

    assert script.startswith("#!/bin/bash\nset -e\n")
    assert 'grep -q "bookworm" /etc/os-release' in script
    assert "apt-get install -y -qq rsyslog fail2ban nftables bind9 dnsutils curl jq\n" in script
    assert "frr" not in script
    assert "ip saddr 203.0.113.5 tcp dport { 22, 2222 } accept" in script
    assert "        198.51.100.0/24;" in script
    assert "port = ssh,2222" in script
    assert "Installation completed successfully" in script


def test_dns_script_restart_policy():
    script = script_generator.dns_install_script(_dns(), _identity())
    assert 'systemctl restart nftables || echo "WARNING' in script
    assert 'systemctl restart fail2ban || echo "WARNING' in script
    assert 'systemctl restart named || { echo "ERROR' in script


def test_generation_is_deterministic():
    server, identity = _dns(), _identity()
    assert script_generator.dns_install_script(server, identity) == script_generator.dns_install_script(
        server, identity
    )


def test_agent_section_embeds_identity():
    script = script_generator.dns_install_script(_dns(), _identity())
    assert "export API_URL=https://cp.example.net\n" in script
    assert f"export AGENT_TOKEN={TOKEN}\n" in script
    assert "export SERVER_ID=11111111-2222-3333-4444-555555555555\n" in script
    assert "export SERVER_TYPE=dns\n" in script
    assert "POLL_INTERVAL=30\n" in script
    assert "/api/agent/check" in script and "/api/agent/result" in script
    assert "systemctl enable netwise-agent" in script


def test_agent_script_for_reinstall():
    identity = _identity(kind=ServerKind.ZABBIX, poll_interval=10)
    script = script_generator.agent_script("zabbix 01; rm -rf /", identity)
    assert script.startswith("#!/bin/bash\nset -e\n")
    assert shlex.quote("zabbix 01; rm -rf /") in script
    assert "export SERVER_TYPE=zabbix\n" in script
    assert "POLL_INTERVAL=10\n" in script


@pytest.mark.parametrize("api_url", ["ftp://cp.example.net", "cp.example.net"])
def test_agent_requires_http_control_url(api_url):
    identity = AgentIdentity(kind=ServerKind.DNS, server_id="x", agent_token=TOKEN, api_url=api_url)
    with pytest.raises(ScriptGenerationError):
        script_generator.agent_section(identity)


def test_server_name_is_shell_quoted():
    script = script_generator.dns_install_script(_dns(name='evil"; reboot; echo "'), _identity())
    assert shlex.quote('  Server: evil"; reboot; echo "') in script
    assert 'echo "  Server: evil"; reboot' not in script


def test_missing_fields_raise():
    with pytest.raises(ScriptGenerationError):
        script_generator.dns_install_script(_dns(ipv4=None), _identity())
    with pytest.raises(ScriptGenerationError):
        script_generator.zabbix_install_script(
            _zabbix(ssh_user=""), ZabbixSecrets("a", "b"), _identity(ServerKind.ZABBIX)
        )


def test_anycast_ipv4_only():
    server = _dns(loopback_ipv4_1="198.18.0.1")
    plan = script_generator.anycast_plan(server)
    assert plan == {
        "dummy_interfaces": [{"name": "dummy0", "ipv4": "198.18.0.1", "ipv6": None}],
        "loopbacks_v4": ["198.18.0.1"],
        "ospf6_interfaces": [],
    }
    script = script_generator.dns_install_script(server, _identity())
    assert "frr frr-pythontools" in script
    assert "ospfd=yes\nospf6d=no" in script
    assert " network 198.18.0.1/32 area 0.0.0.0" in script
    assert "router ospf6" not in script


def test_anycast_ipv6_only_and_dual_stack():
    v6 = _dns(loopback_ipv6_1="2001:db8:53::1")
    script = script_generator.dns_install_script(v6, _identity())
    assert "ospfd=no\nospf6d=yes" in script
    assert "interface dummy0\n ipv6 ospf6 area 0.0.0.0" in script
    assert "    address 2001:db8:53::1/128" in script

    both = _dns(loopback_ipv4_1="198.18.0.1", loopback_ipv6_2="2001:db8:53::2")
    plan = script_generator.anycast_plan(both)
    assert [i["name"] for i in plan["dummy_interfaces"]] == ["dummy0", "dummy1"]
    assert plan["ospf6_interfaces"] == ["dummy1"]
    assert "ospfd=yes\nospf6d=yes" in script_generator.dns_install_script(both, _identity())


def test_no_anycast_without_loopbacks():
    assert script_generator.anycast_plan(_dns()) is None


def test_dns_firewall_update_command():
    command = script_generator.dns_firewall_update_command(_dns(allowed_ssh_ips=[]))
    assert "nft -c -f /etc/nftables.conf.new" in command
    assert "named-checkconf /etc/bind/named.conf.options.new" in command
    assert "SSH open to any source" in command
    assert command.index("nft -c") < command.index("mv /etc/nftables.conf.new")


def test_zabbix_script_contents():
    server = _zabbix(enable_firewall=True, install_grafana=True, firewall_allowed_ips=["192.0.2.0/24"])
    script = script_generator.zabbix_install_script(
        server, ZabbixSecrets("db'pass\\word", "root pw"), _identity(ServerKind.ZABBIX, server.id)
    )
    assert "repo.zabbix.com/zabbix/7.0/debian" in script
    assert "mysql --protocol=socket -u root < /root/.netwise/zabbix-bootstrap.sql" in script
    assert "IDENTIFIED BY 'db\\'pass\\\\word'" in script
    assert "USING PASSWORD('root pw')" in script
    assert "DBUser=zabbix\nDBPassword=db'pass\\word\nZBXEOF" in script
    assert "ip saddr 192.0.2.0/24 tcp dport { 80, 443, 3000 } accept" in script
    assert "apt-get install -y -qq grafana" in script
    assert 'systemctl restart zabbix-server 2>&1 || { echo "ERROR' in script
    assert "export SERVER_TYPE=zabbix\n" in script
    assert "INSTALLATION COMPLETED" in script


def test_zabbix_optional_sections_are_omitted():
    script = script_generator.zabbix_install_script(
        _zabbix(), ZabbixSecrets("a", "b"), _identity(ServerKind.ZABBIX)
    )
    assert "/etc/nftables.conf" not in script
    assert "grafana" not in script


@pytest.mark.parametrize(
    "secrets",
    [ZabbixSecrets("", "b"), ZabbixSecrets("a\nZBXEOF", "b"), ZabbixSecrets("a", "b\x00")],
)
def test_zabbix_rejects_unsafe_secrets(secrets):
    with pytest.raises(ScriptGenerationError):
        script_generator.zabbix_install_script(_zabbix(), secrets, _identity(ServerKind.ZABBIX))


def test_heredoc_delimiter_collision_is_rejected():
    with pytest.raises(ScriptGenerationError):
        script_generator._heredoc("line\nNFTEOF\nmore", "NFTEOF")
    assert script_generator._heredoc("NFTEOF-ish\n", "NFTEOF") == "NFTEOF-ish"
