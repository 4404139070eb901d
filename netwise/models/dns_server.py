"""DNS resolver ORM model — BIND9 + nftables + optional FRR anycast."""

from sqlalchemy import JSON, String
from sqlalchemy.orm import Mapped, mapped_column

from netwise.database import Base
from netwise.models.server import ManagedServerMixin


class DnsServer(ManagedServerMixin, Base):
    __tablename__ = "dns_servers"

    allowed_ssh_ips: Mapped[list[str]] = mapped_column(JSON, default=list)
    allowed_dns_ipv4: Mapped[list[str]] = mapped_column(JSON, default=list)
    allowed_dns_ipv6: Mapped[list[str]] = mapped_column(JSON, default=list)

    # Anycast loopbacks advertised over OSPF
    loopback_ipv4_1: Mapped[str | None] = mapped_column(String(15), nullable=True)
    loopback_ipv4_2: Mapped[str | None] = mapped_column(String(15), nullable=True)
    loopback_ipv6_1: Mapped[str | None] = mapped_column(String(39), nullable=True)
    loopback_ipv6_2: Mapped[str | None] = mapped_column(String(39), nullable=True)

    @property
    def has_anycast(self) -> bool:
        return any(
            (self.loopback_ipv4_1, self.loopback_ipv4_2, self.loopback_ipv6_1, self.loopback_ipv6_2)
        )
