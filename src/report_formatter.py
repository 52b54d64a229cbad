"""
Semicolon-delimited report rows for discovered Shelly devices
"""

from dataclasses import dataclass, astuple
from typing import Tuple, TYPE_CHECKING

if TYPE_CHECKING:
    from discovery.models import DeviceStatus, DeviceSettings

COLUMNS = ("Hostname", "Url", "RSSI", "Temperature", "Network", "IP", "Subnet", "Gateway")
DELIMITER = ";"


def _quote_join(fields) -> str:
    return DELIMITER.join(f'"{value}"' for value in fields)


HEADER_ROW = _quote_join(COLUMNS)


@dataclass(frozen=True)
class OutputRow:
    hostname: str
    url: str
    rssi: str
    temperature: str
    network: str
    ip: str
    subnet: str
    gateway: str

    def fields(self) -> Tuple[str, ...]:
        return astuple(self)

    def render(self) -> str:
        return _quote_join(self.fields())


def format_temperature(celsius: float) -> str:
    """Two decimals; exactly "0.00" means no sensor and renders empty"""
    text = f"{celsius:.2f}"
    return "" if text == "0.00" else text


def format_row(hostname: str, ip: str, status: "DeviceStatus", settings: "DeviceSettings") -> OutputRow:
    return OutputRow(
        hostname=hostname,
        url=f"http://{ip}",
        rssi=str(status.wifi_sta.rssi),
        temperature=format_temperature(status.tmp.tC),
        network=settings.wifi_sta.ipv4_method,
        # Leading tab is part of the report format
        ip=f"\t{ip}",
        subnet=settings.wifi_sta.mask,
        gateway=settings.wifi_sta.gw,
    )
