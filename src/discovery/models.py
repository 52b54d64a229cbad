"""
Discovery data structures and models
Device documents are decoded permissively: unknown keys are ignored,
missing or mistyped values fall back to zero values
"""

from typing import Any, Dict, List, Optional
from dataclasses import dataclass, field


def _section(data: Any, key: str) -> Dict:
    value = data.get(key) if isinstance(data, dict) else None
    return value if isinstance(value, dict) else {}


def _items(data: Dict, key: str) -> List:
    value = data.get(key)
    return value if isinstance(value, list) else []


def _int(data: Dict, key: str) -> int:
    value = data.get(key)
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    return 0


def _float(data: Dict, key: str) -> float:
    value = data.get(key)
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return float(value)
    return 0.0


def _str(data: Dict, key: str) -> str:
    value = data.get(key)
    return value if isinstance(value, str) else ""


def _bool(data: Dict, key: str) -> bool:
    value = data.get(key)
    return value if isinstance(value, bool) else False


def _optional_str(data: Dict, key: str) -> Optional[str]:
    value = data.get(key)
    return value if isinstance(value, str) else None


@dataclass
class ServiceRecord:
    """A single mDNS browse hit"""
    name: str
    hostname: str
    address: str
    port: int = 80

    @property
    def host_label(self) -> str:
        """First label of the advertised host name"""
        return self.hostname.split('.')[0]


# ================== /status ==================

@dataclass
class StatusWifiStation:
    connected: bool = False
    ssid: str = ""
    ip: str = ""
    rssi: int = 0

    @classmethod
    def from_dict(cls, data: Dict) -> "StatusWifiStation":
        return cls(
            connected=_bool(data, 'connected'),
            ssid=_str(data, 'ssid'),
            ip=_str(data, 'ip'),
            rssi=_int(data, 'rssi'),
        )


@dataclass
class CloudState:
    enabled: bool = False
    connected: bool = False

    @classmethod
    def from_dict(cls, data: Dict) -> "CloudState":
        return cls(enabled=_bool(data, 'enabled'), connected=_bool(data, 'connected'))


@dataclass
class LightState:
    ison: bool = False
    mode: str = ""
    brightness: int = 0

    @classmethod
    def from_dict(cls, data: Dict) -> "LightState":
        return cls(ison=_bool(data, 'ison'), mode=_str(data, 'mode'), brightness=_int(data, 'brightness'))


@dataclass
class MeterReading:
    power: float = 0.0
    is_valid: bool = False
    timestamp: int = 0
    counters: List[float] = field(default_factory=list)
    total: int = 0

    @classmethod
    def from_dict(cls, data: Dict) -> "MeterReading":
        counters = [float(c) for c in _items(data, 'counters')
                    if isinstance(c, (int, float)) and not isinstance(c, bool)]
        return cls(
            power=_float(data, 'power'),
            is_valid=_bool(data, 'is_valid'),
            timestamp=_int(data, 'timestamp'),
            counters=counters,
            total=_int(data, 'total'),
        )


@dataclass
class TemperatureReading:
    tC: float = 0.0
    tF: float = 0.0
    is_valid: str = ""

    @classmethod
    def from_dict(cls, data: Dict) -> "TemperatureReading":
        return cls(tC=_float(data, 'tC'), tF=_float(data, 'tF'), is_valid=_str(data, 'is_valid'))


@dataclass
class UpdateState:
    status: str = ""
    has_update: bool = False
    new_version: str = ""
    old_version: str = ""

    @classmethod
    def from_dict(cls, data: Dict) -> "UpdateState":
        return cls(
            status=_str(data, 'status'),
            has_update=_bool(data, 'has_update'),
            new_version=_str(data, 'new_version'),
            old_version=_str(data, 'old_version'),
        )


@dataclass
class DeviceStatus:
    """Decoded /status document"""
    wifi_sta: StatusWifiStation = field(default_factory=StatusWifiStation)
    cloud: CloudState = field(default_factory=CloudState)
    mqtt_connected: bool = False
    time: str = ""
    serial: int = 0
    has_update: bool = False
    mac: str = ""
    lights: List[LightState] = field(default_factory=list)
    meters: List[MeterReading] = field(default_factory=list)
    inputs: List[int] = field(default_factory=list)
    tmp: TemperatureReading = field(default_factory=TemperatureReading)
    calib_progress: int = 0
    overtemperature: bool = False
    loaderror: bool = False
    overload: bool = False
    update: UpdateState = field(default_factory=UpdateState)
    ram_total: int = 0
    ram_free: int = 0
    fs_size: int = 0
    fs_free: int = 0
    uptime: int = 0

    @classmethod
    def from_dict(cls, data: Any) -> "DeviceStatus":
        if not isinstance(data, dict):
            return cls()
        return cls(
            wifi_sta=StatusWifiStation.from_dict(_section(data, 'wifi_sta')),
            cloud=CloudState.from_dict(_section(data, 'cloud')),
            mqtt_connected=_bool(_section(data, 'mqtt'), 'connected'),
            time=_str(data, 'time'),
            serial=_int(data, 'serial'),
            has_update=_bool(data, 'has_update'),
            mac=_str(data, 'mac'),
            lights=[LightState.from_dict(i) for i in _items(data, 'lights') if isinstance(i, dict)],
            meters=[MeterReading.from_dict(i) for i in _items(data, 'meters') if isinstance(i, dict)],
            inputs=[_int(i, 'input') for i in _items(data, 'inputs') if isinstance(i, dict)],
            tmp=TemperatureReading.from_dict(_section(data, 'tmp')),
            calib_progress=_int(data, 'calib_progress'),
            overtemperature=_bool(data, 'overtemperature'),
            loaderror=_bool(data, 'loaderror'),
            overload=_bool(data, 'overload'),
            update=UpdateState.from_dict(_section(data, 'update')),
            ram_total=_int(data, 'ram_total'),
            ram_free=_int(data, 'ram_free'),
            fs_size=_int(data, 'fs_size'),
            fs_free=_int(data, 'fs_free'),
            uptime=_int(data, 'uptime'),
        )


# ================== /settings ==================

@dataclass
class DeviceInfo:
    type: str = ""
    mac: str = ""
    hostname: str = ""

    @classmethod
    def from_dict(cls, data: Dict) -> "DeviceInfo":
        return cls(type=_str(data, 'type'), mac=_str(data, 'mac'), hostname=_str(data, 'hostname'))


@dataclass
class AccessPointSettings:
    enabled: bool = False
    ssid: str = ""
    key: str = ""

    @classmethod
    def from_dict(cls, data: Dict) -> "AccessPointSettings":
        return cls(enabled=_bool(data, 'enabled'), ssid=_str(data, 'ssid'), key=_str(data, 'key'))


@dataclass
class WifiStationSettings:
    enabled: bool = False
    ssid: str = ""
    ipv4_method: str = ""
    ip: str = ""
    gw: str = ""
    mask: str = ""
    dns: str = ""

    @classmethod
    def from_dict(cls, data: Dict) -> "WifiStationSettings":
        return cls(
            enabled=_bool(data, 'enabled'),
            ssid=_str(data, 'ssid'),
            ipv4_method=_str(data, 'ipv4_method'),
            ip=_str(data, 'ip'),
            gw=_str(data, 'gw'),
            mask=_str(data, 'mask'),
            dns=_str(data, 'dns'),
        )


@dataclass
class SecondaryWifiStation:
    """Backup station block; unconfigured devices report null addresses"""
    enabled: bool = False
    ssid: Optional[str] = None
    ipv4_method: str = ""
    ip: Optional[str] = None
    gw: Optional[str] = None
    mask: Optional[str] = None
    dns: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Any) -> Optional["SecondaryWifiStation"]:
        if not isinstance(data, dict):
            return None
        return cls(
            enabled=_bool(data, 'enabled'),
            ssid=_optional_str(data, 'ssid'),
            ipv4_method=_str(data, 'ipv4_method'),
            ip=_optional_str(data, 'ip'),
            gw=_optional_str(data, 'gw'),
            mask=_optional_str(data, 'mask'),
            dns=_optional_str(data, 'dns'),
        )


@dataclass
class MqttSettings:
    enable: bool = False
    server: str = ""
    user: str = ""
    reconnect_timeout_max: float = 0.0
    reconnect_timeout_min: float = 0.0
    clean_session: bool = False
    keep_alive: int = 0
    will_topic: str = ""
    will_message: str = ""
    max_qos: int = 0
    retain: bool = False
    update_period: int = 0

    @classmethod
    def from_dict(cls, data: Dict) -> "MqttSettings":
        return cls(
            enable=_bool(data, 'enable'),
            server=_str(data, 'server'),
            user=_str(data, 'user'),
            reconnect_timeout_max=_float(data, 'reconnect_timeout_max'),
            reconnect_timeout_min=_float(data, 'reconnect_timeout_min'),
            clean_session=_bool(data, 'clean_session'),
            keep_alive=_int(data, 'keep_alive'),
            will_topic=_str(data, 'will_topic'),
            will_message=_str(data, 'will_message'),
            max_qos=_int(data, 'max_qos'),
            retain=_bool(data, 'retain'),
            update_period=_int(data, 'update_period'),
        )


@dataclass
class LoginSettings:
    enabled: bool = False
    unprotected: bool = False
    username: str = ""
    password: str = ""

    @classmethod
    def from_dict(cls, data: Dict) -> "LoginSettings":
        return cls(
            enabled=_bool(data, 'enabled'),
            unprotected=_bool(data, 'unprotected'),
            username=_str(data, 'username'),
            password=_str(data, 'password'),
        )


@dataclass
class BuildInfo:
    build_id: str = ""
    build_timestamp: str = ""
    build_version: str = ""

    @classmethod
    def from_dict(cls, data: Dict) -> "BuildInfo":
        return cls(
            build_id=_str(data, 'build_id'),
            build_timestamp=_str(data, 'build_timestamp'),
            build_version=_str(data, 'build_version'),
        )


@dataclass
class SensorSettings:
    motion_duration: int = 0
    motion_led: bool = False
    temperature_unit: str = ""

    @classmethod
    def from_dict(cls, data: Dict) -> "SensorSettings":
        return cls(
            motion_duration=_int(data, 'motion_duration'),
            motion_led=_bool(data, 'motion_led'),
            temperature_unit=_str(data, 'temperature_unit'),
        )


@dataclass
class DeviceSettings:
    """Decoded /settings document"""
    device: DeviceInfo = field(default_factory=DeviceInfo)
    wifi_ap: AccessPointSettings = field(default_factory=AccessPointSettings)
    wifi_sta: WifiStationSettings = field(default_factory=WifiStationSettings)
    wifi_sta1: Optional[SecondaryWifiStation] = None
    mqtt: MqttSettings = field(default_factory=MqttSettings)
    sntp_server: str = ""
    login: LoginSettings = field(default_factory=LoginSettings)
    pin_code: str = ""
    coiot_execute_enable: bool = False
    name: str = ""
    fw: str = ""
    build_info: BuildInfo = field(default_factory=BuildInfo)
    cloud: CloudState = field(default_factory=CloudState)
    timezone: str = ""
    lat: float = 0.0
    lng: float = 0.0
    tzautodetect: bool = False
    time: str = ""
    light_sensor: str = ""
    schedule: bool = False
    schedule_rules: List[Any] = field(default_factory=list)
    sensors: SensorSettings = field(default_factory=SensorSettings)

    @classmethod
    def from_dict(cls, data: Any) -> "DeviceSettings":
        if not isinstance(data, dict):
            return cls()
        return cls(
            device=DeviceInfo.from_dict(_section(data, 'device')),
            wifi_ap=AccessPointSettings.from_dict(_section(data, 'wifi_ap')),
            wifi_sta=WifiStationSettings.from_dict(_section(data, 'wifi_sta')),
            wifi_sta1=SecondaryWifiStation.from_dict(data.get('wifi_sta1')),
            mqtt=MqttSettings.from_dict(_section(data, 'mqtt')),
            sntp_server=_str(_section(data, 'sntp'), 'server'),
            login=LoginSettings.from_dict(_section(data, 'login')),
            pin_code=_str(data, 'pin_code'),
            coiot_execute_enable=_bool(data, 'coiot_execute_enable'),
            name=_str(data, 'name'),
            fw=_str(data, 'fw'),
            build_info=BuildInfo.from_dict(_section(data, 'build_info')),
            cloud=CloudState.from_dict(_section(data, 'cloud')),
            timezone=_str(data, 'timezone'),
            lat=_float(data, 'lat'),
            lng=_float(data, 'lng'),
            tzautodetect=_bool(data, 'tzautodetect'),
            time=_str(data, 'time'),
            light_sensor=_str(data, 'light_sensor'),
            schedule=_bool(data, 'schedule'),
            schedule_rules=list(_items(data, 'schedule_rules')),
            sensors=SensorSettings.from_dict(_section(data, 'sensors')),
        )


# ================== RESULTS ==================

@dataclass
class DeviceQueryResult:
    """Status and settings of one device plus any errors hit fetching them"""
    address: str
    status: DeviceStatus = field(default_factory=DeviceStatus)
    settings: DeviceSettings = field(default_factory=DeviceSettings)
    errors: List[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors


@dataclass
class CycleResult:
    """Summary of one discovery cycle"""
    records_seen: int = 0
    devices_matched: int = 0
    rows_emitted: int = 0
    rows_skipped: int = 0
    devices_with_errors: int = 0
    records_dropped: int = 0
    duration_seconds: float = 0.0
