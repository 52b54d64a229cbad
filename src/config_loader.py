"""
Configuration loader for Shelly mDNS Discovery
Loads configuration from YAML files, applies defaults and CLI overrides,
and builds the immutable DiscoveryConfig used by every component
"""

import yaml
import logging
import copy
from dataclasses import dataclass
from typing import Dict, Any, Optional
from pathlib import Path
from datetime import datetime
import pytz

logger = logging.getLogger(__name__)

RUN_MODES = ('once', 'periodic')
ERROR_POLICIES = ('emit', 'skip')


class ConfigError(ValueError):
    """Raised when a configuration value is invalid"""


@dataclass(frozen=True)
class DiscoveryConfig:
    """Immutable configuration built once at startup"""
    service: str = '_http._tcp'
    domain: str = 'local'
    wait_seconds: float = 90
    name_filter: str = 'shelly'
    username: str = 'admin'
    password: str = 'admin'
    request_timeout: Optional[float] = None
    run_mode: str = 'once'
    interval_minutes: float = 5
    on_error: str = 'emit'

    @property
    def service_type(self) -> str:
        """Fully qualified DNS-SD type, e.g. _http._tcp.local."""
        return f"{self.service.strip('.')}.{self.domain.strip('.')}."


def load_config(config_path: Optional[str] = None) -> Dict[str, Any]:
    """
    Load configuration from YAML file with validation
    Without a path only the built-in defaults are returned
    """
    if config_path is None:
        return _apply_defaults({})

    try:
        config_file = Path(config_path)
        if not config_file.exists():
            logger.error(f"Configuration file not found: {config_path}")
            raise FileNotFoundError(f"Config file not found: {config_path}")

        with open(config_file, 'r') as f:
            config = yaml.safe_load(f) or {}

        if not isinstance(config, dict):
            raise ConfigError(f"Configuration root must be a mapping: {config_path}")

        config = _apply_defaults(config)

        logger.info(f"Configuration loaded from {config_path}")
        return config

    except Exception as e:
        logger.error(f"Failed to load configuration: {e}")
        raise


def _apply_defaults(config: Dict) -> Dict:
    """Apply default values to configuration"""
    defaults = get_sample_config()
    for section, section_defaults in defaults.items():
        if section not in config or config[section] is None:
            config[section] = {}
        if not isinstance(config[section], dict):
            raise ConfigError(f"Configuration section '{section}' must be a mapping")
        for key, default_value in section_defaults.items():
            if key not in config[section]:
                config[section][key] = default_value
    return config


def apply_overrides(config: Dict, overrides: Dict[str, Dict[str, Any]]) -> Dict:
    """Return a copy of config with non-None override values applied per section"""
    merged = copy.deepcopy(config)
    for section, values in overrides.items():
        target = merged.setdefault(section, {})
        for key, value in values.items():
            if value is not None:
                target[key] = value
    return merged


def build_discovery_config(config: Dict) -> DiscoveryConfig:
    """Validate a loaded configuration dict and freeze it"""
    discovery = config['discovery']
    device = config['device']
    runner = config['runner']
    output = config['output']

    try:
        wait_seconds = float(discovery['wait_seconds'])
        interval_minutes = float(runner['interval_minutes'])
        request_timeout = device.get('request_timeout')
        if request_timeout is not None:
            request_timeout = float(request_timeout)
    except (TypeError, ValueError) as e:
        raise ConfigError(f"Invalid numeric configuration value: {e}") from e

    if wait_seconds <= 0:
        raise ConfigError("discovery.wait_seconds must be positive")
    if interval_minutes <= 0:
        raise ConfigError("runner.interval_minutes must be positive")
    if request_timeout is not None and request_timeout <= 0:
        raise ConfigError("device.request_timeout must be positive when set")
    if runner['mode'] not in RUN_MODES:
        raise ConfigError(f"runner.mode must be one of {', '.join(RUN_MODES)}")
    if output['on_error'] not in ERROR_POLICIES:
        raise ConfigError(f"output.on_error must be one of {', '.join(ERROR_POLICIES)}")
    if not discovery['service'] or not discovery['domain']:
        raise ConfigError("discovery.service and discovery.domain are required")

    return DiscoveryConfig(
        service=str(discovery['service']),
        domain=str(discovery['domain']),
        wait_seconds=wait_seconds,
        name_filter=str(discovery['name_filter']),
        username=str(device['username']),
        password=str(device['password']),
        request_timeout=request_timeout,
        run_mode=runner['mode'],
        interval_minutes=interval_minutes,
        on_error=output['on_error'],
    )


class TimezoneFormatter(logging.Formatter):
    """Formatter that renders timestamps in a configured timezone"""

    def __init__(self, fmt=None, tz_name: str = 'UTC'):
        super().__init__(fmt)
        self.tz = pytz.timezone(tz_name)

    def formatTime(self, record, datefmt=None):
        dt = datetime.fromtimestamp(record.created, tz=self.tz)
        if datefmt:
            return dt.strftime(datefmt)
        else:
            # Default format: YYYY-MM-DD HH:MM:SS TZ
            return dt.strftime('%Y-%m-%d %H:%M:%S %Z')


def setup_logging(config: Dict) -> None:
    """Setup logging based on configuration with timezone-aware timestamps"""
    log_config = config.get('logging', {})
    level = log_config.get('level', 'INFO')
    tz_name = log_config.get('timezone', 'UTC')

    log_format = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    try:
        formatter = TimezoneFormatter(log_format, tz_name)
    except pytz.UnknownTimeZoneError as e:
        raise ConfigError(f"Unknown logging timezone: {tz_name}") from e

    root = logging.getLogger()
    root.setLevel(getattr(logging, str(level).upper(), logging.INFO))
    for handler in list(root.handlers):
        root.removeHandler(handler)

    # Console handler writes to stderr so stdout carries only the report
    if log_config.get('console_output', True):
        console_handler = logging.StreamHandler()
        console_handler.setFormatter(formatter)
        root.addHandler(console_handler)

    log_file = log_config.get('file')
    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)

        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(formatter)
        root.addHandler(file_handler)

    logger.debug(f"Logging configured: level={level}, timezone={tz_name}, "
                 f"console={log_config.get('console_output', True)}, file={log_file}")


def get_sample_config() -> Dict:
    """Return a sample configuration with every supported key"""
    return {
        "discovery": {
            "service": "_http._tcp",
            "domain": "local",
            "wait_seconds": 90,
            "name_filter": "shelly"
        },
        "device": {
            "username": "admin",
            "password": "admin",
            "request_timeout": None     # None: no total timeout
        },
        "runner": {
            "mode": "once",             # once | periodic
            "interval_minutes": 5
        },
        "output": {
            "on_error": "emit"          # emit | skip
        },
        "logging": {
            "level": "INFO",
            "file": None,
            "console_output": True,
            "timezone": "UTC"
        }
    }
