"""
Configuration
Optional YAML file, overridden by environment variables and CLI flags
"""

import os
import re
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone, tzinfo
from pathlib import Path
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import yaml

PROGRAM_NAME = "gcal-review"


def default_config_path() -> Path:
    base = os.environ.get('XDG_CONFIG_HOME') or str(Path.home() / ".config")
    return Path(base) / PROGRAM_NAME / "config.yaml"


class ConfigError(Exception):
    pass


@dataclass
class Config:
    server_path: str = "gcal-mcp-server"
    timezone: Optional[str] = None
    max_results: int = 250
    debug: bool = False


LOCALTIME = Path("/etc/localtime")

UTC_OFFSET = re.compile(r'^([+-])(\d{2}):(\d{2})$')


def _local_tzinfo() -> tzinfo:
    return datetime.now().astimezone().tzinfo


def _offset_name(offset: timedelta) -> str:
    """Name for a fixed UTC offset: Etc/GMT-9 for +09:00, '+05:30' when not whole hours"""
    minutes = int(offset.total_seconds()) // 60
    if minutes == 0:
        return 'UTC'
    hours, rest = divmod(abs(minutes), 60)
    if rest == 0 and -12 <= minutes // 60 <= 14:
        # Etc/GMT names have the sign inverted
        return f"Etc/GMT{'-' if minutes > 0 else '+'}{hours}"
    return f"{'+' if minutes > 0 else '-'}{hours:02d}:{rest:02d}"


def get_system_timezone() -> str:
    """Get the system timezone from environment or detect from system"""
    # First check TZ environment variable
    tz = os.environ.get('TZ')
    if tz:
        return tz

    # /etc/localtime links into the zoneinfo database on most systems
    try:
        if LOCALTIME.is_symlink():
            target = str(LOCALTIME.resolve())
            if "zoneinfo/" in target:
                name = target.split("zoneinfo/", 1)[1]
                for prefix in ('posix/', 'right/'):
                    if name.startswith(prefix):
                        name = name[len(prefix):]
                return name
    except OSError:
        pass

    local_tz = _local_tzinfo()
    # zoneinfo and pytz zones carry their IANA name
    for attr in ('key', 'zone'):
        name = getattr(local_tz, attr, None)
        if name:
            return name

    # Fall back to the fixed local offset
    return _offset_name(local_tz.utcoffset(datetime.now()))


def get_tzinfo(name: str) -> tzinfo:
    """tzinfo for an IANA name or a '+HH:MM' offset; raises ValueError if unknown"""
    match = UTC_OFFSET.match(name)
    if match:
        offset = timedelta(hours=int(match.group(2)), minutes=int(match.group(3)))
        return timezone(-offset if match.group(1) == '-' else offset)
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, OSError) as exc:
        raise ValueError(f"unknown timezone: {name}") from exc


def load_config(path: Optional[Path] = None) -> Config:
    """Read the config file; a missing default file just means defaults"""
    explicit = path is not None
    path = path or default_config_path()
    config = Config()

    server_path = os.environ.get('GCAL_MCP_SERVER')
    if server_path:
        config.server_path = server_path

    if not path.exists():
        if explicit:
            raise ConfigError(f"Config not found: {path}")
        return config

    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except (OSError, yaml.YAMLError) as exc:
        raise ConfigError(f"Cannot read {path}: {exc}")
    if not isinstance(data, dict):
        raise ConfigError(f"{path}: expected a mapping at top level")

    for key, kind in (('server_path', str), ('timezone', str), ('max_results', int), ('debug', bool)):
        if key not in data:
            continue
        value = data[key]
        if not isinstance(value, kind) or (kind is int and isinstance(value, bool)):
            raise ConfigError(f"{path}: '{key}' must be a {kind.__name__}")
        setattr(config, key, value)

    unknown = set(data) - {'server_path', 'timezone', 'max_results', 'debug'}
    if unknown:
        raise ConfigError(f"{path}: unknown keys: {', '.join(sorted(unknown))}")

    return config
