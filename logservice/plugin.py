"""Plugin pipeline descriptions used by plugin-based log configs."""

from __future__ import annotations

from dataclasses import dataclass, field, fields
from typing import Any, Optional

PLUGIN_INPUT_TYPE_DOCKER_STDOUT = "service_docker_stdout"
PLUGIN_INPUT_TYPE_CANAL = "service_canal"


def _wire(name: str, default: Any = None) -> Any:
    return field(default=default, metadata={"wire": name})


def _copy_value(value: Any) -> Any:
    if isinstance(value, dict):
        return dict(value)
    if isinstance(value, list):
        return list(value)
    return value


def _wire_dict(obj: Any) -> dict:
    return {f.metadata["wire"]: _copy_value(getattr(obj, f.name)) for f in fields(obj)}


def _detail_to_wire(detail: Any) -> Any:
    to_dict = getattr(detail, "to_dict", None)
    if callable(to_dict):
        return to_dict()
    return _copy_value(detail)


@dataclass
class PluginInputItem:
    """One plugin step: its type and its type-specific detail."""

    type: str = ""
    detail: Any = None

    def to_dict(self) -> dict:
        return {"type": self.type, "detail": _detail_to_wire(self.detail)}


def _items_from_wire(items: Any) -> list[PluginInputItem]:
    return [
        PluginInputItem(type=item.get("type", ""), detail=item.get("detail"))
        for item in (items or [])
    ]


@dataclass
class LogConfigPluginInput:
    """A plugin pipeline of inputs, processors, aggregators and flushers."""

    inputs: list[PluginInputItem] = field(default_factory=list)
    processors: list[PluginInputItem] = field(default_factory=list)
    aggregators: list[PluginInputItem] = field(default_factory=list)
    flushers: list[PluginInputItem] = field(default_factory=list)

    def to_dict(self) -> dict:
        result: dict[str, Any] = {"inputs": [item.to_dict() for item in self.inputs]}
        for key in ("processors", "aggregators", "flushers"):
            items = getattr(self, key)
            if items:
                result[key] = [item.to_dict() for item in items]
        return result

    @classmethod
    def from_dict(cls, data: Optional[dict]) -> "LogConfigPluginInput":
        data = data or {}
        return cls(
            inputs=_items_from_wire(data.get("inputs")),
            processors=_items_from_wire(data.get("processors")),
            aggregators=_items_from_wire(data.get("aggregators")),
            flushers=_items_from_wire(data.get("flushers")),
        )


@dataclass
class ConfigPluginCanal:
    """Settings of the MySQL binlog (canal) input plugin."""

    host: str = _wire("Host", "")
    port: int = _wire("Port", 0)
    user: str = _wire("User", "")
    password: str = _wire("Password", "")
    flavor: str = _wire("Flavor", "")
    server_id: int = _wire("ServerID", 0)
    include_tables: Optional[list] = _wire("IncludeTables")
    exclude_tables: Optional[list] = _wire("ExcludeTables")
    start_bin_name: str = _wire("StartBinName", "")
    start_bin_log_pos: int = _wire("StartBinLogPos", 0)
    heart_beat_period: int = _wire("HeartBeatPeriod", 0)
    read_timeout: int = _wire("ReadTimeout", 0)
    enable_ddl: bool = _wire("EnableDDL", False)
    enable_xid: bool = _wire("EnableXID", False)
    enable_gtid: bool = _wire("EnableGTID", False)
    enable_insert: bool = _wire("EnableInsert", False)
    enable_update: bool = _wire("EnableUpdate", False)
    enable_delete: bool = _wire("EnableDelete", False)
    text_to_string: bool = _wire("TextToString", False)
    start_from_begining: bool = _wire("StartFromBegining", False)
    charset: str = _wire("Charset", "")

    def to_dict(self) -> dict:
        return _wire_dict(self)


@dataclass
class ConfigPluginDockerStdout:
    """Settings of the docker stdout/stderr input plugin."""

    include_label: Optional[dict] = _wire("IncludeLabel")
    exclude_label: Optional[dict] = _wire("ExcludeLabel")
    include_env: Optional[dict] = _wire("IncludeEnv")
    exclude_env: Optional[dict] = _wire("ExcludeEnv")
    flush_interval_ms: int = _wire("FlushIntervalMs", 0)
    timeout_ms: int = _wire("TimeoutMs", 0)
    begin_line_regex: str = _wire("BeginLineRegex", "")
    begin_line_timeout_ms: int = _wire("BeginLineTimeoutMs", 0)
    begin_line_check_length: int = _wire("BeginLineCheckLength", 0)
    max_log_size: int = _wire("MaxLogSize", 0)
    stdout: bool = _wire("Stdout", False)
    stderr: bool = _wire("Stderr", False)

    def to_dict(self) -> dict:
        return _wire_dict(self)


def create_plugin_input_item(type_: str, detail: Any) -> PluginInputItem:
    """Build a plugin step of the given type."""
    return PluginInputItem(type=type_, detail=detail)


def create_config_plugin_canal() -> ConfigPluginCanal:
    """Canal plugin settings with the service defaults filled in."""
    return ConfigPluginCanal(
        host="127.0.0.1",
        port=3306,
        user="root",
        flavor="mysql",
        server_id=1205,
        heart_beat_period=60,
        read_timeout=90,
        enable_gtid=True,
        enable_insert=True,
        enable_update=True,
        enable_delete=True,
        charset="utf8",
    )


def create_config_plugin_docker_stdout() -> ConfigPluginDockerStdout:
    """Docker stdout plugin settings with the service defaults filled in."""
    return ConfigPluginDockerStdout(
        flush_interval_ms=3000,
        timeout_ms=3000,
        stdout=True,
        stderr=True,
        begin_line_timeout_ms=3000,
        begin_line_check_length=10 * 1024,
        max_log_size=512 * 1024,
    )