"""Logtail collection configs: input details, defaults and dict conversion."""

from __future__ import annotations

import json
from dataclasses import dataclass, field, fields
from typing import Any, Callable, Optional

from .plugin import LogConfigPluginInput

INPUT_TYPE_SYSLOG = "syslog"
INPUT_TYPE_STREAMLOG = "streamlog"
INPUT_TYPE_PLUGIN = "plugin"
INPUT_TYPE_FILE = "file"

LOG_FILE_TYPE_APSARA_LOG = "apsara_log"
LOG_FILE_TYPE_REGEX_LOG = "common_reg_log"
LOG_FILE_TYPE_JSON_LOG = "json_log"
LOG_FILE_TYPE_DELIMITER_LOG = "delimiter_log"

OUTPUT_TYPE_LOG_SERVICE = "LogService"

MERGE_TYPE_TOPIC = "topic"
MERGE_TYPE_LOGSTORE = "logstore"

# Any other topic format is a file path regex whose first group is the topic.
TOPIC_FORMAT_NONE = "none"
TOPIC_FORMAT_MACHINE_GROUP = "group_topic"

_INPUT_TYPES = frozenset({INPUT_TYPE_SYSLOG, INPUT_TYPE_STREAMLOG, INPUT_TYPE_PLUGIN, INPUT_TYPE_FILE})
_UINT32_MAX = 2**32 - 1


class NoConfigFieldError(LookupError):
    """The config has no field with the requested name."""

    def __init__(self, message: str = "no this config field"):
        super().__init__(message)


class InvalidTypeError(TypeError):
    """The config detail is not a plain mapping."""

    def __init__(self, message: str = "invalid config type"):
        super().__init__(message)


def _decode_str(value: Any) -> str:
    if not isinstance(value, str):
        raise TypeError(f"expected string, got {type(value).__name__}")
    return value


def _decode_int(value: Any) -> int:
    if isinstance(value, bool):
        raise TypeError("expected integer, got bool")
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    raise TypeError(f"expected integer, got {value!r}")


def _decode_uint32(value: Any) -> int:
    number = _decode_int(value)
    if not 0 <= number <= _UINT32_MAX:
        raise ValueError(f"value {number} out of range")
    return number


def _decode_bool(value: Any) -> bool:
    if not isinstance(value, bool):
        raise TypeError(f"expected bool, got {type(value).__name__}")
    return value


def _decode_str_list(value: Any) -> list:
    if not isinstance(value, list):
        raise TypeError("expected list")
    return [_decode_str(item) for item in value]


def _decode_str_map(value: Any) -> dict:
    if not isinstance(value, dict):
        raise TypeError("expected mapping")
    return {key: _decode_str(item) for key, item in value.items() if item is not None} | {
        key: "" for key, item in value.items() if item is None
    }


def _decode_map(value: Any) -> dict:
    if not isinstance(value, dict):
        raise TypeError("expected mapping")
    return dict(value)


def _decode_json_value(value: Any) -> Any:
    """A detached copy of a plain JSON value, so later edits do not touch the source."""
    return json.loads(json.dumps(value, allow_nan=False))


def _decode_plugin(value: Any) -> LogConfigPluginInput:
    if not isinstance(value, dict):
        raise TypeError("expected mapping for plugin")
    for key in ("inputs", "processors", "aggregators", "flushers"):
        items = value.get(key)
        if items is None:
            continue
        if not isinstance(items, list) or not all(isinstance(item, dict) for item in items):
            raise TypeError(f"invalid plugin {key}")
        for item in items:
            if item.get("type") is not None:
                _decode_str(item["type"])
    return LogConfigPluginInput.from_dict(value)


def _wire(
    name: str,
    decode: Callable[[Any], Any],
    default: Any = None,
    *,
    omitempty: bool = False,
    factory: Optional[Callable[[], Any]] = None,
) -> Any:
    meta = {"wire": name, "decode": decode, "omitempty": omitempty}
    if factory is not None:
        return field(default_factory=factory, metadata=meta)
    return field(default=default, metadata=meta)


def _encode(value: Any) -> Any:
    to_dict = getattr(value, "to_dict", None)
    if callable(to_dict):
        return to_dict()
    if isinstance(value, list):
        return [_encode(item) for item in value]
    if isinstance(value, dict):
        return {key: _encode(item) for key, item in value.items()}
    return value


class _WireModel:
    """Mapping to and from the service's JSON field names."""

    def to_dict(self) -> dict:
        result: dict[str, Any] = {}
        for f in fields(self):  # type: ignore[arg-type]
            value = getattr(self, f.name)
            if f.metadata["omitempty"] and not value:
                continue
            result[f.metadata["wire"]] = _encode(value)
        return result

    @classmethod
    def from_dict(cls, data: Any):
        """Build from a mapping; unknown keys and nulls are ignored."""
        if not isinstance(data, dict):
            raise TypeError(f"expected mapping for {cls.__name__}")
        obj = cls()
        for f in fields(cls):  # type: ignore[arg-type]
            value = data.get(f.metadata["wire"])
            if value is not None:
                setattr(obj, f.name, f.metadata["decode"](value))
        return obj


@dataclass
class InputDetail(_WireModel):
    """Legacy file input detail, kept for older configs."""

    log_type: str = _wire("logType", _decode_str, "")
    log_path: str = _wire("logPath", _decode_str, "")
    file_pattern: str = _wire("filePattern", _decode_str, "")
    local_storage: bool = _wire("localStorage", _decode_bool, False)
    time_key: str = _wire("timeKey", _decode_str, "")
    time_format: str = _wire("timeFormat", _decode_str, "")
    log_begin_regex: str = _wire("logBeginRegex", _decode_str, "")
    regex: str = _wire("regex", _decode_str, "")
    keys: Optional[list] = _wire("key", _decode_str_list)
    filter_keys: Optional[list] = _wire("filterKey", _decode_str_list)
    filter_regex: Optional[list] = _wire("filterRegex", _decode_str_list)
    topic_format: str = _wire("topicFormat", _decode_str, "")
    separator: str = _wire("separator", _decode_str, "")
    auto_extend: bool = _wire("autoExtend", _decode_bool, False)


@dataclass
class SensitiveKey(_WireModel):
    """A field whose sensitive content is masked during collection."""

    key: str = _wire("key", _decode_str, "")
    type: str = _wire("type", _decode_str, "")
    regex_begin: str = _wire("regex_begin", _decode_str, "")
    regex_content: str = _wire("regex_content", _decode_str, "")
    all: bool = _wire("all", _decode_bool, False)
    const_string: str = _wire("const", _decode_str, "")


def _decode_sensitive_keys(value: Any) -> list:
    if not isinstance(value, list):
        raise TypeError("expected list of sensitive keys")
    return [SensitiveKey.from_dict(item) for item in value]


@dataclass
class CommonConfigInputDetail(_WireModel):
    """Settings shared by every input detail."""

    local_storage: bool = _wire("localStorage", _decode_bool, False)
    filter_keys: Optional[list] = _wire("filterKey", _decode_str_list, omitempty=True)
    filter_regex: Optional[list] = _wire("filterRegex", _decode_str_list, omitempty=True)
    shard_hash_key: Optional[list] = _wire("shardHashKey", _decode_str_list, omitempty=True)
    enable_tag: bool = _wire("enableTag", _decode_bool, False)
    enable_raw_log: bool = _wire("enableRawLog", _decode_bool, False)
    max_send_rate: int = _wire("maxSendRate", _decode_int, 0)
    send_rate_expire: int = _wire("sendRateExpire", _decode_int, 0)
    sensitive_keys: Optional[list] = _wire("sensitive_keys", _decode_sensitive_keys, omitempty=True)
    merge_type: str = _wire("mergeType", _decode_str, "", omitempty=True)
    delay_alarm_bytes: int = _wire("delayAlarmBytes", _decode_int, 0, omitempty=True)
    adjust_time_zone: bool = _wire("adjustTimezone", _decode_bool, False)
    log_time_zone: str = _wire("logTimezone", _decode_str, "", omitempty=True)
    priority: int = _wire("priority", _decode_int, 0, omitempty=True)

    @classmethod
    def create(cls):
        """A new detail with the service's recommended defaults."""
        obj = cls()
        obj._apply_defaults()
        return obj

    def _apply_defaults(self) -> None:
        self.local_storage = True
        self.enable_tag = True
        self.max_send_rate = -1
        self.merge_type = MERGE_TYPE_TOPIC

    def to_dict(self) -> dict:
        return super().to_dict()

    @classmethod
    def from_dict(cls, data: Any):
        return super().from_dict(data)


@dataclass
class LocalFileConfigInputDetail(CommonConfigInputDetail):
    """Settings shared by every file-based input detail."""

    log_type: str = _wire("logType", _decode_str, "")
    log_path: str = _wire("logPath", _decode_str, "")
    file_pattern: str = _wire("filePattern", _decode_str, "")
    time_format: str = _wire("timeFormat", _decode_str, "")
    topic_format: str = _wire("topicFormat", _decode_str, "", omitempty=True)
    preserve: bool = _wire("preserve", _decode_bool, False)
    preserve_depth: int = _wire("preserveDepth", _decode_int, 0)
    file_encoding: str = _wire("fileEncoding", _decode_str, "", omitempty=True)
    discard_unmatch: bool = _wire("discardUnmatch", _decode_bool, False)
    max_depth: int = _wire("maxDepth", _decode_int, 0)
    tail_existed: bool = _wire("tailExisted", _decode_bool, False)
    discard_non_utf8: bool = _wire("discardNonUtf8", _decode_bool, False)
    delay_skip_bytes: int = _wire("delaySkipBytes", _decode_int, 0)
    is_docker_file: bool = _wire("dockerFile", _decode_bool, False)
    docker_include_label: Optional[dict] = _wire("dockerIncludeLabel", _decode_str_map, omitempty=True)
    docker_exclude_label: Optional[dict] = _wire("dockerExcludeLabel", _decode_str_map, omitempty=True)
    docker_include_env: Optional[dict] = _wire("dockerIncludeEnv", _decode_str_map, omitempty=True)
    docker_exclude_env: Optional[dict] = _wire("dockerExcludeEnv", _decode_str_map, omitempty=True)
    plugin_detail: Optional[dict] = _wire("plugin", _decode_map, omitempty=True)
    advanced: Optional[dict] = _wire("advanced", _decode_map, omitempty=True)

    def _apply_defaults(self) -> None:
        super()._apply_defaults()
        self.file_encoding = "utf8"
        self.max_depth = 100
        self.topic_format = TOPIC_FORMAT_NONE
        self.preserve = True
        self.discard_unmatch = True


@dataclass
class ApsaraLogConfigInputDetail(LocalFileConfigInputDetail):
    """Apsara-format log file input."""

    log_begin_regex: str = _wire("logBeginRegex", _decode_str, "")

    def _apply_defaults(self) -> None:
        super()._apply_defaults()
        self.log_begin_regex = ".*"
        self.log_type = LOG_FILE_TYPE_APSARA_LOG


@dataclass
class RegexConfigInputDetail(LocalFileConfigInputDetail):
    """Log file input parsed with a regular expression."""

    key: Optional[list] = _wire("key", _decode_str_list)
    log_begin_regex: str = _wire("logBeginRegex", _decode_str, "")
    regex: str = _wire("regex", _decode_str, "")
    customized_fields: str = _wire("customizedFields", _decode_str, "", omitempty=True)

    def _apply_defaults(self) -> None:
        super()._apply_defaults()
        self.log_begin_regex = ".*"
        self.regex = "(.*)"
        self.log_type = LOG_FILE_TYPE_REGEX_LOG


@dataclass
class JSONConfigInputDetail(LocalFileConfigInputDetail):
    """Log file input holding one JSON object per line."""

    time_key: str = _wire("timeKey", _decode_str, "")

    def _apply_defaults(self) -> None:
        super()._apply_defaults()
        self.log_type = LOG_FILE_TYPE_JSON_LOG


@dataclass
class DelimiterConfigInputDetail(LocalFileConfigInputDetail):
    """Log file input split on a separator."""

    separator: str = _wire("separator", _decode_str, "")
    quote: str = _wire("quote", _decode_str, "")
    key: Optional[list] = _wire("key", _decode_str_list)
    time_key: str = _wire("timeKey", _decode_str, "")
    auto_extend: bool = _wire("autoExtend", _decode_bool, False)
    accept_no_enough_keys: bool = _wire("acceptNoEnoughKeys", _decode_bool, False)

    def _apply_defaults(self) -> None:
        super()._apply_defaults()
        self.quote = "\u0001"
        self.auto_extend = True
        self.log_type = LOG_FILE_TYPE_DELIMITER_LOG


@dataclass
class PluginLogConfigInputDetail(CommonConfigInputDetail):
    """Input driven by a plugin pipeline, such as docker stdout or binlog."""

    plugin_detail: LogConfigPluginInput = _wire("plugin", _decode_plugin, factory=LogConfigPluginInput)


@dataclass
class StreamLogConfigInputDetail(CommonConfigInputDetail):
    """Syslog stream input."""

    tag: str = _wire("tag", _decode_str, "")


@dataclass
class OutputDetail(_WireModel):
    """Where collected logs are written."""

    project_name: str = _wire("projectName", _decode_str, "")
    log_store_name: str = _wire("logstoreName", _decode_str, "")
    compress_type: str = _wire("compressType", _decode_str, "")


def _decode_output(value: Any) -> OutputDetail:
    return OutputDetail.from_dict(value)


@dataclass
class LogConfig(_WireModel):
    """A logtail config: what to collect and where to send it.

    ``input_detail`` is either a detail object or, as read back from the
    service, a plain mapping that the ``convert_to_*`` functions can type.
    """

    name: str = _wire("configName", _decode_str, "")
    log_sample: str = _wire("logSample", _decode_str, "")
    input_type: str = _wire("inputType", _decode_str, "")
    input_detail: Any = _wire("inputDetail", _decode_json_value)
    output_type: str = _wire("outputType", _decode_str, "")
    output_detail: OutputDetail = _wire("outputDetail", _decode_output, factory=OutputDetail)
    create_time: int = _wire("createTime", _decode_uint32, 0, omitempty=True)
    last_modify_time: int = _wire("lastModifyTime", _decode_uint32, 0, omitempty=True)

    def to_dict(self) -> dict:
        return super().to_dict()

    @classmethod
    def from_dict(cls, data: Any) -> "LogConfig":
        return super().from_dict(data)


def is_valid_input_type(input_type: str) -> bool:
    """Whether the input type is one the service accepts."""
    return input_type in _INPUT_TYPES


def _convert(detail: Any, cls: type, accept: Callable[[dict], bool]) -> Any:
    if not isinstance(detail, dict) or not accept(detail):
        return None
    try:
        normalized = json.loads(json.dumps(detail, allow_nan=False))
        return cls.from_dict(normalized)
    except (TypeError, ValueError):
        return None


def _has_log_type(log_type: str) -> Callable[[dict], bool]:
    return lambda detail: detail.get("logType") == log_type


def convert_to_input_detail(detail: Any) -> Optional[InputDetail]:
    """Type a regex-log mapping as the legacy InputDetail, or return None."""
    return _convert(detail, InputDetail, _has_log_type(LOG_FILE_TYPE_REGEX_LOG))


def convert_to_apsara_log_config_input_detail(detail: Any) -> Optional[ApsaraLogConfigInputDetail]:
    """Type an apsara-log mapping, or return None."""
    return _convert(detail, ApsaraLogConfigInputDetail, _has_log_type(LOG_FILE_TYPE_APSARA_LOG))


def convert_to_regex_config_input_detail(detail: Any) -> Optional[RegexConfigInputDetail]:
    """Type a regex-log mapping, or return None."""
    return _convert(detail, RegexConfigInputDetail, _has_log_type(LOG_FILE_TYPE_REGEX_LOG))


def convert_to_json_config_input_detail(detail: Any) -> Optional[JSONConfigInputDetail]:
    """Type a JSON-log mapping, or return None."""
    return _convert(detail, JSONConfigInputDetail, _has_log_type(LOG_FILE_TYPE_JSON_LOG))


def convert_to_delimiter_config_input_detail(detail: Any) -> Optional[DelimiterConfigInputDetail]:
    """Type a delimiter-log mapping, or return None."""
    return _convert(detail, DelimiterConfigInputDetail, _has_log_type(LOG_FILE_TYPE_DELIMITER_LOG))


def convert_to_plugin_log_config_input_detail(detail: Any) -> Optional[PluginLogConfigInputDetail]:
    """Type a mapping that has a plugin and no log type, or return None."""
    return _convert(
        detail,
        PluginLogConfigInputDetail,
        lambda d: "plugin" in d and "logType" not in d,
    )


def convert_to_stream_log_config_input_detail(detail: Any) -> Optional[StreamLogConfigInputDetail]:
    """Type a mapping that has a tag, or return None."""
    return _convert(detail, StreamLogConfigInputDetail, lambda d: "tag" in d)


def get_file_config_input_detail_type(detail: Any) -> Optional[str]:
    """The log type of a file input mapping, or None when it has none."""
    if not isinstance(detail, dict) or "logType" not in detail:
        return None
    log_type = detail["logType"]
    if not isinstance(log_type, str):
        raise TypeError(f"logType must be a string, got {type(log_type).__name__}")
    return log_type


def _set_missing(detail: dict, defaults: dict) -> None:
    for key, value in defaults.items():
        detail.setdefault(key, value)


def add_necessary_input_config_field(detail: dict) -> None:
    """Fill in, in place, the fields the service requires but that are missing."""
    _set_missing(
        detail,
        {"localStorage": True, "enableTag": True, "maxSendRate": -1, "mergeType": MERGE_TYPE_TOPIC},
    )
    log_type = detail.get("logType")
    if not isinstance(log_type, str):
        return
    _set_missing(
        detail,
        {
            "fileEncoding": "utf8",
            "maxDepth": 100,
            "topicFormat": TOPIC_FORMAT_NONE,
            "preserve": True,
            "discardUnmatch": True,
            "timeFormat": "",
        },
    )
    if log_type == LOG_FILE_TYPE_APSARA_LOG:
        _set_missing(detail, {"logBeginRegex": ".*"})
    elif log_type == LOG_FILE_TYPE_REGEX_LOG:
        _set_missing(detail, {"logBeginRegex": ".*", "regex": "(.*)"})
        detail.setdefault("key", ["content"])
    elif log_type == LOG_FILE_TYPE_JSON_LOG:
        _set_missing(detail, {"timeKey": ""})
    elif log_type == LOG_FILE_TYPE_DELIMITER_LOG:
        _set_missing(detail, {"quote": "\u0001", "autoExtend": True, "timeKey": ""})


def update_input_config_field(detail: Any, key: str, val: Any) -> None:
    """Replace an existing field of a detail mapping."""
    if not isinstance(detail, dict):
        raise InvalidTypeError()
    if key not in detail:
        raise NoConfigFieldError()
    detail[key] = val