"""Project-level management calls: logstores, machine groups and logtail configs."""

from __future__ import annotations

import json
from typing import Any, Callable, Optional

from .base import LogError, ProjectBase, Response
from .config import LogConfig
from .logging_config import LoggingMixin

_DEFAULT_MACHINE_GROUP_PAGE = 500
_DEFAULT_CONFIG_PAGE = 100


def _empty_headers() -> dict:
    return {"x-log-bodyrawsize": "0"}


def _json_headers(body: bytes) -> dict:
    return {
        "x-log-bodyrawsize": str(len(body)),
        "Content-Type": "application/json",
        "Accept-Encoding": "deflate",
    }


def _dump(data: Any) -> bytes:
    return json.dumps(data, separators=(",", ":"), ensure_ascii=False).encode("utf-8")


def _to_wire(obj: Any) -> dict:
    to_dict = getattr(obj, "to_dict", None)
    if callable(to_dict):
        return to_dict()
    if isinstance(obj, dict):
        return dict(obj)
    raise TypeError(f"cannot serialize {type(obj).__name__}")


def _load(response: Response) -> dict:
    if not response.body:
        return {}
    try:
        data = json.loads(response.body.decode("utf-8"))
    except (ValueError, UnicodeDecodeError):
        return {}
    return data if isinstance(data, dict) else {}


def _field(data: dict, name: str, default: Any = None) -> Any:
    """Look a key up ignoring case, as the service's field names vary in case."""
    if name in data:
        return data[name]
    wanted = name.lower()
    for key, value in data.items():
        if key.lower() == wanted:
            return value
    return default


def _names(data: dict, name: str) -> list:
    value = _field(data, name)
    return list(value) if isinstance(value, list) else []


def _int(data: dict, name: str) -> int:
    value = _field(data, name, 0)
    return value if isinstance(value, int) and not isinstance(value, bool) else 0


def _name_of(obj: Any, wire_name: str) -> str:
    name = getattr(obj, "name", None)
    if isinstance(name, str):
        return name
    return str(_to_wire(obj).get(wire_name, ""))


class LogProject(LoggingMixin, ProjectBase):
    """A log service project and the resources it holds.

    Logstores and machine groups are passed and returned as mappings in the
    service's JSON form, or as objects offering ``to_dict()``.
    """

    def _get(self, uri: str) -> Response:
        return self.raw_request("GET", uri, _empty_headers(), None)

    def _delete(self, uri: str) -> None:
        self.raw_request("DELETE", uri, _empty_headers(), None)

    def _send_json(self, method: str, uri: str, data: Any) -> None:
        body = _dump(data)
        self.raw_request(method, uri, _json_headers(body), body)

    def _exists(self, uri: str, missing_code: str) -> bool:
        try:
            self._get(uri)
        except LogError as exc:
            if exc.code == missing_code:
                return False
            raise
        return True

    # Logstores

    def list_log_store(self) -> list:
        """Names of all logstores of the project."""
        return _names(_load(self._get("/logstores")), "logstores")

    def list_log_store_v2(self, offset: int, size: int, telemetry_type: str) -> list:
        """Names of a page of logstores of the given telemetry type."""
        uri = f"/logstores?offset={offset}&size={size}&telemetryType={telemetry_type}"
        return _names(_load(self._get(uri)), "logstores")

    def get_log_store(self, name: str) -> dict:
        """The logstore's settings as a mapping, with its name filled in."""
        data = _load(self._get("/logstores/" + name))
        data["logstoreName"] = name
        return data

    def create_log_store(
        self, name: str, ttl: int, shard_count: int, auto_split: bool, max_split_shard: int
    ) -> None:
        """Create a logstore keeping logs ``ttl`` days in ``shard_count`` shards."""
        self._send_json(
            "POST",
            "/logstores",
            {
                "logstoreName": name,
                "ttl": ttl,
                "shardCount": shard_count,
                "autoSplit": auto_split,
                "maxSplitShard": max_split_shard,
                "enable_tracking": False,
            },
        )

    def create_log_store_v2(self, logstore: Any) -> None:
        """Create a logstore from its full description."""
        self._send_json("POST", "/logstores", _to_wire(logstore))

    def delete_log_store(self, name: str) -> None:
        self._delete("/logstores/" + name)

    def update_log_store(self, name: str, ttl: int, shard_count: int) -> None:
        """Change a logstore's retention and shard count."""
        self._send_json(
            "PUT",
            "/logstores/" + name,
            {"logstoreName": name, "ttl": ttl, "shardCount": shard_count},
        )

    def update_log_store_v2(self, logstore: Any) -> None:
        """Replace a logstore's description; its name cannot change."""
        name = _name_of(logstore, "logstoreName")
        self._send_json("PUT", "/logstores/" + name, _to_wire(logstore))

    def check_logstore_exist(self, name: str) -> bool:
        return self._exists("/logstores/" + name, "LogStoreNotExist")

    # Machine groups

    def list_machine_group(self, offset: int, size: int) -> tuple[list, int]:
        """A page of machine group names and the total number of groups."""
        if size <= 0:
            size = _DEFAULT_MACHINE_GROUP_PAGE
        data = _load(self._get(f"/machinegroups?offset={offset}&size={size}"))
        return _names(data, "machinegroups"), _int(data, "total")

    def check_machine_group_exist(self, name: str) -> bool:
        return self._exists("/machinegroups/" + name, "MachineGroupNotExist")

    def get_machine_group(self, name: str) -> dict:
        """The machine group's description as a mapping."""
        return _load(self._get("/machinegroups/" + name))

    def create_machine_group(self, group: Any) -> None:
        self._send_json("POST", "/machinegroups", _to_wire(group))

    def update_machine_group(self, group: Any) -> None:
        name = _name_of(group, "groupName")
        self._send_json("PUT", "/machinegroups/" + name, _to_wire(group))

    def delete_machine_group(self, name: str) -> None:
        self._delete("/machinegroups/" + name)

    # Logtail configs

    def list_config(self, offset: int, size: int) -> tuple[list, int]:
        """A page of config names and the total number of configs."""
        if size <= 0:
            size = _DEFAULT_CONFIG_PAGE
        data = _load(self._get(f"/configs?offset={offset}&size={size}"))
        return _names(data, "configs"), _int(data, "total")

    def check_config_exist(self, name: str) -> bool:
        return self._exists("/configs/" + name, "ConfigNotExist")

    def get_config(self, name: str) -> LogConfig:
        """The config; its input detail stays a mapping for the convert functions."""
        return LogConfig.from_dict(_load(self._get("/configs/" + name)))

    def update_config(self, config: LogConfig) -> None:
        self._send_json("PUT", "/configs/" + config.name, config.to_dict())

    def create_config(self, config: LogConfig) -> None:
        self._send_json("POST", "/configs", config.to_dict())

    def get_config_string(self, name: str) -> str:
        """The config exactly as the service returned it."""
        return self._get("/configs/" + name).body.decode("utf-8")

    def update_config_string(self, config_name: str, config: str) -> None:
        body = config.encode("utf-8")
        self.raw_request("PUT", "/configs/" + config_name, _json_headers(body), body)

    def create_config_string(self, config: str) -> None:
        body = config.encode("utf-8")
        self.raw_request("POST", "/configs", _json_headers(body), body)

    def delete_config(self, name: str) -> None:
        self._delete("/configs/" + name)

    def get_applied_machine_groups(self, config_name: str) -> list:
        """Names of the machine groups the config is applied to."""
        return _names(_load(self._get(f"/configs/{config_name}/machinegroups")), "machinegroups")

    def get_applied_configs(self, group_name: str) -> list:
        """Names of the configs applied to the machine group."""
        return _names(_load(self._get(f"/machinegroups/{group_name}/configs")), "configs")

    def apply_config_to_machine_group(self, config_name: str, group_name: str) -> None:
        self.raw_request(
            "PUT", f"/machinegroups/{group_name}/configs/{config_name}", _empty_headers(), None
        )

    def remove_config_from_machine_group(self, config_name: str, group_name: str) -> None:
        self._delete(f"/machinegroups/{group_name}/configs/{config_name}")


def new_log_project(
    name: str, endpoint: str, access_key_id: str, access_key_secret: str
) -> LogProject:
    """A project authenticated with a static access key."""
    return LogProject(name, endpoint, access_key_id, access_key_secret)


def new_log_project_v2(name: str, endpoint: str, provider: Any) -> LogProject:
    """A project authenticated through a credentials provider."""
    return LogProject(name, endpoint, credentials_provider=provider)