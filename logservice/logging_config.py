"""Service logging settings of a project and the calls that manage them."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Optional

LOGGING_URI = "logging"


@dataclass
class LoggingDetail:
    """One kind of service log and the logstore it is written to."""

    type: str = ""
    logstore: str = ""

    def to_dict(self) -> dict:
        return {"type": self.type, "logstore": self.logstore}

    @classmethod
    def from_dict(cls, data: Any) -> "LoggingDetail":
        if not isinstance(data, dict):
            return cls()
        return cls(
            type=str(data.get("type") or ""),
            logstore=str(data.get("logstore") or ""),
        )


@dataclass
class Logging:
    """Where a project's service logs go."""

    project: str = ""
    logging_details: list[LoggingDetail] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "loggingProject": self.project,
            "loggingDetails": [detail.to_dict() for detail in self.logging_details],
        }

    @classmethod
    def from_dict(cls, data: Any) -> "Logging":
        """Build from a mapping; missing or malformed parts are left empty."""
        if not isinstance(data, dict):
            return cls()
        details = data.get("loggingDetails")
        if not isinstance(details, list):
            details = []
        return cls(
            project=str(data.get("loggingProject") or ""),
            logging_details=[LoggingDetail.from_dict(item) for item in details],
        )


def _json_headers(body: bytes) -> dict:
    return {
        "x-log-bodyrawsize": str(len(body)),
        "Content-Type": "application/json",
        "Accept-Encoding": "deflate",
    }


class LoggingMixin:
    """Service logging calls for a class that provides ``raw_request``."""

    def _send_logging(self, method: str, detail: Logging) -> None:
        body = json.dumps(detail.to_dict()).encode("utf-8")
        self.raw_request(method, f"/{LOGGING_URI}", _json_headers(body), body)  # type: ignore[attr-defined]

    def create_logging(self, detail: Logging) -> None:
        """Turn on service logging for the project."""
        self._send_logging("POST", detail)

    def update_logging(self, detail: Logging) -> None:
        """Replace the project's service logging settings."""
        self._send_logging("PUT", detail)

    def get_logging(self) -> Logging:
        """Read the project's service logging settings."""
        response = self.raw_request(  # type: ignore[attr-defined]
            "GET", f"/{LOGGING_URI}", {"x-log-bodyrawsize": "0"}, None
        )
        data: Optional[Any]
        try:
            data = json.loads(response.body.decode("utf-8")) if response.body else None
        except (ValueError, UnicodeDecodeError):
            data = None
        return Logging.from_dict(data)

    def delete_logging(self) -> None:
        """Turn off service logging for the project."""
        self.raw_request(  # type: ignore[attr-defined]
            "DELETE", f"/{LOGGING_URI}", {"x-log-bodyrawsize": "0"}, None
        )