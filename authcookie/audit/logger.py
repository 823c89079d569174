"""
Audit logging of authentication decisions.

Denials are deliberately indistinguishable for the client; the audit
trail is where the actual reason (digest mismatch, expired token, ...)
is kept.
"""

import asyncio
import json
import logging
import uuid
from abc import ABC, abstractmethod
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

import aiofiles


logger = logging.getLogger(__name__)


@dataclass
class AuditEvent:
    """Audit record of one authentication decision."""

    event_type: str  # "authenticated", "denied" or "pass_through"
    username: Optional[str] = None
    reason: Optional[str] = None
    timestamp: datetime = field(default_factory=datetime.now)
    details: Dict[str, Any] = field(default_factory=dict)
    event_id: str = field(default_factory=lambda: str(uuid.uuid4()))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event_id": self.event_id,
            "event_type": self.event_type,
            "username": self.username,
            "reason": self.reason,
            "timestamp": self.timestamp.isoformat(),
            "details": self.details,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AuditEvent":
        return cls(
            event_id=data["event_id"],
            event_type=data["event_type"],
            username=data.get("username"),
            reason=data.get("reason"),
            timestamp=datetime.fromisoformat(data["timestamp"]),
            details=data.get("details", {}),
        )


def _matches(event: AuditEvent,
             event_type: Optional[str],
             username: Optional[str],
             start_time: Optional[datetime],
             end_time: Optional[datetime]) -> bool:
    if event_type and event.event_type != event_type:
        return False
    if username and event.username != username:
        return False
    if start_time and event.timestamp < start_time:
        return False
    if end_time and event.timestamp > end_time:
        return False
    return True


class AuditLogger(ABC):
    """Abstract base class for audit logging"""

    @abstractmethod
    async def log(self, event: AuditEvent) -> None:
        """Log an audit event"""
        pass

    @abstractmethod
    async def get_events(
        self,
        event_type: Optional[str] = None,
        username: Optional[str] = None,
        start_time: Optional[datetime] = None,
        end_time: Optional[datetime] = None,
    ) -> List[AuditEvent]:
        """Retrieve audit events with optional filtering"""
        pass

    async def close(self) -> None:
        """Close the audit logger and release resources"""
        pass


class MemoryAuditLogger(AuditLogger):
    """In-memory audit logger keeping the most recent events"""

    def __init__(self, max_entries: int = 1000):
        self.max_entries = max_entries
        self.events: deque = deque(maxlen=max_entries)
        self._lock = asyncio.Lock()

    async def log(self, event: AuditEvent) -> None:
        async with self._lock:
            self.events.append(event)

    async def get_events(
        self,
        event_type: Optional[str] = None,
        username: Optional[str] = None,
        start_time: Optional[datetime] = None,
        end_time: Optional[datetime] = None,
    ) -> List[AuditEvent]:
        async with self._lock:
            return [event for event in self.events
                    if _matches(event, event_type, username, start_time, end_time)]


class FileAuditLogger(AuditLogger):
    """File-based audit logger writing one JSON object per line"""

    def __init__(self, file_path: str):
        self.file_path = file_path
        self._lock = asyncio.Lock()

    async def log(self, event: AuditEvent) -> None:
        async with self._lock:
            try:
                async with aiofiles.open(self.file_path, "a") as f:
                    await f.write(json.dumps(event.to_dict()) + "\n")
            except OSError as e:
                logger.error(f"Failed to write audit log: {e}")

    async def get_events(
        self,
        event_type: Optional[str] = None,
        username: Optional[str] = None,
        start_time: Optional[datetime] = None,
        end_time: Optional[datetime] = None,
    ) -> List[AuditEvent]:
        events = []

        try:
            async with aiofiles.open(self.file_path, "r") as f:
                async for line in f:
                    try:
                        event = AuditEvent.from_dict(json.loads(line.strip()))
                    except (json.JSONDecodeError, KeyError, ValueError):
                        # Skip malformed lines
                        continue

                    if _matches(event, event_type, username, start_time, end_time):
                        events.append(event)

        except FileNotFoundError:
            pass

        return events


def create_audit_logger(logger_type: str = "memory", **kwargs) -> AuditLogger:
    """
    Factory function to create audit loggers

    Args:
        logger_type: Type of logger ("memory" or "file")
        **kwargs: Additional arguments for the logger

    Returns:
        AuditLogger instance
    """
    if logger_type == "memory":
        return MemoryAuditLogger(kwargs.get("max_entries", 1000))
    elif logger_type == "file":
        return FileAuditLogger(kwargs.get("file_path", "authcookie-audit.log"))
    else:
        raise ValueError(f"Unknown logger type: {logger_type}")
