"""
Data models for storage layer.

Defines the records that move through the acquisition pipeline and the
structures persisted by the key-value store.
"""

from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Any, Dict, Optional

from ..log import mask_secret


@dataclass(frozen=True)
class Credentials:
    """Login secrets for the carrier portal.

    Owned by CredentialStore. The repr never shows either value in full.
    """
    identifier: str
    secret: str = field(repr=False)

    def __post_init__(self):
        """Validate both secrets are present."""
        if not self.identifier or not self.identifier.strip():
            raise ValueError("identifier is required and cannot be empty")
        if not self.secret:
            raise ValueError("secret is required and cannot be empty")

    def __repr__(self) -> str:
        return f"Credentials(identifier={mask_secret(self.identifier)!r}, secret='***')"


@dataclass(frozen=True)
class SessionContext:
    """Ephemeral state of one authenticated fetch. Never persisted."""
    ticket: str
    session_cookie: str = field(repr=False)
    token_a: str = ""
    token_b: str = ""

    def with_tokens(self, token_a: str, token_b: str) -> "SessionContext":
        return replace(self, token_a=token_a, token_b=token_b)


@dataclass(frozen=True)
class RawUsageFields:
    """Unvalidated figures straight from the usage page, in GB."""
    carryover_gb: float
    basic_gb: float
    paid_gb: float
    used_gb: float


@dataclass(frozen=True)
class UsageSnapshot:
    """One immutable, internally consistent reading of usage figures.

    Gb fields are quantized to 0.01 and percentage to 0.1, so the
    derivations total = basic + carryover and remaining = total - used
    hold exactly on the stored values.
    """
    captured_at: datetime
    carryover_gb: Decimal
    basic_gb: Decimal
    paid_gb: Decimal
    used_gb: Decimal
    total_gb: Decimal
    remaining_gb: Decimal
    percentage: Decimal
    display_timestamp: str

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to a JSON-friendly mapping."""
        return {
            "captured_at": self.captured_at.isoformat(),
            "carryover_gb": str(self.carryover_gb),
            "basic_gb": str(self.basic_gb),
            "paid_gb": str(self.paid_gb),
            "used_gb": str(self.used_gb),
            "total_gb": str(self.total_gb),
            "remaining_gb": str(self.remaining_gb),
            "percentage": str(self.percentage),
            "display_timestamp": self.display_timestamp,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "UsageSnapshot":
        """Rebuild a snapshot from ``to_dict`` output.

        Raises:
            KeyError: If a field is missing
            ValueError: If a field cannot be converted
        """
        try:
            return cls(
                captured_at=datetime.fromisoformat(data["captured_at"]),
                carryover_gb=Decimal(str(data["carryover_gb"])),
                basic_gb=Decimal(str(data["basic_gb"])),
                paid_gb=Decimal(str(data["paid_gb"])),
                used_gb=Decimal(str(data["used_gb"])),
                total_gb=Decimal(str(data["total_gb"])),
                remaining_gb=Decimal(str(data["remaining_gb"])),
                percentage=Decimal(str(data["percentage"])),
                display_timestamp=str(data["display_timestamp"]),
            )
        except ArithmeticError as e:
            raise ValueError(f"Invalid numeric value in snapshot: {e}")


@dataclass(frozen=True)
class CachedSnapshot:
    """A snapshot plus the wall-clock time it was stored."""
    snapshot: UsageSnapshot
    stored_at: datetime

    def age(self, now: datetime) -> timedelta:
        return now - self.stored_at

    def is_valid(self, now: datetime, ttl: timedelta) -> bool:
        """True while now - stored_at < ttl."""
        return self.age(now) < ttl

    def to_dict(self) -> Dict[str, Any]:
        data = self.snapshot.to_dict()
        data["stored_at"] = self.stored_at.isoformat()
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CachedSnapshot":
        return cls(
            snapshot=UsageSnapshot.from_dict(data),
            stored_at=datetime.fromisoformat(data["stored_at"]),
        )


@dataclass(frozen=True)
class FetchResult:
    """Outcome of ``CacheStore.get_data``.

    Exactly one of snapshot or error is set.
    """
    success: bool
    snapshot: Optional[UsageSnapshot] = None
    error: Optional[str] = None
    from_cache: bool = False

    @classmethod
    def ok(cls, snapshot: UsageSnapshot, from_cache: bool = False) -> "FetchResult":
        return cls(success=True, snapshot=snapshot, from_cache=from_cache)

    @classmethod
    def failure(cls, error: str) -> "FetchResult":
        return cls(success=False, error=error)


@dataclass(frozen=True)
class WidgetConfig:
    """User-owned widget settings, persisted apart from the usage cache."""
    enabled: bool = True
    update_interval_minutes: int = 15
    show_mini_widget: bool = True
    show_main_widget: bool = True
    last_updated: Optional[datetime] = None

    def __post_init__(self):
        """Validate the refresh interval is positive."""
        if self.update_interval_minutes <= 0:
            raise ValueError("update_interval_minutes must be > 0")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "enabled": self.enabled,
            "update_interval_minutes": self.update_interval_minutes,
            "show_mini_widget": self.show_mini_widget,
            "show_main_widget": self.show_main_widget,
            "last_updated": self.last_updated.isoformat() if self.last_updated else None,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "WidgetConfig":
        last_updated = data.get("last_updated")
        return cls(
            enabled=bool(data.get("enabled", True)),
            update_interval_minutes=int(data.get("update_interval_minutes", 15)),
            show_mini_widget=bool(data.get("show_mini_widget", True)),
            show_main_widget=bool(data.get("show_main_widget", True)),
            last_updated=datetime.fromisoformat(last_updated) if last_updated else None,
        )


@dataclass(frozen=True)
class WidgetProjection:
    """Subset of a snapshot published to the native widget surface."""
    percentage: Decimal
    used_gb: Decimal
    remaining_gb: Decimal
    total_gb: Decimal
    display_timestamp: str
    captured_at: datetime

    @classmethod
    def from_snapshot(cls, snapshot: UsageSnapshot) -> "WidgetProjection":
        return cls(
            percentage=snapshot.percentage,
            used_gb=snapshot.used_gb,
            remaining_gb=snapshot.remaining_gb,
            total_gb=snapshot.total_gb,
            display_timestamp=snapshot.display_timestamp,
            captured_at=snapshot.captured_at,
        )

    def to_payload(self) -> Dict[str, Any]:
        """Shape handed to native widget code (plain floats and strings)."""
        return {
            "percentage": float(self.percentage),
            "used_gb": float(self.used_gb),
            "remaining_gb": float(self.remaining_gb),
            "total_gb": float(self.total_gb),
            "last_updated": self.display_timestamp,
            "timestamp": self.captured_at.isoformat(),
        }

    @classmethod
    def from_payload(cls, data: Dict[str, Any]) -> "WidgetProjection":
        return cls(
            percentage=Decimal(str(data["percentage"])),
            used_gb=Decimal(str(data["used_gb"])),
            remaining_gb=Decimal(str(data["remaining_gb"])),
            total_gb=Decimal(str(data["total_gb"])),
            display_timestamp=str(data["last_updated"]),
            captured_at=datetime.fromisoformat(data["timestamp"]),
        )
