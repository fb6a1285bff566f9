from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from nt_manager.core.materials import Category

WORK_ORDERS = "nts"
ITEMS = "nt_items"


class ItemStatus(str, Enum):
    AWAITING_PAYMENT = "Ag. Pagamento"
    PAID = "Pago"
    PARTIALLY_PAID = "Pago Parcial"


COMPLETED_STATUSES: frozenset[str] = frozenset({ItemStatus.PAID.value, ItemStatus.PARTIALLY_PAID.value})


def is_completed(status: object) -> bool:
    if isinstance(status, ItemStatus):
        status = status.value
    return status in COMPLETED_STATUSES


class WorkOrderStatus(str, Enum):
    ACTIVE = "Active"
    COMPLETED = "Completed"
    CANCELLED = "Cancelled"


class TimeStatus(BaseModel):
    model_config = ConfigDict(frozen=True)

    text: str
    is_delayed: bool
    category: Category


class TimelineEntry(BaseModel):
    """Read-only projection of a paid item for the live activity feed."""

    model_config = ConfigDict(frozen=True)

    id: str
    nt_id: str | None = None
    nt_number: str = "N/A"
    code: str = ""
    description: str = ""
    quantity: str = ""
    batch: str | None = None
    status: str
    created_date: str | None = None
    created_time: str | None = None
    payment_time: str | None = None
    paid_at: datetime
    elapsed_time: str = "-"
    resolution_minutes: int | None = None
    is_priority: bool = False


class TimelineStats(BaseModel):
    paid_today: int = 0
    avg_resolution: str = "—"
    fastest: str = "—"
    slowest: str = "—"


class DashboardStats(BaseModel):
    total_work_orders: int = 0
    pending_items: int = 0
    paid_today: int = 0
    overdue_items: int = 0


class ItemInput(BaseModel):
    code: str
    description: str = ""
    quantity: str = ""
    batch: str | None = None
    priority: bool = False


class WorkOrderCreate(BaseModel):
    nt_number: str = Field(min_length=1)
    items: list[ItemInput] = Field(default_factory=list)


class ItemsAppend(BaseModel):
    items: list[ItemInput] = Field(min_length=1)


class ItemStatusUpdate(BaseModel):
    status: ItemStatus


class BatchStart(BaseModel):
    kind: Literal["bulk_creation", "item_addition", "bulk_deletion"]
    target_id: str = Field(min_length=1)
    expected_count: int | None = Field(default=None, ge=0)
    label: str | None = None


SoundType = Literal["impact", "triumph", "alert", "fanfare", "power", "classic"]


class AudioConfig(BaseModel):
    enabled: bool = True
    volume: float = Field(default=1.0, ge=0.0, le=1.0)
    sound_type: SoundType = "impact"


class SettingsPayload(BaseModel):
    notifications_enabled: bool | None = None
    audio: AudioConfig | None = None
