"""Motor karar kaydı modeli."""

from __future__ import annotations

from dataclasses import dataclass, field

from risk_engine.models.inventory import format_datetime, utcnow


@dataclass
class EngineDecision:
    decision_id: str
    service_name: str
    decision_type: str
    input_data: dict
    output_data: dict
    reasoning: str
    timestamp: str = field(default_factory=lambda: format_datetime(utcnow()))
