"""Merkezi yapılandırma: .env yükleme ve motor parametreleri."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

# Proje kökündeki .env dosyasını bul ve yükle (gerçek env değişkenleri önceliklidir)
_env_path = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(_env_path, override=False)

LOG_FORMAT = "%(asctime)s [%(name)s] %(levelname)s: %(message)s"


def configure_logging(level: int = logging.INFO) -> None:
    """Giriş noktaları için log formatını ayarlar."""
    logging.basicConfig(level=level, format=LOG_FORMAT)


def _env_float(name: str, default: float) -> float:
    raw = os.environ.get(name)
    if raw is None or raw == "":
        return default
    try:
        return float(raw)
    except ValueError:
        raise ValueError(f"{name} sayısal olmalı: {raw!r}") from None


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} tam sayı olmalı: {raw!r}") from None


def _env_bool(name: str, default: bool) -> bool:
    raw = os.environ.get(name)
    if raw is None or raw == "":
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


@dataclass
class EngineConfig:
    region_name: str = "us-west-2"
    table_prefix: str = ""
    cache_ttl_seconds: float = 60.0
    quick_insights_ttl_seconds: float = 30.0
    # Artımlı güncelleme penceresi ve hız karışım ağırlığı
    incremental_window_seconds: float = 5.0
    velocity_blend_weight: float = 0.9
    min_data_points: int = 7
    learned_model_enabled: bool = False
    learned_model_id: str = "us.amazon.nova-lite-v1:0"
    learned_model_min_records: int = 14
    notification_cooldown_hours: float = 24.0
    batch_workers: int = 8

    @classmethod
    def from_env(cls) -> "EngineConfig":
        """Ortam değişkenlerinden yapılandırma oluşturur."""
        config = cls(
            region_name=os.environ.get("AWS_DEFAULT_REGION", "us-west-2"),
            table_prefix=os.environ.get("RISK_ENGINE_TABLE_PREFIX", ""),
            cache_ttl_seconds=_env_float("RISK_ENGINE_CACHE_TTL", 60.0),
            quick_insights_ttl_seconds=_env_float("RISK_ENGINE_QUICK_INSIGHTS_TTL", 30.0),
            incremental_window_seconds=_env_float("RISK_ENGINE_INCREMENTAL_WINDOW", 5.0),
            velocity_blend_weight=_env_float("RISK_ENGINE_VELOCITY_BLEND", 0.9),
            min_data_points=_env_int("RISK_ENGINE_MIN_DATA_POINTS", 7),
            learned_model_enabled=_env_bool("RISK_ENGINE_LEARNED_MODEL", False),
            learned_model_id=os.environ.get("RISK_ENGINE_MODEL_ID", "us.amazon.nova-lite-v1:0"),
            learned_model_min_records=_env_int("RISK_ENGINE_LEARNED_MIN_RECORDS", 14),
            notification_cooldown_hours=_env_float("RISK_ENGINE_NOTIFICATION_COOLDOWN", 24.0),
            batch_workers=_env_int("RISK_ENGINE_BATCH_WORKERS", 8),
        )
        if not 0.0 <= config.velocity_blend_weight <= 1.0:
            raise ValueError("RISK_ENGINE_VELOCITY_BLEND 0 ile 1 arasında olmalı")
        return config

    def table_name(self, name: str) -> str:
        return f"{self.table_prefix}{name}"
