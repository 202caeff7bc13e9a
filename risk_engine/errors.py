"""Risk motoru hata hiyerarşisi."""

from __future__ import annotations

from typing import Optional


class RiskEngineError(Exception):
    """Tüm motor hatalarının temel sınıfı."""
    pass


class NotFoundError(RiskEngineError):
    """Ürün veya mağaza bulunamadı."""
    pass


class ValidationError(RiskEngineError):
    """Alan bazlı doğrulama hatası; yazma işlemi reddedilir."""

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.field = field


class DataQualityError(RiskEngineError):
    """NaN veya sonsuz değer içeren hesaplama sonucu."""
    pass


class ForecastUnavailableError(RiskEngineError):
    """Öğrenilmiş model tahmini üretilemedi."""
    pass
