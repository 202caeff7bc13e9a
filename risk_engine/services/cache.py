"""Kısa ömürlü (TTL) anahtar/değer önbelleği.

Pahalı toplu okumaların (hızlı içgörüler, ürün tahmini, kategori içgörüleri,
dashboard, toplu tahminler) önünde durur. Tahmin kayıtları yazıldığında ilgili
anahtarlar geçersiz kılınır. Tek süreç içindir; anahtarlar arası işlem yoktur.
"""

from __future__ import annotations

import logging
import threading
import time
from typing import Any, Callable, Iterable, Optional

logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = 60.0


class CacheKeys:
    QUICK_INSIGHTS = "quick:insights"
    DASHBOARD = "dashboard:data"
    ALL_PREDICTIONS = "all:predictions"

    @staticmethod
    def product_prediction(product_id: str) -> str:
        return f"product:{product_id}:prediction"

    @staticmethod
    def category_insights(category: str) -> str:
        return f"category:{category}:insights"

    @staticmethod
    def batch_predictions(product_ids: Iterable[str]) -> str:
        return "batch:" + ",".join(sorted(product_ids))

    @staticmethod
    def scoped(key: str, store_id: Optional[str]) -> str:
        """Mağaza kapsamlı anahtar; store_id yoksa anahtar değişmez."""
        return f"{key}@{store_id}" if store_id else key


class TTLCache:
    """Süreç içi TTL önbelleği; zaman kaynağı enjekte edilebilir."""

    def __init__(
        self,
        default_ttl: float = DEFAULT_TTL_SECONDS,
        timer: Optional[Callable[[], float]] = None,
    ) -> None:
        self.default_ttl = default_ttl
        self._timer = timer or time.monotonic
        self._entries: dict[str, tuple[Any, float]] = {}
        self._lock = threading.Lock()
        self._hits = 0
        self._misses = 0

    def _expired(self, expires_at: float) -> bool:
        return self._timer() >= expires_at

    def get(self, key: str) -> Optional[Any]:
        with self._lock:
            entry = self._entries.get(key)
            if entry is not None and self._expired(entry[1]):
                del self._entries[key]
                entry = None
            if entry is None:
                self._misses += 1
                logger.debug("Cache MISS: %s", key)
                return None
            self._hits += 1
            logger.debug("Cache HIT: %s", key)
            return entry[0]

    def set(self, key: str, value: Any, ttl: Optional[float] = None) -> bool:
        ttl = self.default_ttl if ttl is None else ttl
        with self._lock:
            self._entries[key] = (value, self._timer() + ttl)
        logger.debug("Cache SET: %s (TTL: %ss)", key, ttl)
        return True

    def has(self, key: str) -> bool:
        with self._lock:
            entry = self._entries.get(key)
            return entry is not None and not self._expired(entry[1])

    def delete(self, key: str) -> int:
        with self._lock:
            removed = self._entries.pop(key, None)
        if removed is not None:
            logger.debug("Cache DEL: %s", key)
            return 1
        return 0

    def delete_many(self, keys: Iterable[str]) -> int:
        return sum(self.delete(k) for k in keys)

    def delete_prefix(self, prefix: str) -> int:
        with self._lock:
            keys = [k for k in self._entries if k.startswith(prefix)]
        return self.delete_many(keys)

    def get_or_set(
        self, key: str, compute: Callable[[], Any], ttl: Optional[float] = None
    ) -> Any:
        """Önbellekteki değeri döndürür; yoksa bir kez hesaplayıp saklar.

        None sonuçlar önbelleğe alınmaz.
        """
        cached = self.get(key)
        if cached is not None:
            return cached
        value = compute()
        if value is not None:
            self.set(key, value, ttl)
        return value

    def invalidate_prediction(self, product_id: str, category: Optional[str] = None) -> int:
        """Bir ürünün tahmini değiştiğinde etkilenen anahtarları siler."""
        keys = [
            CacheKeys.product_prediction(product_id),
            CacheKeys.QUICK_INSIGHTS,
            CacheKeys.DASHBOARD,
            CacheKeys.ALL_PREDICTIONS,
        ]
        if category:
            keys.append(CacheKeys.category_insights(category))

        deleted = self.delete_many(keys)
        # Mağaza kapsamlı varyantlar ve ürünü içerebilecek toplu tahmin kümeleri
        for key in keys:
            deleted += self.delete_prefix(f"{key}@")
        deleted += self.delete_prefix("batch:")
        logger.debug("Ürün %s için önbellek geçersiz kılındı (%d anahtar)", product_id, deleted)
        return deleted

    def flush(self) -> None:
        with self._lock:
            self._entries.clear()
        logger.info("Tüm önbellek temizlendi")

    def keys(self) -> list[str]:
        with self._lock:
            return [k for k, (_, exp) in self._entries.items() if not self._expired(exp)]

    def stats(self) -> dict:
        with self._lock:
            return {"keys": len(self._entries), "hits": self._hits, "misses": self._misses}

    def warmup(self, warmup_fn: Callable[["TTLCache"], None]) -> None:
        logger.info("Önbellek ısınması başlıyor...")
        warmup_fn(self)
        logger.info("Önbellek ısınması tamamlandı")
