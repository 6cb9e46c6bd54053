"""
In-memory rate limiter: один принятый запрос на клиента за окно ожидания.

Особенности:
    - Хранение в памяти процесса (без персистентности)
    - Время принятого запроса записывается сразу при проверке,
      даже если запрос затем не пройдёт валидацию
    - Записи старше окна ожидания периодически удаляются,
      размер хранилища ограничен max_entries
"""

import logging
import math
import threading
import time
from collections import OrderedDict
from typing import Callable, Optional

from translator.schemas import RateLimitDecision

logger = logging.getLogger(__name__)


class RateLimiter:
    """
    Ограничитель частоты запросов по идентификатору клиента.

    Проверка и запись выполняются под одной блокировкой, поэтому два
    одновременных запроса одного клиента не могут пройти оба.

    Args:
        cooldown_seconds: минимальный интервал между принятыми запросами
        max_entries: максимум отслеживаемых клиентов
        clock: источник монотонного времени в секундах
    """

    def __init__(
        self,
        cooldown_seconds: float = 60,
        max_entries: int = 10_000,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.cooldown_seconds = cooldown_seconds
        self.max_entries = max_entries
        self._clock = clock
        self._lock = threading.Lock()
        # {client_id: время последнего принятого запроса}, старые записи в начале
        self._last_request: OrderedDict[str, float] = OrderedDict()
        self._last_sweep: Optional[float] = None

    def check(self, client_id: str) -> RateLimitDecision:
        """
        Проверяет, можно ли принять запрос клиента, и фиксирует его.

        Args:
            client_id: идентификатор клиента

        Returns:
            RateLimitDecision: allowed=True, либо allowed=False и wait_seconds
        """
        with self._lock:
            now = self._clock()
            self._maybe_sweep(now)

            last = self._last_request.get(client_id)
            if last is not None:
                elapsed = now - last
                if elapsed < self.cooldown_seconds:
                    wait_seconds = math.ceil(self.cooldown_seconds - elapsed)
                    return RateLimitDecision(allowed=False, wait_seconds=max(wait_seconds, 1))

            self._last_request[client_id] = now
            self._last_request.move_to_end(client_id)
            self._enforce_capacity()

            return RateLimitDecision(allowed=True)

    def reset(self) -> None:
        with self._lock:
            self._last_request.clear()
            self._last_sweep = None

    def stats(self) -> dict:
        """
        Возвращает статистику хранилища.

        Returns:
            dict: {tracked_clients, cooldown_seconds, max_entries}
        """
        with self._lock:
            return {
                "tracked_clients": len(self._last_request),
                "cooldown_seconds": self.cooldown_seconds,
                "max_entries": self.max_entries,
            }

    def _maybe_sweep(self, now: float) -> None:
        # Не чаще одного раза за окно ожидания
        if self._last_sweep is not None and now - self._last_sweep < self.cooldown_seconds:
            return
        self._last_sweep = now

        expired = 0
        # Записи упорядочены по времени, истёкшие всегда в начале
        while self._last_request:
            client_id, last = next(iter(self._last_request.items()))
            if now - last < self.cooldown_seconds:
                break
            del self._last_request[client_id]
            expired += 1

        if expired:
            logger.debug(
                f"Rate limit: удалено {expired} устаревших записей, "
                f"осталось {len(self._last_request)}"
            )

    def _enforce_capacity(self) -> None:
        overflow = len(self._last_request) - self.max_entries
        if overflow <= 0:
            return
        for _ in range(overflow):
            self._last_request.popitem(last=False)
        logger.warning(
            f"Rate limit: превышен лимит {self.max_entries} клиентов, "
            f"вытеснено {overflow} самых старых записей"
        )
