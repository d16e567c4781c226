import os
import logging
from typing import Any, Dict, List, Optional, Sequence, Tuple

import httpx
from dotenv import load_dotenv

from app.utils.weaving import timed

# Загружаем переменные окружения
load_dotenv()

GOOGLE_MAPS_API_KEY = os.getenv("GOOGLE_MAPS_API_KEY", "")
DISTANCE_MATRIX_URL = os.getenv(
    "DISTANCE_MATRIX_URL",
    "https://maps.googleapis.com/maps/api/distancematrix/json",
)

# Ограничение API на количество адресов назначения в одном запросе
MAX_DESTINATIONS_PER_REQUEST = 25

logger = logging.getLogger("app")


class DistanceMatrixError(Exception):
    """Distance Matrix API вернул статус, отличный от OK"""

    def __init__(self, status: str, message: Optional[str] = None):
        self.status = status
        super().__init__(f"Distance Matrix API returned {status}" + (f": {message}" if message else ""))


class DistanceService:
    """
    Клиент Google Distance Matrix API.

    Ранжирует водителей по расстоянию от адреса отправления.
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        api_key: str = GOOGLE_MAPS_API_KEY,
        url: str = DISTANCE_MATRIX_URL,
        limit: int = 5,
    ):
        self.client = client
        self.api_key = api_key
        self.url = url
        self.limit = limit

    @timed
    async def distance_matrix(self, origins: Sequence[str], destinations: Dict[str, Any]) -> List[Any]:
        """
        Возвращает ближайших водителей.

        Args:
            origins: Адреса отправления
            destinations: Адрес водителя -> водитель

        Returns:
            Не более limit водителей, от ближайшего к дальнему
        """
        addresses = list(destinations)
        ranked: List[Tuple[int, str]] = []

        for start in range(0, len(addresses), MAX_DESTINATIONS_PER_REQUEST):
            chunk = addresses[start:start + MAX_DESTINATIONS_PER_REQUEST]
            rows = await self._fetch(origins, chunk)
            for row in rows:
                for address, element in zip(chunk, row.get("elements", [])):
                    if element.get("status") != "OK":
                        logger.debug(f"No route to {address}: {element.get('status')}")
                        continue
                    ranked.append((element["distance"]["value"], address))

        ranked.sort(key=lambda item: item[0])
        return [destinations[address] for _, address in ranked[:self.limit]]

    async def _fetch(self, origins: Sequence[str], destinations: Sequence[str]) -> List[Dict[str, Any]]:
        response = await self.client.get(
            self.url,
            params={
                "origins": "|".join(origins),
                "destinations": "|".join(destinations),
                "units": "imperial",
                "key": self.api_key,
            },
        )
        response.raise_for_status()

        data = response.json()
        status = data.get("status")
        if status != "OK":
            raise DistanceMatrixError(status or "UNKNOWN", data.get("error_message"))
        return data.get("rows", [])
