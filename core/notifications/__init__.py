from abc import ABC, abstractmethod
from dataclasses import dataclass

from core.extractor import Listing


@dataclass(frozen=True)
class SearchAlert:
    search_url: str
    listings: tuple[Listing, ...]


class NotificationClient(ABC):
    def __init__(self, enabled: bool = False):
        self._enabled = enabled

    def is_enabled(self) -> bool:
        return self._enabled

    @abstractmethod
    async def send(self, alerts: list[SearchAlert]) -> bool:
        pass
