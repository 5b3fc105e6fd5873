from abc import ABC, abstractmethod
from typing import Dict, List, Optional

from bluecat.core.models import DebridMagnetStatus, Magnet, VideoFile

# ===========================
# Constants
# ===========================
VIDEO_EXTENSIONS = (".mp4", ".mkv", ".avi", ".mov", ".wmv")


# ===========================
# Base Debrid Service Class
# ===========================
class BaseDebridService(ABC):

    @abstractmethod
    async def check_availability(self, hashes: List[str]) -> Dict[str, Optional[bool]]:
        pass

    @abstractmethod
    async def upload_magnets(self, magnets: List[Magnet], api_key: str) -> List[DebridMagnetStatus]:
        pass

    @abstractmethod
    async def get_files(self, debrid_id: str, source_name: str, api_key: str) -> List[VideoFile]:
        pass

    @abstractmethod
    async def unlock_link(self, raw_link: str, api_key: str) -> Optional[str]:
        pass

    @abstractmethod
    async def cleanup_old_magnets(self, api_key: str):
        pass

    @staticmethod
    def is_video(file_name: str) -> bool:
        return file_name.lower().endswith(VIDEO_EXTENSIONS)
