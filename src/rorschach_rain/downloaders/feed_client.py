# downloaders/feed_client.py
import requests
import logging
from typing import Dict, Any, List
from tenacity import retry, stop_after_attempt, wait_exponential
from ..config import RorschachConfig
from ..exceptions import FeedUnavailableError
from ..models import Frame, FrameSequence

class FeedClient:
    """Fetches the radar frame index from the metadata feed"""

    def __init__(self, config: RorschachConfig, session: requests.Session = None):
        self.config = config
        self.session = session or requests.Session()
        self.logger = logging.getLogger(__name__)

    @retry(stop=stop_after_attempt(3),
           wait=wait_exponential(multiplier=1, min=1, max=8),
           reraise=True)
    def fetch_metadata(self) -> Dict[str, Any]:
        """Fetch the raw metadata document with retry logic"""
        try:
            response = self.session.get(self.config.feed_url, timeout=self.config.feed_timeout)
            response.raise_for_status()

            return response.json()

        except (requests.RequestException, ValueError) as e:
            self.logger.error(f"Error fetching radar metadata: {e}")
            raise FeedUnavailableError(f"Failed to fetch radar metadata: {e}")

    def parse_frames(self, entries: List[Dict[str, Any]]) -> List[Frame]:
        """Convert feed entries into frames"""
        return [Frame(timestamp=int(entry['time']), path=str(entry['path'])) for entry in entries]

    def fetch_frames(self) -> FrameSequence:
        """Fetch the metadata and return past frames followed by nowcast frames"""
        data = self.fetch_metadata()

        try:
            radar = data.get('radar') or {}
            past = self.parse_frames(radar.get('past') or [])
            nowcast = self.parse_frames(radar.get('nowcast') or [])
            host = str(data.get('host', ''))
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            self.logger.error(f"Malformed radar metadata: {e}")
            raise FeedUnavailableError(f"Malformed radar metadata: {e}")

        frames = FrameSequence(host=host, frames=tuple(past + nowcast), past_count=len(past))
        self.logger.info(f"Loaded {len(past)} past and {len(nowcast)} nowcast frames")
        return frames
