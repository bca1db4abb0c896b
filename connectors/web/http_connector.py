import httpx

from connectors.base import BaseConnector
from core.config import get_settings
from core.errors import FetchError


class HttpConnector(BaseConnector):
    def fetch(self, source_url: str) -> bytes:
        settings = get_settings()
        try:
            response = httpx.get(
                source_url,
                timeout=settings.fetch_timeout_seconds,
                follow_redirects=True,
                headers={"User-Agent": settings.fetch_user_agent},
            )
            response.raise_for_status()
        except httpx.HTTPStatusError as error:
            status_code = error.response.status_code
            raise FetchError(
                source_url,
                f"{status_code} {error.response.reason_phrase}",
                status_code=status_code,
            ) from error
        except httpx.HTTPError as error:
            raise FetchError(source_url, str(error) or type(error).__name__) from error
        return response.content
