from __future__ import annotations

import logging
import time
from pathlib import Path
from typing import Dict, List, Optional
from urllib.parse import quote

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from errors import FetchFailed, NotArchived


logger = logging.getLogger(__name__)

TIMEMAP_API = "https://web.archive.org/web/timemap/json"
SPARKLINE_API = "https://web.archive.org/__wb/sparkline"
WAYBACK_RAW = "https://web.archive.org/web/{timestamp}if_/{url}"
WAYBACK_CALENDAR = "https://web.archive.org/web/20240000000000*/{url}"
MAX_BACKOFF_SECONDS = 60.0
DATASTORE_URL = "https://d2sno3mhmk1ekx.cloudfront.net/10.WUP_AMAJ_datastore/ds/1/data/{internal_id:011d}-00001/"

LOOKUP_HEADERS = {
    "Accept": "*/*",
    "Accept-Language": "de,en-US;q=0.7,en;q=0.3",
    "Pragma": "no-cache",
    "Cache-Control": "no-cache",
}
DOWNLOAD_HEADERS = {
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,image/avif,image/webp,*/*;q=0.8",
    "Accept-Language": "de,en-US;q=0.7,en;q=0.3",
    "Accept-Encoding": "gzip, deflate, br",
    "Connection": "keep-alive",
    "Upgrade-Insecure-Requests": "1",
    "Pragma": "no-cache",
    "Cache-Control": "no-cache",
}


def internal_level_id(level_id: str) -> int:
    parts = level_id.strip().split("-")
    if len(parts) < 3:
        raise ValueError(f"Invalid level id: {level_id!r}")
    try:
        return int("".join(parts[2:]), 16)
    except ValueError as exc:
        raise ValueError(f"Invalid level id: {level_id!r}") from exc


def datastore_url(level_id: str) -> str:
    return DATASTORE_URL.format(internal_id=internal_level_id(level_id))


class LevelArchiveTool:
    def __init__(self, timeout: int = 45, retries: int = 10, backoff: float = 1.0) -> None:
        self.session = requests.Session()
        # no transport-level retries; _get_with_backoff owns the whole budget
        retry = Retry(
            total=0,
            connect=0,
            read=0,
            status_forcelist=(),
            allowed_methods=("GET",),
            raise_on_status=False,
        )
        adapter = HTTPAdapter(max_retries=retry)
        self.session.mount("https://", adapter)
        self.session.mount("http://", adapter)
        self.timeout = timeout
        self.retries = max(0, retries)
        self.backoff = max(0.0, backoff)

    def _status_code_from_exception(self, exc: requests.RequestException) -> Optional[int]:
        response = getattr(exc, "response", None)
        if response is None:
            return None
        try:
            return int(response.status_code)
        except (TypeError, ValueError):
            return None

    def _get_with_backoff(
        self,
        url: str,
        *,
        params: Optional[Dict[str, str]] = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> requests.Response:
        budget = self.retries
        last_exc: Optional[requests.RequestException] = None
        for attempt in range(budget + 1):
            try:
                response = self.session.get(
                    url,
                    params=params,
                    headers=headers,
                    timeout=(10, self.timeout),
                )
                response.raise_for_status()
                return response
            except requests.RequestException as exc:
                last_exc = exc
                if attempt < budget:
                    status = self._status_code_from_exception(exc)
                    logger.warning(
                        "Retrying get (try %d, status %s): %s",
                        attempt + 1,
                        status if status is not None else "n/a",
                        url,
                    )
                    time.sleep(min(MAX_BACKOFF_SECONDS, self.backoff * (2 ** attempt)))
                    continue
                break

        raise FetchFailed(url, budget + 1, last_exc) from last_exc

    def _lookup_headers(self, encoded_url: str) -> Dict[str, str]:
        headers = dict(LOOKUP_HEADERS)
        headers["Referer"] = WAYBACK_CALENDAR.format(url=encoded_url)
        return headers

    def resolve_original_url(self, level_id: str) -> Optional[str]:
        target = datastore_url(level_id)
        params = {
            "url": target,
            "matchType": "prefix",
            "collapse": "urlkey",
            "output": "json",
            "filter": "!statuscode:[45]..",
            "limit": "10000",
            "fl": "original",
        }
        response = self._get_with_backoff(
            TIMEMAP_API,
            params=params,
            headers=self._lookup_headers(quote(target, safe="")),
        )
        rows = response.json()
        logger.info("Fetched original URL rows for %s: %s", level_id, rows)

        original = None
        if isinstance(rows, list) and len(rows) > 1 and isinstance(rows[1], list) and rows[1]:
            original = rows[1][0]
        if not original:
            logger.error("No archived original url found for %s", level_id)
            return None
        return str(original)

    def resolve_archive_url(self, original_url: Optional[str]) -> Optional[str]:
        if not original_url:
            return None

        params = {
            "output": "json",
            "url": original_url,
            "collection": "web",
        }
        response = self._get_with_backoff(
            SPARKLINE_API,
            params=params,
            headers=self._lookup_headers(quote(original_url, safe="")),
        )
        data = response.json()
        logger.info("Fetched sparkline for %s: first_ts=%s", original_url, data.get("first_ts") if isinstance(data, dict) else None)

        timestamp = data.get("first_ts") if isinstance(data, dict) else None
        if not timestamp:
            logger.error("No archived version found for %s", original_url)
            return None
        return WAYBACK_RAW.format(timestamp=timestamp, url=original_url)

    def locate(self, level_id: str) -> str:
        archive_url = self.resolve_archive_url(self.resolve_original_url(level_id))
        if not archive_url:
            raise NotArchived(level_id)
        return archive_url

    def download(self, url: str, output_path: Path) -> Path:
        response = self._get_with_backoff(url, headers=dict(DOWNLOAD_HEADERS))
        output_path.parent.mkdir(parents=True, exist_ok=True)
        output_path.write_bytes(response.content)
        logger.info("File downloaded at: %s (%d bytes)", output_path, len(response.content))
        return output_path

    def fetch_level_ids(self, levels_url: str) -> List[str]:
        response = self._get_with_backoff(levels_url, headers=dict(LOOKUP_HEADERS))
        payload = response.json()
        if not isinstance(payload, list):
            raise ValueError(f"Level list at {levels_url} is not a JSON array")

        out: List[str] = []
        for item in payload:
            if isinstance(item, dict) and item.get("levelId"):
                out.append(str(item["levelId"]))
            elif isinstance(item, str) and item:
                out.append(item)
        return list(dict.fromkeys(out))
