"""
OpenProject API v3 client – work package fetching with pagination.
"""

import json
import logging
import threading
from typing import Iterable, List, Optional

import requests
from requests.adapters import HTTPAdapter

from opbot.errors import FetchCancelled, SourceProtocolError, SourceUnavailable
from opbot.models import WorkPackage

DEFAULT_PAGE_SIZE = 200
DEFAULT_TIMEOUT_SECONDS = 30
WORK_PACKAGES_PATH = "/api/v3/work_packages"

# OpenProject API keys authenticate as this fixed user name
API_KEY_USER = "apikey"


class OpenProjectClient:
    """
    Stateless work package reader.

    - One pooled requests.Session shared by all worker threads
    - Basic auth with the "apikey" user and the API token as password
    - No retries: a failed call surfaces to the caller
    """

    def __init__(
        self,
        base_url: str,
        api_token: str,
        *,
        page_size: int = DEFAULT_PAGE_SIZE,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        closed_status_ids: Iterable[str] = (),
        pool_size: int = 8,
        logger: Optional[logging.Logger] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.page_size = page_size
        self.timeout = timeout
        self.closed_status_ids = [str(s) for s in closed_status_ids]
        self.logger = logger or logging.getLogger("openproject")

        self.session = requests.Session()
        self.session.auth = (API_KEY_USER, api_token)
        self.session.headers.update({"Accept": "application/hal+json"})

        adapter = HTTPAdapter(
            pool_connections=pool_size,
            pool_maxsize=pool_size,
            max_retries=0,
        )
        self.session.mount("https://", adapter)
        self.session.mount("http://", adapter)

    # ------------------------------------------------------------------
    # Request building
    # ------------------------------------------------------------------

    def build_filters(self, project_id: str, assignee_id: str) -> List[dict]:
        if self.closed_status_ids:
            status_filter = {"operator": "!", "values": self.closed_status_ids}
        else:
            # "o" = any open status
            status_filter = {"operator": "o", "values": []}

        return [
            {"status": status_filter},
            {"project": {"operator": "=", "values": [str(project_id)]}},
            {"assignee": {"operator": "=", "values": [str(assignee_id)]}},
        ]

    def resolve_url(self, href: str) -> str:
        if href.startswith(("http://", "https://")):
            return href
        return self.base_url + href

    # ------------------------------------------------------------------
    # Fetching
    # ------------------------------------------------------------------

    def fetch_work_packages(
        self,
        project_id: str,
        assignee_id: str,
        cancel_event: Optional[threading.Event] = None,
    ) -> List[WorkPackage]:
        """
        Fetch every open work package of `assignee_id` in `project_id`,
        following the collection's next-page links until they run out.

        Cancellation is checked before each page request, so a cancelled
        fetch stops after the request currently in flight.
        """
        url = self.base_url + WORK_PACKAGES_PATH
        params: Optional[dict] = {
            "filters": json.dumps(self.build_filters(project_id, assignee_id)),
            "pageSize": self.page_size,
        }

        work_packages: List[WorkPackage] = []
        page = 0

        while url:
            if cancel_event is not None and cancel_event.is_set():
                raise FetchCancelled(
                    f"fetch cancelled (project={project_id}, assignee={assignee_id}, page={page})"
                )

            payload = self._get(url, params)
            elements, next_href = self._parse_collection(payload)
            work_packages.extend(elements)
            page += 1

            # next links already carry the filters and offset
            params = None
            url = self.resolve_url(next_href) if next_href else None

        self.logger.debug(
            f"Fetched {len(work_packages)} work packages "
            f"(project={project_id}, assignee={assignee_id}, pages={page})"
        )
        return work_packages

    def _get(self, url: str, params: Optional[dict]) -> dict:
        try:
            resp = self.session.get(url, params=params, timeout=self.timeout)
        except requests.RequestException as e:
            raise SourceUnavailable(f"OpenProject request failed: {e}") from e

        if resp.status_code != 200:
            raise SourceProtocolError(
                f"OpenProject error {resp.status_code}: {resp.text}",
                status_code=resp.status_code,
                body=resp.text,
            )

        try:
            return resp.json()
        except ValueError as e:
            raise SourceProtocolError(
                f"OpenProject returned invalid JSON: {e}",
                status_code=resp.status_code,
                body=resp.text,
            ) from e

    @staticmethod
    def _parse_collection(payload) -> tuple:
        """Split a HAL collection into (work packages, next page href or None)."""
        try:
            raw_elements = payload["_embedded"]["elements"]
            if not isinstance(raw_elements, list):
                raise TypeError("_embedded.elements is not a list")
            elements = [WorkPackage.from_api(e) for e in raw_elements]

            links = payload.get("_links") or {}
            if not isinstance(links, dict):
                raise TypeError("_links is not an object")
            next_link = links.get("nextByOffset") or links.get("next") or {}
            if not isinstance(next_link, dict):
                raise TypeError("next page link is not an object")
            next_href = next_link.get("href") or None
            if next_href is not None and not isinstance(next_href, str):
                raise TypeError("next page href is not a string")
        except (KeyError, TypeError, ValueError) as e:
            raise SourceProtocolError(
                f"Unexpected work package collection shape: {e!r}",
                status_code=200,
                body=json.dumps(payload, ensure_ascii=False)[:2000],
            ) from e

        return elements, next_href
