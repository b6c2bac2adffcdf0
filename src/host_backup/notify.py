from __future__ import annotations

import logging
from typing import Optional

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from .config import NotificationsConfig

DEFAULT_TIMEOUT = 30
DEFAULT_RETRIES = 5


class HealthNotifier:
    """Reports run health to a push monitor via ``GET {url}?status=&msg=``.

    Delivery problems are logged and never raised; without a push URL every
    call is a no-op.
    """

    def __init__(
        self,
        push_url: Optional[str],
        timeout: float = DEFAULT_TIMEOUT,
        retries: int = DEFAULT_RETRIES,
        session: Optional[requests.Session] = None,
    ) -> None:
        self._push_url = push_url
        self._timeout = timeout
        self._log = logging.getLogger(self.__class__.__name__)
        self._session = session or self._build_session(retries)

    @classmethod
    def from_config(cls, config: NotificationsConfig) -> "HealthNotifier":
        return cls(
            push_url=config.resolve_push_url(),
            timeout=config.timeout_seconds,
            retries=config.retries,
        )

    @staticmethod
    def _build_session(retries: int) -> requests.Session:
        session = requests.Session()
        retry = Retry(
            total=retries,
            connect=retries,
            read=retries,
            backoff_factor=1,
            status_forcelist=(429, 500, 502, 503, 504),
            allowed_methods=frozenset({"GET"}),
            raise_on_status=False,
        )
        adapter = HTTPAdapter(max_retries=retry)
        session.mount("http://", adapter)
        session.mount("https://", adapter)
        session.headers.update({"User-Agent": "host-backup"})
        return session

    @property
    def enabled(self) -> bool:
        return bool(self._push_url)

    def up(self, message: str = "OK") -> bool:
        return self.send("up", message)

    def down(self, message: str) -> bool:
        return self.send("down", message)

    def send(self, status: str, message: str) -> bool:
        if not self._push_url:
            self._log.debug("No push URL configured; skipping %s status", status)
            return False
        try:
            response = self._session.get(
                self._push_url,
                params={"status": status, "msg": message},
                timeout=self._timeout,
            )
        except requests.RequestException as exc:
            self._log.warning("Status update for %s failed: %s", status, exc)
            return False

        if response.status_code == 200:
            self._log.info("Status update for %s was successful.", status)
            return True
        self._log.warning("Status update for %s failed with response code %s.", status, response.status_code)
        return False
