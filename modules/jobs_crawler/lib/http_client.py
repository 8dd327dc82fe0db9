# modules/jobs_crawler/lib/http_client.py
from __future__ import annotations

import itertools
import logging
import random
import threading
from abc import ABC, abstractmethod
from collections.abc import Sequence
from dataclasses import dataclass, field

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from .utils import scrub_proxy_url

LOG = logging.getLogger(__name__)

_USER_AGENTS = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) "
    "Chrome/124.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 (KHTML, like Gecko) "
    "Chrome/124.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64; rv:125.0) Gecko/20100101 Firefox/125.0",
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 14_4) AppleWebKit/605.1.15 (KHTML, like Gecko) "
    "Version/17.4 Safari/605.1.15",
    "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/124.0.0.0 Safari/537.36",
)

_BROWSER_HEADERS = {
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
    "Accept-Language": "en-US,en;q=0.9",
    "Cache-Control": "no-cache",
    "Pragma": "no-cache",
}


class NetworkError(Exception):
    """Transport-level failure (DNS, connect, timeout, reset). Retried by the pool."""


@dataclass(frozen=True)
class PageResponse:
    status_code: int
    markup: str = ""


@dataclass(eq=False)
class Identity:
    """
    One client identity: a cookie jar (requests.Session), a user agent and an
    optional proxy. Retiring an identity drops its cookies with it.
    """

    id: int
    user_agent: str
    proxy: str | None = None
    session: requests.Session | None = field(default=None, repr=False)


# -----------------------------------------------------------------------------
# Fetch capability
# -----------------------------------------------------------------------------
class BaseFetcher(ABC):
    """
    Contract for the crawler's fetch layer:
      - fetch() returns a PageResponse for ANY HTTP status (429/999 included);
        only transport failures raise NetworkError.
      - acquire_identity()/retire_identity() rotate client identities. The
        defaults make identity a no-op for fetchers that don't need it.
    """

    @abstractmethod
    def fetch(self, url: str, identity: Identity | None = None) -> PageResponse:
        raise NotImplementedError

    def acquire_identity(self) -> Identity | None:
        return None

    def retire_identity(self, identity: Identity | None) -> None:
        return None

    def close(self) -> None:
        return None


class IdentityPool:
    """Round-robin pool of identities; retired ones are replaced with fresh sessions."""

    def __init__(
        self,
        size: int = 20,
        proxies: Sequence[str] = (),
        user_agents: Sequence[str] = _USER_AGENTS,
        session_factory=None,
    ):
        self._lock = threading.Lock()
        self._ids = itertools.count(1)
        self._proxies = list(proxies)
        self._user_agents = list(user_agents) or list(_USER_AGENTS)
        self._session_factory = session_factory or _make_session
        self._pool: list[Identity] = [self._new_identity() for _ in range(max(1, int(size)))]
        self._cursor = 0

    def _new_identity(self) -> Identity:
        ident_id = next(self._ids)
        proxy = self._proxies[ident_id % len(self._proxies)] if self._proxies else None
        ua = random.choice(self._user_agents)
        session = self._session_factory(ua, proxy)
        return Identity(id=ident_id, user_agent=ua, proxy=proxy, session=session)

    def __len__(self) -> int:
        return len(self._pool)

    def acquire(self) -> Identity:
        with self._lock:
            ident = self._pool[self._cursor % len(self._pool)]
            self._cursor += 1
            return ident

    def retire(self, identity: Identity) -> None:
        with self._lock:
            for i, ident in enumerate(self._pool):
                if ident is identity:
                    self._pool[i] = self._new_identity()
                    break
            else:
                return
        LOG.debug("Retired identity %s (proxy=%s)", identity.id, scrub_proxy_url(identity.proxy))
        _close_quietly(identity.session)

    def close(self) -> None:
        with self._lock:
            for ident in self._pool:
                _close_quietly(ident.session)


class HttpClient(BaseFetcher):
    """
    requests-based fetcher with browser-like headers and identity rotation.

    urllib3's Retry covers connection errors and 5xx only. 429/999 are
    returned as-is: the orchestrator decides how to back off from those.
    """

    def __init__(
        self,
        timeout: float = 30.0,
        *,
        pool_size: int = 20,
        proxies: Sequence[str] = (),
        session_factory=None,
    ):
        self.timeout = float(timeout)
        self.identities = IdentityPool(size=pool_size, proxies=proxies, session_factory=session_factory)

    def acquire_identity(self) -> Identity:
        return self.identities.acquire()

    def retire_identity(self, identity: Identity | None) -> None:
        if identity is not None:
            self.identities.retire(identity)

    def fetch(self, url: str, identity: Identity | None = None) -> PageResponse:
        ident = identity or self.acquire_identity()
        session = ident.session or _make_session(ident.user_agent, ident.proxy)
        try:
            resp = session.get(url, timeout=self.timeout)
        except requests.RequestException as e:
            raise NetworkError(f"GET {url} failed: {e}") from e
        if not resp.encoding and resp.apparent_encoding:
            resp.encoding = resp.apparent_encoding
        return PageResponse(status_code=resp.status_code, markup=resp.text)

    def close(self) -> None:
        try:
            self.identities.close()
        except Exception:
            LOG.debug("HttpClient.close() swallow", exc_info=True)


# -----------------------------------------------------------------------------
# Helpers
# -----------------------------------------------------------------------------
def _make_session(user_agent: str, proxy: str | None) -> requests.Session:
    session = requests.Session()
    session.headers.update({**_BROWSER_HEADERS, "User-Agent": user_agent})
    if proxy:
        session.proxies.update({"http": proxy, "https": proxy})

    retry = Retry(
        total=2,
        backoff_factor=0.5,
        status_forcelist=(500, 502, 503, 504),
        allowed_methods=frozenset(["GET", "HEAD"]),
        raise_on_status=False,
    )
    adapter = HTTPAdapter(max_retries=retry, pool_connections=4, pool_maxsize=8)
    session.mount("http://", adapter)
    session.mount("https://", adapter)
    return session


def _close_quietly(session: requests.Session | None) -> None:
    if session is None:
        return
    try:
        session.close()
    except Exception:
        LOG.debug("session.close() swallow", exc_info=True)
