"""Resolve post slugs to raw content on disk or over HTTP.

Two backends share the :class:`PostLoader` interface:

* :class:`FilesystemPostLoader` reads ``<content_dir>/<slug>/index.md``.
* :class:`HttpPostLoader` fetches ``<base_url>/<slug>/index.md``.

Both validate slugs before touching storage, bound every read by a timeout
and cache loaded sources, which never change during a process lifetime.

Example
-------
>>> from pathlib import Path
>>> from post_pages.loader import FilesystemPostLoader
>>> loader = FilesystemPostLoader(Path("public"))  # doctest: +SKIP
>>> loader.load("hello-world").location  # doctest: +SKIP
'public/hello-world/index.md'
"""

from __future__ import annotations

import concurrent.futures as cf
import logging
import threading
from http import HTTPStatus
from pathlib import Path

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from post_pages._constants import MANIFEST_FILENAME, POST_FILENAME
from post_pages.errors import InvalidSlugError, PostLoadError, PostNotFoundError
from post_pages.models import DocumentSource

logger = logging.getLogger(__name__)

_FORBIDDEN_SLUG_PARTS = ("/", "\\", "\x00")


def validate_slug(slug: str) -> str:
    """Return ``slug`` unchanged if it names a single content directory.

    Raises
    ------
    InvalidSlugError
        If the slug is empty, absolute, contains a path separator or NUL,
        or is a ``.``/``..`` segment.

    Examples
    --------
    >>> validate_slug("hello-world")
    'hello-world'
    >>> validate_slug("../etc")
    Traceback (most recent call last):
    ...
    post_pages.errors.InvalidSlugError: No post found for '../etc'. Slugs must be a single, non-empty path segment.
    """
    if (
        not slug
        or slug != slug.strip()
        or slug in {".", ".."}
        or any(part in slug for part in _FORBIDDEN_SLUG_PARTS)
    ):
        raise InvalidSlugError(slug)
    return slug


class PostLoader:
    """Base class holding the slug validation and source cache."""

    def __init__(self) -> None:
        self._cache: dict[str, DocumentSource] = {}
        self._lock = threading.Lock()

    def load(self, slug: str) -> DocumentSource:
        """Return the post stored under ``slug``.

        Raises
        ------
        PostNotFoundError
            If the slug is invalid or no ``index.md`` exists for it.
        PostLoadError
            If the content exists but could not be read in time.
        """
        validate_slug(slug)
        with self._lock:
            cached = self._cache.get(slug)
        if cached is not None:
            logger.debug("cache hit for %s", slug)
            return cached
        source = self._read(slug)
        with self._lock:
            return self._cache.setdefault(slug, source)

    def load_asset(self, slug: str, filename: str) -> str:
        """Return the text of ``filename`` stored next to the post.

        Assets are not cached; they are read once per render.
        """
        validate_slug(slug)
        validate_slug(filename)
        return self._read_text(slug, filename)

    def list_slugs(self) -> list[str]:
        """Return every slug this loader can serve, sorted."""
        raise NotImplementedError

    def clear_cache(self) -> None:
        """Forget every cached source."""
        with self._lock:
            self._cache.clear()

    def _read(self, slug: str) -> DocumentSource:
        text = self._read_text(slug, POST_FILENAME)
        return DocumentSource(slug=slug, raw_text=text, location=self._location(slug))

    def _read_text(self, slug: str, filename: str) -> str:
        raise NotImplementedError

    def _location(self, slug: str, filename: str = POST_FILENAME) -> str:
        raise NotImplementedError


class FilesystemPostLoader(PostLoader):
    """Load posts from a directory tree laid out as ``<slug>/index.md``."""

    def __init__(self, content_dir: Path, *, timeout: float = 10.0) -> None:
        super().__init__()
        self.content_dir = Path(content_dir)
        self.timeout = timeout
        self._executor = cf.ThreadPoolExecutor(
            max_workers=4, thread_name_prefix="post-loader"
        )

    def __enter__(self) -> FilesystemPostLoader:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def close(self) -> None:
        """Stop the reader threads."""
        self._executor.shutdown(wait=False, cancel_futures=True)

    def list_slugs(self) -> list[str]:
        """Return the names of subdirectories containing ``index.md``."""
        if not self.content_dir.is_dir():
            return []
        return sorted(
            entry.name
            for entry in self.content_dir.iterdir()
            if entry.is_dir() and (entry / POST_FILENAME).is_file()
        )

    def _read_text(self, slug: str, filename: str) -> str:
        path = self.content_dir / slug / filename
        future = self._executor.submit(path.read_text, encoding="utf-8")
        try:
            return future.result(timeout=self.timeout)
        except cf.TimeoutError as exc:
            future.cancel()
            msg = f"Reading '{path}' exceeded {self.timeout:g}s."
            raise PostLoadError(msg) from exc
        except FileNotFoundError as exc:
            raise PostNotFoundError(slug, f"Missing '{path}'.") from exc
        except (OSError, UnicodeDecodeError) as exc:
            msg = f"Could not read '{path}': {exc}"
            raise PostLoadError(msg) from exc

    def _location(self, slug: str, filename: str = POST_FILENAME) -> str:
        return str(self.content_dir / slug / filename)


class HttpPostLoader(PostLoader):
    """Load posts published under a base URL.

    Parameters
    ----------
    base_url : str
        URL prefix; ``<base_url>/<slug>/index.md`` must serve the post.
    timeout : float, optional
        Per-request timeout in seconds. Defaults to ``10.0``.
    session : requests.Session, optional
        Preconfigured session. Defaults to one with a retrying adapter.
    """

    def __init__(
        self,
        base_url: str,
        *,
        timeout: float = 10.0,
        session: requests.Session | None = None,
    ) -> None:
        super().__init__()
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._session = session or _retrying_session()

    def list_slugs(self) -> list[str]:
        """Return the slugs listed in the published ``posts.json`` manifest."""
        url = f"{self.base_url}/{MANIFEST_FILENAME}"
        response = self._get(url)
        if response.status_code == HTTPStatus.NOT_FOUND:
            return []
        _raise_for_status(response, url)
        try:
            payload = response.json()
        except ValueError as exc:
            msg = f"Manifest at '{url}' is not valid JSON."
            raise PostLoadError(msg) from exc
        posts = payload.get("posts") if isinstance(payload, dict) else None
        return sorted(
            str(entry["slug"])
            for entry in posts or ()
            if isinstance(entry, dict) and entry.get("slug")
        )

    def _read_text(self, slug: str, filename: str) -> str:
        url = self._location(slug, filename)
        response = self._get(url)
        if response.status_code == HTTPStatus.NOT_FOUND:
            raise PostNotFoundError(slug, f"'{url}' returned 404.")
        _raise_for_status(response, url)
        response.encoding = "utf-8"
        return response.text

    def _get(self, url: str) -> requests.Response:
        try:
            return self._session.get(url, timeout=self.timeout)
        except requests.Timeout as exc:
            msg = f"Fetching '{url}' exceeded {self.timeout:g}s."
            raise PostLoadError(msg) from exc
        except requests.RequestException as exc:
            msg = f"Failed to fetch '{url}': {exc}"
            raise PostLoadError(msg) from exc

    def _location(self, slug: str, filename: str = POST_FILENAME) -> str:
        return f"{self.base_url}/{slug}/{filename}"


def _retrying_session() -> requests.Session:
    session = requests.Session()
    retry = Retry(
        total=5,
        read=5,
        connect=3,
        backoff_factor=0.5,
        status_forcelist=(500, 502, 503, 504),
        allowed_methods=("GET", "HEAD"),
    )
    adapter = HTTPAdapter(max_retries=retry)
    session.mount("https://", adapter)
    session.mount("http://", adapter)
    return session


def _raise_for_status(response: requests.Response, url: str) -> None:
    if response.status_code >= HTTPStatus.BAD_REQUEST:
        snippet = response.text[:200]
        msg = f"Fetching '{url}' failed with status {response.status_code}: {snippet}"
        raise PostLoadError(msg)


__all__ = [
    "FilesystemPostLoader",
    "HttpPostLoader",
    "PostLoader",
    "validate_slug",
]
