"""Web page extraction with SSRF protection.

Extractors are selected by a source-type tag and all return the same
``ExtractedContent(title, content)``:

  generic             page body → html2text
  structured-catalog  listing pages → one line per heading / item / row

Security requirements for every fetch:
- SSRF guard: ipaddress module blocks private/loopback/link-local ranges before
  any connection is established, for the requested URL and every redirect
  target.
- Allowed URL schemes: https:// and http:// only.
- Content-Type whitelist: text/html and text/plain only.
- Max response body: 5 MB.
- Timeout: 30 seconds (connect + read).
- Max redirects: 3.
"""

from __future__ import annotations

import ipaddress
import socket
import urllib.error
import urllib.parse
import urllib.request
from http.client import HTTPResponse

import html2text
from bs4 import BeautifulSoup, Tag

from lantern.errors import ExtractionFailure, InvalidInput
from lantern.ingest.base import ExtractedContent

_USER_AGENT = "lantern/0.1 (knowledge-base ingest)"
_MAX_BYTES = 5 * 1024 * 1024  # 5 MB
_TIMEOUT = 30  # seconds
_MAX_REDIRECTS = 3
_ALLOWED_SCHEMES = {"https", "http"}
_ALLOWED_CONTENT_TYPES = {"text/html", "text/plain"}
_NOISE_TAGS = ["script", "style", "nav", "footer", "head", "noscript", "form"]

# html2text converter
_h2t = html2text.HTML2Text()
_h2t.ignore_links = True
_h2t.ignore_images = True
_h2t.body_width = 0


class SsrfError(InvalidInput):
    """Raised when a URL resolves to a private or reserved address."""


class WebExtractor:
    """Fetch a URL and convert the page body to plain text (``generic``).

    SSRF protection is applied *before* any connection is made: the hostname
    is resolved and every resulting address is checked against
    private/loopback/link-local/reserved ranges.
    """

    tag = "generic"

    def __init__(self, timeout: float = _TIMEOUT) -> None:
        self.timeout = timeout

    def extract(self, url: str) -> ExtractedContent:
        """Fetch *url* and return its title and plain-text content.

        Raises:
            InvalidInput: Bad scheme, missing hostname, or SSRF-blocked address.
            ExtractionFailure: Network error, disallowed content type, oversize
                body, or a page with no text.
        """
        self._validate_scheme(url)
        self._check_ssrf(url)
        raw, content_type = self._fetch(url)
        text = raw.decode("utf-8", errors="replace")

        if content_type == "text/plain":
            title, content = _title_from_url(url), text.strip()
        else:
            soup = BeautifulSoup(text, "html.parser")
            title = _page_title(soup) or _title_from_url(url)
            for tag in soup.find_all(_NOISE_TAGS):
                tag.decompose()
            content = self._convert(soup)

        if not content.strip():
            raise ExtractionFailure(f"no readable text found at '{url}'")
        return ExtractedContent(title=title, content=content)

    def _convert(self, soup: BeautifulSoup) -> str:
        return _h2t.handle(str(soup)).strip()

    # ------------------------------------------------------------------
    # Fetch pipeline
    # ------------------------------------------------------------------

    @staticmethod
    def _validate_scheme(url: str) -> None:
        parsed = urllib.parse.urlparse(url)
        if parsed.scheme not in _ALLOWED_SCHEMES:
            raise InvalidInput(
                f"Unsupported URL scheme '{parsed.scheme}'. Only https:// and http:// are allowed."
            )

    @staticmethod
    def _check_ssrf(url: str) -> None:
        """Resolve the hostname and block private/reserved IP ranges."""
        parsed = urllib.parse.urlparse(url)
        hostname = parsed.hostname
        if not hostname:
            raise InvalidInput(f"URL has no hostname: {url}")

        try:
            addrinfos = socket.getaddrinfo(hostname, None)
        except socket.gaierror as exc:
            raise ExtractionFailure(f"DNS resolution failed for '{hostname}'") from exc

        for addrinfo in addrinfos:
            addr_str = addrinfo[4][0]
            try:
                ip = ipaddress.ip_address(addr_str)
            except ValueError:
                continue
            if (
                ip.is_private
                or ip.is_loopback
                or ip.is_link_local
                or ip.is_reserved
                or ip.is_multicast
                or ip.is_unspecified
            ):
                raise SsrfError(
                    f"URL resolves to private address ({ip}). "
                    "Access to internal network addresses is not allowed."
                )

    def _fetch(self, url: str) -> tuple[bytes, str]:
        """Fetch *url* with timeout, redirect limit, size cap, and Content-Type check.

        Returns (body_bytes, content_type_without_params).
        """
        request = urllib.request.Request(url, headers={"User-Agent": _USER_AGENT})
        opener = urllib.request.build_opener(_LimitedRedirectHandler(_MAX_REDIRECTS))

        try:
            response: HTTPResponse = opener.open(request, timeout=self.timeout)
        except (urllib.error.URLError, TimeoutError, OSError) as exc:
            raise ExtractionFailure(f"failed to fetch URL '{url}'") from exc

        with response:
            raw_ct = response.headers.get("Content-Type", "text/html")
            ct = raw_ct.split(";")[0].strip().lower()
            if ct not in _ALLOWED_CONTENT_TYPES:
                raise ExtractionFailure(
                    f"unsupported Content-Type '{ct}' for URL '{url}'. "
                    f"Accepted: {', '.join(sorted(_ALLOWED_CONTENT_TYPES))}"
                )

            body = response.read(_MAX_BYTES + 1)
        if len(body) > _MAX_BYTES:
            raise ExtractionFailure(
                f"response body exceeds {_MAX_BYTES // (1024 * 1024)} MB limit for URL '{url}'."
            )
        return body, ct


class CatalogExtractor(WebExtractor):
    """Extract listing / catalogue pages (``structured-catalog``).

    Each heading, list item, definition pair and table row is emitted as its
    own paragraph, so entries survive as separate units for the chunker
    instead of being flattened into one run of prose.
    """

    tag = "structured-catalog"

    _BLOCKS = ["h1", "h2", "h3", "h4", "li", "dt", "tr", "p"]

    def _convert(self, soup: BeautifulSoup) -> str:
        body = soup.body or soup
        lines: list[str] = []
        for el in body.find_all(self._BLOCKS):
            if _has_block_ancestor(el, self._BLOCKS):
                continue
            line = self._render(el)
            if line:
                lines.append(line)
        if not lines:
            return super()._convert(soup)
        return "\n\n".join(lines)

    @staticmethod
    def _render(el: Tag) -> str:
        if el.name == "tr":
            cells = [c.get_text(" ", strip=True) for c in el.find_all(["th", "td"])]
            return " | ".join(c for c in cells if c)
        if el.name == "dt":
            term = el.get_text(" ", strip=True)
            dd = el.find_next_sibling("dd")
            definition = dd.get_text(" ", strip=True) if dd else ""
            return f"{term}: {definition}" if definition else term
        text = el.get_text(" ", strip=True)
        if el.name in ("h1", "h2", "h3", "h4"):
            return f"## {text}" if text else ""
        return text


EXTRACTORS: dict[str, type[WebExtractor]] = {
    WebExtractor.tag: WebExtractor,
    CatalogExtractor.tag: CatalogExtractor,
}


def get_extractor(tag: str = "generic") -> WebExtractor:
    """Return the extractor registered for *tag*.

    Raises:
        InvalidInput: If *tag* is not a known source type.
    """
    try:
        return EXTRACTORS[tag]()
    except KeyError:
        raise InvalidInput(
            f"Unknown extractor '{tag}'. Use one of: {', '.join(sorted(EXTRACTORS))}."
        ) from None


# ------------------------------------------------------------------
# Helpers
# ------------------------------------------------------------------


def _page_title(soup: BeautifulSoup) -> str:
    if soup.title and soup.title.get_text(strip=True):
        return soup.title.get_text(" ", strip=True)
    h1 = soup.find("h1")
    if h1 and h1.get_text(strip=True):
        return h1.get_text(" ", strip=True)
    return ""


def _title_from_url(url: str) -> str:
    parsed = urllib.parse.urlparse(url)
    tail = parsed.path.rstrip("/").rsplit("/", 1)[-1]
    return tail or parsed.hostname or "Untitled"


def _has_block_ancestor(el: Tag, names: list[str]) -> bool:
    return any(parent.name in names for parent in el.parents)


class _LimitedRedirectHandler(urllib.request.HTTPRedirectHandler):
    """Raise an error after more than *max_redirects* redirects.

    Each redirect target goes through the scheme and SSRF checks before it
    is followed.
    """

    def __init__(self, max_redirects: int) -> None:
        self._max_redirects = max_redirects
        self._count = 0

    def redirect_request(self, req, fp, code, msg, headers, newurl):
        self._count += 1
        if self._count > self._max_redirects:
            raise ExtractionFailure(
                f"too many redirects (>{self._max_redirects}) for URL '{req.full_url}'."
            )
        WebExtractor._validate_scheme(newurl)
        WebExtractor._check_ssrf(newurl)
        return super().redirect_request(req, fp, code, msg, headers, newurl)
