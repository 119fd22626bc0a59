"""Page title and icon discovery for arbitrary HTML documents.

Both heuristics are ordered strategy lists:
- TITLE_EXTRACTORS: evaluated in order, the first non-empty result wins.
- ICON_RULES: each rule claims the elements it matches that no earlier rule
  claimed, so the concatenated output is a total order over candidates.
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass
from urllib.parse import urljoin, urlparse

from bs4 import BeautifulSoup
from bs4.element import Tag

from .config import FetchConfig
from .fetch import HTML_ACCEPT, FetchError, fetch_url
from .models import CandidateHints, CandidateSource, IconCandidate, PageMetadata

logger = logging.getLogger(__name__)

# Title used when neither the document nor the URL offer anything.
DEFAULT_TITLE = "PWA App"

FAVICON_PATH = "/favicon.ico"


def _attr_text(tag: Tag, name: str) -> str:
    """Return an attribute as a string, joining multi-valued attributes."""
    value = tag.get(name)
    if value is None:
        return ""
    if isinstance(value, list):
        return " ".join(value)
    return str(value)


# -----------------------------------------------------------------------------
# Title extraction
# -----------------------------------------------------------------------------

TitleExtractor = Callable[[BeautifulSoup], str]


def title_from_title_tag(soup: BeautifulSoup) -> str:
    if soup.title is None:
        return ""
    return soup.title.get_text().strip()


def _meta_content(soup: BeautifulSoup, attrs: dict[str, str]) -> str:
    tag = soup.find("meta", attrs=attrs)
    if not isinstance(tag, Tag):
        return ""
    return _attr_text(tag, "content").strip()


def title_from_meta_name(soup: BeautifulSoup) -> str:
    return _meta_content(soup, {"name": "title"})


def title_from_open_graph(soup: BeautifulSoup) -> str:
    return _meta_content(soup, {"property": "og:title"})


TITLE_EXTRACTORS: tuple[TitleExtractor, ...] = (
    title_from_title_tag,
    title_from_meta_name,
    title_from_open_graph,
)


def title_from_url(url: str) -> str:
    """Derive a title from a URL's hostname, dropping a leading "www."."""
    try:
        hostname = urlparse(url).hostname or ""
    except ValueError:
        hostname = ""
    if hostname.startswith("www."):
        hostname = hostname[4:]
    return hostname or DEFAULT_TITLE


def extract_title(soup: BeautifulSoup, url: str) -> str:
    """Run the title extractors in order, falling back to the URL host."""
    for extractor in TITLE_EXTRACTORS:
        title = extractor(soup)
        if title:
            return title
    return title_from_url(url)


# -----------------------------------------------------------------------------
# Icon ranking
# -----------------------------------------------------------------------------


@dataclass(frozen=True)
class IconRule:
    """One ranking tier.

    Attributes:
        name: Short identifier used in debug logs.
        tag: Element name the rule inspects ("img" or "link").
        matches: Predicate over an unclaimed element.
        first_only: Stop after the first match.
    """

    name: str
    tag: str
    matches: Callable[[Tag], bool]
    first_only: bool = False

    @property
    def ref_attr(self) -> str:
        return "src" if self.tag == "img" else "href"

    @property
    def source(self) -> CandidateSource:
        return CandidateSource.IMG_TAG if self.tag == "img" else CandidateSource.LINK_TAG


def _img_class_mentions_icon(tag: Tag) -> bool:
    src = _attr_text(tag, "src").strip()
    return "icon" in _attr_text(tag, "class") and not src.lower().startswith("data:")


def _img_alt_mentions_logo(tag: Tag) -> bool:
    alt = _attr_text(tag, "alt").lower()
    return "logo" in alt or "icon" in alt


def _any_element(tag: Tag) -> bool:
    return True


def _link_rel_apple_touch(tag: Tag) -> bool:
    return "apple-touch-icon" in _attr_text(tag, "rel").lower()


def _link_rel_icon(tag: Tag) -> bool:
    return "icon" in _attr_text(tag, "rel").lower()


ICON_RULES: tuple[IconRule, ...] = (
    IconRule("img-class-icon", "img", _img_class_mentions_icon),
    IconRule("img-alt-logo", "img", _img_alt_mentions_logo),
    IconRule("img-first", "img", _any_element, first_only=True),
    IconRule("link-apple-touch-icon", "link", _link_rel_apple_touch),
    IconRule("link-icon", "link", _link_rel_icon),
)


def favicon_candidate(page_url: str) -> IconCandidate:
    """The last-resort /favicon.ico candidate for a page's origin."""
    return IconCandidate(
        url=urljoin(page_url, FAVICON_PATH),
        source=CandidateSource.FALLBACK,
        tier=len(ICON_RULES) + 1,
    )


def rank_icon_candidates(soup: BeautifulSoup, page_url: str) -> list[IconCandidate]:
    """Extract icon candidates from a document in ranking order.

    Args:
        soup: Parsed document.
        page_url: Final document URL; relative references resolve against it.

    Returns:
        Candidates ordered best-first, ending with the favicon fallback.
        A URL appears once, at its highest rank.
    """
    claimed: set[int] = set()
    seen_urls: set[str] = set()
    candidates: list[IconCandidate] = []

    for tier, rule in enumerate(ICON_RULES, start=1):
        for tag in soup.find_all(rule.tag):
            if id(tag) in claimed or not rule.matches(tag):
                continue
            ref = _attr_text(tag, rule.ref_attr).strip()
            if not ref:
                continue

            try:
                url = urljoin(page_url, ref)
            except ValueError:
                logger.debug("Skipping malformed icon reference %r", ref)
                continue

            claimed.add(id(tag))
            if url not in seen_urls:
                seen_urls.add(url)
                candidates.append(
                    IconCandidate(
                        url=url,
                        source=rule.source,
                        hints=CandidateHints(
                            class_name=_attr_text(tag, "class"),
                            alt=_attr_text(tag, "alt"),
                            rel=_attr_text(tag, "rel"),
                        ),
                        tier=tier,
                    )
                )
                logger.debug("Icon candidate %s (rule %s)", url, rule.name)

            if rule.first_only:
                break

    fallback = favicon_candidate(page_url)
    if fallback.url not in seen_urls:
        candidates.append(fallback)

    return candidates


def parse_page(html: bytes | str, page_url: str) -> PageMetadata:
    """Build PageMetadata from a document body."""
    soup = BeautifulSoup(html, "html.parser")
    return PageMetadata(
        url=page_url,
        title=extract_title(soup, page_url),
        icon_candidates=tuple(rank_icon_candidates(soup, page_url)),
    )


class MetadataResolver:
    """Fetches a page and infers its title and icon.

    resolve() never raises: any fetch or parse failure yields the
    hostname-derived title and no icon candidates.
    """

    def __init__(self, config: FetchConfig) -> None:
        self._config = config

    def resolve(self, url: str) -> PageMetadata:
        """Resolve a page's metadata.

        Args:
            url: Page to inspect.

        Returns:
            PageMetadata, degraded to the URL host title on failure.
        """
        try:
            resource = fetch_url(url, self._config, accept=HTML_ACCEPT)
        except FetchError as e:
            logger.warning("Could not fetch %s, using hostname title: %s", url, e)
            return self._degraded(url)

        try:
            metadata = parse_page(resource.content, resource.url)
        except Exception as e:
            logger.warning("Could not parse %s, using hostname title: %s", resource.url, e)
            return self._degraded(url)

        logger.info(
            "Resolved %s: title=%r, %d icon candidate(s)",
            url,
            metadata.title,
            len(metadata.icon_candidates),
        )
        return metadata

    @staticmethod
    def _degraded(url: str) -> PageMetadata:
        return PageMetadata(url=url, title=title_from_url(url), icon_candidates=())
