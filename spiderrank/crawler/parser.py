"""
HTML document extractor: title, body text, outbound links, language and
paywall detection.
"""

import re
import logging
from typing import List, Optional, Tuple, Union
from urllib.parse import urljoin, urlparse, urlunparse
from dataclasses import dataclass, field
from bs4 import BeautifulSoup, Comment


PAYWALL_SELECTORS = (
    '.paywall',
    '#paywall',
    '.subscription-prompt',
    '#subscription-prompt',
    "div[class*='paywall']",
    "div[id*='paywall']",
    "div[class*='subscribe']",
    "div[id*='subscribe']",
)

SKIP_EXTENSIONS = (
    '.jpg', '.jpeg', '.png', '.gif', '.bmp', '.svg', '.webp',
    '.pdf', '.doc', '.docx', '.xls', '.xlsx', '.ppt', '.pptx',
    '.zip', '.rar', '.tar', '.gz', '.exe', '.dmg', '.iso',
    '.mp3', '.mp4', '.avi', '.mov', '.wmv', '.flv',
    '.css', '.js', '.ico', '.woff', '.woff2', '.ttf', '.eot',
)

UNKNOWN_LANGUAGE = "unknown"


class ExtractionError(Exception):
    """Raised when a document cannot be turned into a ScrapeResult."""
    pass


@dataclass(frozen=True)
class ScrapeResult:
    """Structured view of one fetched page."""
    url: str
    title: Optional[str]
    body_text: str
    links: Tuple[str, ...] = ()
    is_partial: bool = False
    language: str = UNKNOWN_LANGUAGE


@dataclass(frozen=True)
class ExtractionRules:
    """Selectors and filters used by ContentParser. Immutable once built."""
    paywall_selectors: Tuple[str, ...] = PAYWALL_SELECTORS
    skip_extensions: Tuple[str, ...] = SKIP_EXTENSIONS
    allowed_domains: Tuple[str, ...] = ()
    blocked_domains: Tuple[str, ...] = ()
    strip_tags: Tuple[str, ...] = field(default=("script", "style", "noscript", "template"))

    @property
    def paywall_query(self) -> str:
        return ", ".join(self.paywall_selectors)


class ContentParser:
    """
    Turns raw markup into a ScrapeResult.

    The parser holds no mutable state; everything it needs comes from the
    ExtractionRules it was built with, so one instance is shared by all tasks.
    """

    def __init__(self, rules: Optional[ExtractionRules] = None):
        self.rules = rules or ExtractionRules()
        self.logger = logging.getLogger(__name__)
        self.whitespace_pattern = re.compile(r'\s+')

    @classmethod
    def from_domains(cls, allowed_domains: Optional[List[str]] = None,
                     blocked_domains: Optional[List[str]] = None) -> 'ContentParser':
        rules = ExtractionRules(
            allowed_domains=tuple(d.lower() for d in allowed_domains or ()),
            blocked_domains=tuple(d.lower() for d in blocked_domains or ()),
        )
        return cls(rules)

    def parse(self, body: Union[bytes, str], base_url: str,
              encoding: Optional[str] = None) -> ScrapeResult:
        """
        Parse a document and extract its indexable parts.

        Args:
            body: Raw markup as fetched
            base_url: Post-redirect URL of the document, used to resolve links
            encoding: Charset from the Content-Type header, tried first when
                decoding byte bodies

        Returns:
            ScrapeResult for the page

        Raises:
            ExtractionError: if the markup cannot be parsed
        """
        try:
            if isinstance(body, bytes) and encoding:
                soup = BeautifulSoup(body, 'lxml', from_encoding=encoding)
            else:
                soup = BeautifulSoup(body, 'lxml')
        except Exception as e:
            raise ExtractionError(f"Unparseable document at {base_url}: {e}") from e

        for element in soup(list(self.rules.strip_tags)):
            element.decompose()
        for comment in soup.find_all(string=lambda text: isinstance(text, Comment)):
            comment.extract()

        is_partial = self.is_paywalled(soup)
        if is_partial:
            body_text = self._extract_meta_description(soup)
        else:
            body_text = self._extract_body_text(soup)

        result = ScrapeResult(
            url=base_url,
            title=self._extract_title(soup),
            body_text=body_text,
            links=tuple(self._extract_links(soup, base_url)),
            is_partial=is_partial,
            language=self._extract_language(soup),
        )

        self.logger.debug(f"Parsed {base_url}: {len(result.body_text)} chars, "
                          f"{len(result.links)} links, partial={is_partial}")
        return result

    def is_paywalled(self, soup: BeautifulSoup) -> bool:
        """Check whether the page carries a known paywall marker."""
        if not self.rules.paywall_selectors:
            return False
        return soup.select_one(self.rules.paywall_query) is not None

    def _extract_title(self, soup: BeautifulSoup) -> Optional[str]:
        title_tag = soup.find('title')
        if title_tag:
            title = self._clean_text(title_tag.get_text())
            return title or None
        return None

    def _extract_meta_description(self, soup: BeautifulSoup) -> str:
        """Text a paywalled page still exposes."""
        meta_desc = soup.find('meta', attrs={'name': 'description'}) or \
            soup.find('meta', attrs={'property': 'og:description'})
        if meta_desc:
            return self._clean_text(meta_desc.get('content', ''))
        return ""

    def _extract_body_text(self, soup: BeautifulSoup) -> str:
        content_element = soup.find('body') or soup
        return self._clean_text(content_element.get_text(separator=' '))

    def _extract_language(self, soup: BeautifulSoup) -> str:
        """Primary language subtag from <html lang> or a content-language meta tag."""
        language = None
        html_tag = soup.find('html')
        if html_tag:
            language = html_tag.get('lang') or html_tag.get('xml:lang')

        if not language:
            meta = soup.find('meta', attrs={'http-equiv': re.compile('^content-language$', re.I)})
            if meta:
                language = meta.get('content')

        if not language:
            return UNKNOWN_LANGUAGE

        primary = re.split(r'[-_,\s]', language.strip(), maxsplit=1)[0].lower()
        return primary or UNKNOWN_LANGUAGE

    def _extract_links(self, soup: BeautifulSoup, base_url: str) -> List[str]:
        """Resolve, normalize and filter links, keeping document order."""
        links = {}

        for anchor in soup.find_all('a', href=True):
            href = anchor['href'].strip()
            if not href or href.startswith('#'):
                continue

            try:
                absolute_url = urljoin(base_url, href)
            except ValueError:
                continue

            normalized_url = self._normalize_url(absolute_url)
            if normalized_url and self._is_valid_url(normalized_url):
                links.setdefault(normalized_url, None)

        return list(links)

    def _normalize_url(self, url: str) -> Optional[str]:
        """Lowercase the host and drop the fragment."""
        try:
            parsed = urlparse(url)
        except ValueError:
            return None
        return urlunparse((
            parsed.scheme,
            parsed.netloc.lower(),
            parsed.path,
            parsed.params,
            parsed.query,
            ''
        ))

    def _is_valid_url(self, url: str) -> bool:
        """Check if URL is worth adding to the frontier."""
        parsed = urlparse(url)

        if parsed.scheme not in ('http', 'https') or not parsed.netloc:
            return False

        host = parsed.hostname or ''
        if any(self._domain_matches(host, d) for d in self.rules.blocked_domains):
            return False
        if self.rules.allowed_domains and \
                not any(self._domain_matches(host, d) for d in self.rules.allowed_domains):
            return False

        path = parsed.path.lower()
        return not path.endswith(self.rules.skip_extensions)

    @staticmethod
    def _domain_matches(host: str, domain: str) -> bool:
        return host == domain or host.endswith('.' + domain)

    def _clean_text(self, text: str) -> str:
        if not text:
            return ""
        return self.whitespace_pattern.sub(' ', text).strip()
