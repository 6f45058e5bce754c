"""Lead-paragraph excerpt heuristic for rendered Wikipedia articles."""

import structlog
from bs4 import BeautifulSoup, Tag


logger = structlog.get_logger()

# Markers MediaWiki renders for articles about places
GEO_MARKER_SELECTOR = "#coordinates, .geo, .geo-default, .geo-dms, .geo-dec"

# Wrapper the parser output is rendered into
CONTENT_ROOT_SELECTOR = ".mw-parser-output"


class WikipediaExcerptExtractor:
    """Selects the lead sentence paragraph of an article.

    Takes the first top-level paragraph containing bold text, which on
    Wikipedia is usually the one defining the subject. Best guess only:
    false accepts and false rejects are expected.

    Rejects:
    - articles about geographic entities (they make poor excerpts)
    - articles without a bold paragraph
    - leads ending with a colon, which usually introduce a list or a
      disambiguation page
    """

    def __init__(self, parser: str = "lxml") -> None:
        """Initialize the extractor.

        Args:
            parser: BeautifulSoup tree builder.
        """
        self._parser = parser
        self._log = logger.bind(component="excerpt")

    def extract(self, article_html: str) -> str | None:
        """Extract the lead paragraph markup.

        Args:
            article_html: Raw article HTML.

        Returns:
            Inner HTML of the lead paragraph, or None if rejected.
        """
        soup = BeautifulSoup(article_html, self._parser)

        if soup.select_one(GEO_MARKER_SELECTOR) is not None:
            self._log.debug("excerpt_rejected", reason="geo_marker")
            return None

        lead = self._find_lead_paragraph(soup)
        if lead is None:
            self._log.debug("excerpt_rejected", reason="no_bold_paragraph")
            return None

        if lead.get_text().strip().endswith(":"):
            self._log.debug("excerpt_rejected", reason="colon_terminated")
            return None

        return lead.decode_contents()

    def _find_lead_paragraph(self, soup: BeautifulSoup) -> Tag | None:
        """Find the first top-level paragraph containing a bold element.

        Args:
            soup: Parsed article.

        Returns:
            The paragraph, or None if there is none.
        """
        root = soup.select_one(CONTENT_ROOT_SELECTOR) or soup.body or soup

        for paragraph in root.find_all("p", recursive=False):
            if paragraph.find("b") is not None:
                return paragraph

        return None
