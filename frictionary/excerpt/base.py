"""Excerpt extraction interface."""

from typing import Protocol, runtime_checkable


@runtime_checkable
class ExcerptExtractor(Protocol):
    """Strategy that picks a short defining excerpt out of an article.

    Implementations return the excerpt markup, or None to reject the
    article. Rejection is a normal outcome, not an error.
    """

    def extract(self, article_html: str) -> str | None:
        """Extract an excerpt from rendered article markup.

        Args:
            article_html: Raw article HTML.

        Returns:
            Excerpt HTML fragment, or None if the article is rejected.
        """
        ...
