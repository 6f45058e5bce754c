"""Excerpt extraction strategies."""

from frictionary.excerpt.base import ExcerptExtractor
from frictionary.excerpt.wikipedia import WikipediaExcerptExtractor


__all__ = [
    "ExcerptExtractor",
    "WikipediaExcerptExtractor",
]
