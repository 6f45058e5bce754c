"""Frictionary: votable encyclopedia excerpts sampled from MediaWiki sites."""

__version__ = "1.0.0"
