"""Exceptions raised by the crawler."""


class CrawlerError(Exception):
    """Base class for crawler errors."""


class ConfigurationError(CrawlerError):
    """Seeds or settings cannot produce a crawl."""


class StorageUnavailableError(CrawlerError):
    """The output file could not be opened for appending."""
