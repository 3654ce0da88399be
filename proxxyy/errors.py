class RelayError(Exception):
    """Base class for errors that make a configured run impossible"""


class ConfigError(RelayError):
    pass


class CatalogError(RelayError):
    pass


class UpstreamError(Exception):
    """The target could not be reached or did not answer in time"""

    def __init__(self, url, cause):
        self.url = url
        self.cause = cause
        super().__init__(f"{url}: {describe_error(cause)}")


def describe_error(error) -> str:
    return str(error) or type(error).__name__
