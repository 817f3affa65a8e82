class CrawlerError(Exception):
    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class InvalidDomainError(CrawlerError):
    def __init__(self, url: str):
        self.url = url
        super().__init__(f"Invalid domain: {url}")


class FetchError(CrawlerError):
    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        retryable: bool = False,
        browser_candidate: bool = False,
    ):
        self.status_code = status_code
        self.retryable = retryable
        # Network-level failures that a headless browser might get past
        self.browser_candidate = browser_candidate
        super().__init__(message)


class HomepageUnreachableError(CrawlerError):
    def __init__(self, url: str, last_error: str | None = None):
        self.url = url
        self.last_error = last_error
        super().__init__(
            f"All URL variants failed. Last error: {last_error or 'Unknown'}"
        )


class NoStartUrlsError(CrawlerError):
    def __init__(self):
        super().__init__("No start URLs provided")
