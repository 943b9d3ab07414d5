"""Exception types raised by the oracle pipeline."""


class OracleError(Exception):
    """Base class for all oracle failures."""


class FeedFetchError(OracleError):
    """Raised when a news feed query could not be fetched from any base URL."""


class LlmVerdictError(OracleError):
    """Raised when the LLM corroboration pass failed after all retries."""


class OutcomeParseError(OracleError):
    """Raised when an outcome value cannot be mapped onto the outcome index."""


class StaleMarketError(OracleError):
    """Raised when a market record changed in the store since it was read."""

    def __init__(self, market_id: str, expected_version: int, stored_version: int):
        super().__init__(
            f"Market {market_id} is at version {stored_version}, expected {expected_version}"
        )
        self.market_id = market_id
        self.expected_version = expected_version
        self.stored_version = stored_version
