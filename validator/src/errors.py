"""Error taxonomy for the validator agent.

Every runtime error below is recovered locally by the scheduler and reflected
in health state; only ConfigurationError is fatal, and only at startup.
"""


class ValidatorError(Exception):
    """Base exception for validator agent errors."""

    pass


class ConfigurationError(ValidatorError):
    """Raised when required configuration is missing or invalid."""

    pass


class ConnectivityError(ValidatorError):
    """Raised when the ledger RPC endpoint cannot be reached."""

    pass


class DataUnavailableError(ValidatorError):
    """Raised when no provider yielded a usable value for a feed."""

    pass


class StaleDataError(DataUnavailableError):
    """Raised when the only available data is older than the freshness threshold."""

    pass


class RegistrationError(ValidatorError):
    """Raised when the validator is not authorized to submit."""

    pass


class SubmissionError(ValidatorError):
    """Raised when the ledger rejects a validation transaction.

    :ivar feed_id: Feed the rejected submission was for.
    :ivar reason: Rejection reason reported by the ledger or client.
    """

    def __init__(self, feed_id: str, reason: str):
        """Initialize the submission error.

        :param feed_id: Feed identifier.
        :param reason: Rejection reason.
        """
        self.feed_id = feed_id
        self.reason = reason
        super().__init__(f"Submission for feed {feed_id} rejected: {reason}")
