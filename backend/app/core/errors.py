class PricingError(Exception):
    """Base error for tax and campaign pricing"""


class PricingValidationError(PricingError):
    """Cart or reference data is invalid; nothing was computed"""


class DataUnavailableError(PricingError):
    """Reference data could not be read from the database"""
