"""Engine errors.

Every error subclasses ValueError so callers can keep treating service
failures the same way (``except ValueError`` -> 400).
"""


class PayoutEngineError(ValueError):
    """Base class for failures that abort an upload batch."""


class MultiMonthUploadError(PayoutEngineError):
    def __init__(self, months):
        self.months = sorted(months)
        super().__init__(
            "Data for multiple months was found in a single upload. "
            "Please upload data for one month at a time."
        )


class InvalidMonthError(PayoutEngineError):
    def __init__(self, month):
        self.month = month
        super().__init__(f"Invalid month '{month}'. Expected YYYY-MM.")


class DanglingAdjustmentError(PayoutEngineError):
    def __init__(self, deal_id: str, payee_email: str):
        self.deal_id = deal_id
        self.payee_email = payee_email
        super().__init__(
            f'Adjustment failed: The original deal with ID "{deal_id}" '
            f"was not found for {payee_email}."
        )


class UnknownPayeeError(PayoutEngineError):
    def __init__(self, emails):
        self.emails = sorted(emails)
        super().__init__(f"Unknown payees for this upload: {', '.join(self.emails)}")


class PayeeClassMismatchError(PayoutEngineError):
    def __init__(self, email: str, expected, actual):
        self.email = email
        super().__init__(
            f"Payee {email} is a {actual.value}, not a {expected.value}"
        )


class PayeeNotFoundError(PayoutEngineError):
    def __init__(self, email: str):
        self.email = email
        super().__init__(f"Payee {email} not found")


class DuplicatePayeeError(PayoutEngineError):
    def __init__(self, email: str):
        self.email = email
        super().__init__(f"Payee {email} already exists")


class DuplicateDealError(PayoutEngineError):
    def __init__(self, deal_id: str, payee_email: str, month=None):
        self.deal_id = deal_id
        self.payee_email = payee_email
        where = f" (already invoiced in {month})" if month else ""
        super().__init__(f"Deal {deal_id} appears more than once for {payee_email}{where}")
