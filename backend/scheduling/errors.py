"""Errors raised by the scheduling write path and store lookups."""


class SchedulingError(Exception):
    """Base class for scheduling failures that routes translate to HTTP errors."""


class ProviderNotFoundError(SchedulingError):
    def __init__(self, professional_id: str):
        super().__init__(f'Professional {professional_id!r} not found.')
        self.professional_id = professional_id


class InvalidSlotError(SchedulingError):
    """The requested start is not a bookable slot of the professional's calendar."""


class SlotUnavailableError(SchedulingError):
    """The slot was bookable when displayed but another booking took it meanwhile."""

    def __init__(self, message: str = 'This time slot is no longer available.'):
        super().__init__(message)


class InvalidStatusError(SchedulingError):
    """A session or payment status change that is not allowed."""
