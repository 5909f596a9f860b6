"""Status values shared by the models and the slot resolver."""

SESSION_STATUS_SCHEDULED = 'scheduled'
SESSION_STATUS_COMPLETED = 'completed'
SESSION_STATUS_CANCELLED = 'cancelled'
SESSION_STATUS_NO_SHOW = 'no_show'

SESSION_STATUSES = (
    SESSION_STATUS_SCHEDULED,
    SESSION_STATUS_COMPLETED,
    SESSION_STATUS_CANCELLED,
    SESSION_STATUS_NO_SHOW,
)

PAYMENT_STATUS_PENDING = 'pending'
PAYMENT_STATUS_PAID = 'paid'
PAYMENT_STATUS_OVERDUE = 'overdue'
PAYMENT_STATUS_CANCELLED = 'cancelled'

PAYMENT_STATUSES = (
    PAYMENT_STATUS_PENDING,
    PAYMENT_STATUS_PAID,
    PAYMENT_STATUS_OVERDUE,
    PAYMENT_STATUS_CANCELLED,
)

ROLE_PROFESSIONAL = 'professional'
ROLE_ADMIN = 'admin'
PROFESSIONAL_ROLES = {ROLE_PROFESSIONAL, ROLE_ADMIN}
