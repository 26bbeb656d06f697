DEFAULT_ROLES = [
    ("ADMIN", "Association administrator with full access"),
    ("TREASURER", "Treasurer responsible for dues and collections"),
    ("CLERK", "Office staff handling registrations and payments"),
    ("AUDITOR", "Auditor with read access to financial records"),
]

# Higher number means more privileges
ROLE_PRIORITY = {
    "AUDITOR": 10,
    "CLERK": 20,
    "TREASURER": 50,
    "ADMIN": 100,
}

BILLING_ROLES = ("ADMIN", "TREASURER")
PAYMENT_ROLES = ("ADMIN", "TREASURER", "CLERK")
FINANCE_READ_ROLES = ("ADMIN", "TREASURER", "CLERK", "AUDITOR")

FISCAL_MONTH_MIN = 1
FISCAL_MONTH_MAX = 12
FISCAL_YEAR_MIN = 2000
FISCAL_YEAR_MAX = 2100

DEFAULT_MINIMUM_DUE_AMOUNT = 1

DUES_LISTING_KEY = "dues"
