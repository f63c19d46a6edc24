"""
Configuration constants for the account core and the sweep worker.
"""

import os
from decimal import Decimal

# Firestore defaults
DEFAULT_FIRESTORE_DATABASE_ID = "(default)"

# Collection prefixes
TEST_COLLECTION_PREFIX = "dev_"
PROD_COLLECTION_PREFIX = os.environ.get("COLLECTION_PREFIX", "")

# Account collections
PAYABLE_COLLECTION = "accounts_payable"
RECEIVABLE_COLLECTION = "accounts_receivable"

# Master data collections used for name denormalization
SUPPLIER_COLLECTION = "suppliers"
CLIENT_COLLECTION = "clients"
USER_COLLECTION = "users"

# Display-name field per master data collection
COUNTERPARTY_NAME_FIELDS = {
    SUPPLIER_COLLECTION: "company_name",
    CLIENT_COLLECTION: "name",
    USER_COLLECTION: "name",
}

# Processing metadata
BATCH_RUN_COLLECTION = "batch_run"
SEQUENCE_COLLECTION = "sequences"

# Account numbering: CP-001, CR-001
PAYABLE_NUMBER_PREFIX = "CP"
RECEIVABLE_NUMBER_PREFIX = "CR"
NUMBER_WIDTH = 3

# Overdue interest: 0.033% a month spread over 30 days, linear on the original amount
MONTHLY_INTEREST_RATE = Decimal("0.00033")
DAILY_INTEREST_RATE = MONTHLY_INTEREST_RATE / Decimal(30)

# Successors of a recurring account get an id derived from the source id so a
# repeated sweep cannot insert the same installment twice
RECURRENCE_DEDUP_ENABLED = os.environ.get("RECURRENCE_DEDUP_ENABLED", "true").lower() not in ("0", "false", "no")
