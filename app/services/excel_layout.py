# app/services/excel_layout.py
#
# Fixed three-sheet workbook layout shared by the Excel parser and exporter.
# Column order matters: the parser reads cells by position.

ACCOUNTS_SHEET = "Accounts"
CATEGORIES_SHEET = "Categories"
TRANSACTIONS_SHEET = "Transactions"

# (header, key, width)
ACCOUNT_COLUMNS = [
    ("Name", "name", 25),
    ("Balance", "balance", 15),
    ("Currency", "currency", 10),
]

CATEGORY_COLUMNS = [
    ("Name", "name", 25),
    ("Type", "type", 10),
    ("Color", "color", 12),
    ("Icon", "icon", 15),
]

TRANSACTION_COLUMNS = [
    ("Type", "type", 12),
    ("Amount", "amount", 15),
    ("Description", "description", 30),
    ("Date", "date", 15),
    ("Account", "account_name", 25),
    ("Category", "category_name", 20),
    ("To Account", "to_account_name", 25),
]

# Body rows start right after the header row (Excel rows are 1-based)
HEADER_ROW_OFFSET = 2

ALLOWED_EXTENSIONS = (".xlsx", ".xls")
