# posledger Test Suite
#
# Service and CLI tests (pytest) against an in-memory SQLite database.
