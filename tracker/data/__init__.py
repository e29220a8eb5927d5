# ============================================================================
# tracker/data/__init__.py
# Data Layer Package - Storage and Persistence
# ============================================================================
#
# MODULES IN THIS PACKAGE:
# - **db.py**: aiosqlite handle, explicit transactions, backups
# - **migrations/**: ledger, runner and the registered schema-change units
# - **schema.py**: hierarchy table metadata and cascade invariant checks
# - **models.py**: pydantic input/record models
# - **validation.py**: turns pydantic errors into ValidationFailure
# - **hierarchy_store.py**: per-entity create/list/get/update/delete
#
# DATA FLOW:
# Caller input -> validation -> store (parent pre-check) -> SQLite (FK backstop)
#
# ============================================================================
