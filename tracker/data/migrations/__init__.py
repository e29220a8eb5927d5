"""
Schema Migrations - Database Version Control

KEY CONCEPTS:
- **Migration**: A numbered, one-shot schema change with an apply and a revert
- **Ledger**: The `_migrations` table naming every unit already applied
- **Registry**: The explicit, ordered list of units this build ships
- **Runner**: Applies pending units in order, one transaction per unit
"""

from .migration_runner import Migration, MigrationLedger, MigrationRunner, validate_sequence

__all__ = ['Migration', 'MigrationLedger', 'MigrationRunner', 'validate_sequence']
