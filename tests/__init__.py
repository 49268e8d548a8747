"""
Quarry Test Suite
=================

Test Organization
-----------------
- tests/unit/          : Fast unit tests with mocks and pure domain objects
- tests/integration/   : Services against a real database (SQLite file per
                         test; PostgreSQL via testcontainers when Docker is up)

Testing Philosophy
------------------
- Unit tests: Fast, isolated, test the accrual and energy rules
- Integration tests: Slower, test transactions, locks and constraints
- Use pytest markers to categorize and selectively run tests
- Follow AAA pattern: Arrange, Act, Assert
"""
