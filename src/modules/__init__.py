"""
Feature modules for Quarry.

- mining: auto-mining sessions, reward rolling, accrual sweep
- energy: energy status, manual reconcile, potions
- shared: base service/repository and domain exceptions
"""
