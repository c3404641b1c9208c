"""
Practice management for a UK accountancy firm.

Subpackages:
- clients: client records, references, CSV import and onboarding
- people: people and their roles (parties) on clients
- services: recurring services and fees
- tasks: work items and task templates
- compliance: statutory filing deadlines
- companies_house: Companies House import and sync
- documents: stored client files
- letters: letter templates and generated letters
- tax: UK tax calculations
- api: REST routers

All state lives in the shared in-memory store (see ``store``).
"""
