"""Dispatch package for the multi-technician scheduling grid.

Modules:
- config: load and validate configuration (JSON or YAML)
- errors: exception hierarchy
- domain: value types, SQLAlchemy models, repositories and the schedule store contract
- services: grid geometry and span invariants
- engine: state store, drag/resize controllers, persistence reconciler and the grid facade
- io: CSV import/export
- validator: post-hoc checks and summaries of a day's entries
- cli: command-line interface entrypoints
"""

__all__ = [
    "config",
    "errors",
    "domain",
    "services",
    "engine",
    "io",
    "validator",
    "cli",
]
