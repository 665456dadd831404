"""Construction vertical: project task and dependency tracking.

Every tracker pattern working together in one domain:
- SQLAlchemy models with TimestampMixin
- Async repositories with project-scoped queries
- A service layer that commits before publishing events
- Post-commit subscribers for progress and billing
- Pure-function rules for imports and the dependency graph
- Dataclass configuration
"""
