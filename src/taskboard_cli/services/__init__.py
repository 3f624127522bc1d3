"""Service layer for Taskboard CLI.

- validation_service: declarative field and variant validation
- task_service: rule pipelines for create, update, delete and complete
- dependency_graph: cycle detection and dependent lookups
- data_service: JSON import and export
- context_manager: composition root wiring everything together
"""
