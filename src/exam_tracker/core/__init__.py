"""Core tracker logic.

Modules:
- models: entities and progress ranking rules
- documents: portable (camelCase) document codec and CSV export
- config_store: configured subject / method / exam-type lists
- class_defaults: class templates and default chapters
- backup_manager: snapshots, rotation, restore, full export/import
- migration: one-shot import of the legacy flat document
- tracker_service: the session object the CLI talks to
"""

__all__ = [
    "models",
    "documents",
    "config_store",
    "class_defaults",
    "backup_manager",
    "migration",
    "tracker_service",
]
