# Kanban board: column/task ordering, load reconciliation, and persistence
#
# Components:
#   schema.py    - Data model (Task, Column, Priority, BoardSnapshot)
#   ordering.py  - Pure ordering engine (normalize, reorder, move)
#   migration.py - Legacy record and storage-layout reconciliation
#   board.py     - KanbanBoard facade (the only mutation entry point)
#   store.py     - JSON file and SQLite document persistence adapters
#   stats.py     - Dashboard counts and filtered task lists
#   config.py    - YAML/environment configuration
