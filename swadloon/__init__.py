"""Swadloon core package.

Modules:
- scanner: local chapter inventory
- record_store: record-store HTTP client (paginated fetch, multipart uploads)
- reconcile: local/remote chapter comparison
- dispatch: work queue and upload worker pool
- progress: queue-depth progress polling
- sync: per-manga runs
- catalog: AniList metadata client
- library: manga folder layout
- config: INI parsing and config object
"""
