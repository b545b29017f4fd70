"""
Buffer synchronization engine (entry points and HTTP surface).

- errors: SyncError taxonomy shared by every stage
- service: SyncService (open_or_reconcile_repo, sync_buffer, retry_push)
- routes: FastAPI router for the capture API

Import from the submodules directly; config.settings depends on
sync.errors, so this package does not import the service eagerly.
"""
