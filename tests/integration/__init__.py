"""Integration tests for the git-backed content store.

These tests drive the real git binary against local bare repositories that
stand in for the hosted remote. No network access is needed.

Test Coverage:
- Configure: clone, idempotent re-configure, remote changes
- Post lifecycle: create/update/rename/delete reaching the remote
- Sync protocol: stale pulls, rejected pushes, no-op publishes
- Concurrency: serialized edits within one project

Run only these tests with:
    pytest tests/integration -m integration
"""
