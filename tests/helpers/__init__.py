"""Test helper modules for content store testing.

This package provides utilities for unit and integration testing:
- git_test_utils: Build bare remotes, push external commits, inspect repositories
"""
