"""Shared helpers: error classification, retry orchestration, masking."""
