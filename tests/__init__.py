"""Test suite for FormSync.

This package contains tests for:
- Path addressing, structural writes and issue diffing
- The JSON Schema adapter (encode, strict/loose decode, parse)
- The field tree and its observable cells
- The form engine (mutation, validation, task flushing)
- The background validation worker (coalescing, priority, cancellation)
- The submit lifecycle and focus-first-error policy
- Events and the form context helper
"""
