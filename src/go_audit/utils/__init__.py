"""Shared utilities for go_audit."""
