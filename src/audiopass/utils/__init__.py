"""Shared utilities for audiopass."""
