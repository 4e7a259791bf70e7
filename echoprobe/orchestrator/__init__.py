"""Concurrent session orchestration."""
