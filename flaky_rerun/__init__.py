"""Isolated test execution with automatic reruns of failing tests."""
