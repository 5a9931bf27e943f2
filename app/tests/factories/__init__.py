"""Factory functions for test data."""
