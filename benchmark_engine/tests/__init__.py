"""Test suite for the benchmark analysis engine."""
