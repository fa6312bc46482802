"""Logging and metrics for Gated Calc."""
