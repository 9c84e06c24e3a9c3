"""Packsmith core — archive building, transport, package records and orchestration."""
