"""Regression tests for decision table behaviour.

Pins the dinner scenario end to end and the properties every table
must keep across changes:
- Dish decisions for known inputs
- Deterministic evaluation
- Definition round-trips without information loss
"""
