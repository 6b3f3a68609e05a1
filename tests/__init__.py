"""
casrest Test Suite

Test organization:
- unit/: Unit tests for individual modules, against an in-process CAS server
- property/: Property-based tests using Hypothesis
"""
