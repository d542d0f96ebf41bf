# tests/property/__init__.py
"""Property-based tests for deferred-result.

Property-based testing validates invariants that must hold for ALL inputs,
not just the specific examples we think of. For a single-assignment cell
that means any interleaving of setters, handler registration and
coordinator hooks.

Test categories:
- core/: DeferredResultStateMachine, a model of one cell's lifecycle, plus
  stateless properties over arbitrary values; test_cell_races.py races
  real threads per example
"""
