# tests/stress/__init__.py
"""Stress tests for deferred-result.

These tests race producers, handler registration and coordinator timers
across 500 cells from a thread pool. They run with the rest of the suite;
every test here is marked ``stress`` so a quick run can skip them with
`pytest -m "not stress"`.
"""
