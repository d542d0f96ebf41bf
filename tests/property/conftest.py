# tests/property/conftest.py
"""Shared Hypothesis strategies for property-based tests.

Usage:
    from tests.property.conftest import result_values, error_values

    @given(value=result_values)
    def test_value_is_kept(value: object) -> None:
        ...
"""

# =============================================================================
# Hypothesis Settings
# =============================================================================
#
# For standardized @settings decorators, import from tests.property.settings:
#   from tests.property.settings import STANDARD_SETTINGS, STATE_MACHINE_SETTINGS
#
# Tiers: STATE_MACHINE (200), STANDARD (100), THREADED (30)
# =============================================================================

from hypothesis import strategies as st

# Anything a producer might hand over, including None and falsy values that a
# careless "is there a result?" check would mistake for pending
result_values = st.one_of(
    st.none(),
    st.booleans(),
    st.integers(),
    st.text(max_size=20),
    st.lists(st.integers(), max_size=5),
    st.dictionaries(st.text(max_size=5), st.integers(), max_size=3),
)

error_values = st.one_of(
    st.builds(RuntimeError, st.text(max_size=20)),
    st.builds(ValueError, st.text(max_size=20)),
    st.builds(TimeoutError, st.text(max_size=20)),
    # Error bodies that are not exceptions
    st.dictionaries(st.sampled_from(["status", "detail"]), st.integers(), min_size=1, max_size=2),
)
