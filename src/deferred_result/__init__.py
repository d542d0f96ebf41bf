"""
deferred-result: a single-assignment result cell for asynchronous request processing.

Lets a request pipeline hand control back to its caller before a value
exists, and lets any later thread supply that value exactly once.
"""

__version__ = "0.1.0"
