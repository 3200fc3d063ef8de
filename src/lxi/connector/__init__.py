"""
The connector manages the lifecycle of a conduit to an endpoint: at most one conduit is open at a time,
and it is created by connect() and released by disconnect().

A connector can be thought of as a conduit factory that remembers what it made.
"""
