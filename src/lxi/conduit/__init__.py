"""
The conduit package provides an abstraction of a bi-directional stream to a specified endpoint.
The concrete implementation is a TCP socket, read and written through two independent halves.

Resource discovery provides a means of discovering available instruments on the local network.
"""
