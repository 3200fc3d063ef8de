"""

Instrument Connections

- Conduit: abstraction of a bi-directional channel. Combines 2 streams for reading and writing,
  each with its own timeout.
- Connector: manages the lifecycle of a conduit to an endpoint. A connector holds at most one
  conduit. connect() fails if there is already one, disconnect() fails if there is none.
- Frame codec: writes commands (payload + CR LF) and reads replies. A reply is read by a decoder
  strategy; the default decoder tells text lines from IEEE-488.2 definite length blocks ('#').
- LxiDevice: a connector and a codec for one instrument, the API most callers use.

- resource discovery - watches the local network for instruments advertising a raw SCPI socket
  via mDNS, and posts ResourceAvailableEvent / ResourceUnavailableEvent.
- Emulator - a canned-response instrument for tests.


## Threading

Everything is synchronous. Socket operations block, bounded by the timeout of the stream half
being used. There are no background threads in the connector or the codec.

Sending a command and reading its reply must not be interleaved with another command on the same
device; callers sharing a device between threads lock around the pair.

disconnect() can be called from another thread. It shuts the socket down before closing it, so a thread
blocked reading or writing returns with an error rather than hanging.

Timeout overrides for a single call are scoped: the previous timeout is restored when the call
returns or raises.

"""

__version__ = '0.1.0'
