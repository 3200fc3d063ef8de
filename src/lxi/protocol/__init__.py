"""
The protocol package frames commands and replies on a conduit.

Commands are written as a payload followed by CR LF. A reply is either a line of ASCII text ending in LF,
or an IEEE-488.2 definite length block: '#', one digit n, n digits giving the length, then the payload
and a line terminator.
"""
