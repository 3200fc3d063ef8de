import threading


class CommonEqualityMixin:
    """
    Value semantics for small immutable records such as endpoints, responses and events.
    Two instances are equal when they are of exactly the same type and their attributes are equal.
    Instances hash consistently with equality, so they can be used as dict keys and set members.

    Records that refer to one another in a cycle cannot be compared; a ValueError is raised
    rather than recursing without end.
    """
    _comparing = threading.local()

    def _value(self):
        return tuple(sorted(self.__dict__.items()))

    def __eq__(self, other):
        if type(other) is not type(self):
            return NotImplemented
        in_progress = CommonEqualityMixin._comparing.__dict__.setdefault('pairs', set())
        pair = (id(self), id(other))
        if pair in in_progress:
            raise ValueError("cyclic comparison of %s instances" % type(self).__name__)
        in_progress.add(pair)
        try:
            return self.__dict__ == other.__dict__
        finally:
            in_progress.discard(pair)

    def __ne__(self, other):
        equal = self.__eq__(other)
        return equal if equal is NotImplemented else not equal

    def __hash__(self):
        return hash((type(self), self._value()))
