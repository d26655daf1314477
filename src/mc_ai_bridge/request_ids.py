"""Request identifiers for outbound protocol frames."""

from uuid import uuid4


class RequestIdGenerator:
    """Produces random UUID4 request ids, unique among outstanding requests."""

    def __call__(self) -> str:
        return str(uuid4())


# Frames are sized assuming every request id has this length.
REQUEST_ID_LENGTH = 36
