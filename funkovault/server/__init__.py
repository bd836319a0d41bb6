from funkovault.server.codec import (
    decode_request,
    decode_response,
    encode_request,
    encode_response,
    read_frame,
)
from funkovault.server.connection import CollectionServer, ConnectionHandler, ConnectionState
from funkovault.server.dispatcher import RequestDispatcher

__all__ = [
    "CollectionServer",
    "ConnectionHandler",
    "ConnectionState",
    "RequestDispatcher",
    "decode_request",
    "decode_response",
    "encode_request",
    "encode_response",
    "read_frame",
]
