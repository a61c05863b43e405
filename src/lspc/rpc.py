"""JSON-RPC 2.0 request/response correlation.

The correlator writes framed messages for one server and classifies
everything it receives:

- id and no method: response to one of our requests, matched by id
- id and method: call from the server, answered synchronously
- no id: notification from the server

Requests are never awaited. ``call`` returns the request id right after
writing; the response is delivered later to the response callback along
with the InFlightRequest recorded at call time.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from typing import Any

from pydantic import ValidationError

from lspc.errors import LSPCError, ProtocolError, ResponseError
from lspc.logging import TRACE, VERBOSE, get_logger, wire_logger
from lspc.protocol.methods import (
    ErrorCode,
    ServerNotification,
    ServerRequest,
    lookup,
)
from lspc.transport.framing import encode_message

log = get_logger("rpc")
wire_log = wire_logger()

JSONRPC_VERSION = "2.0"


@dataclass
class InFlightRequest:
    """A request waiting for its response.

    view_id refers to the view the request was issued from; it is resolved
    through the editor when the response arrives.
    """

    id: int
    method: str
    context: Any = None
    view_id: int | None = None


ResponseCallback = Callable[[InFlightRequest, Any, ResponseError | None], None]
RequestHandler = Callable[[Any], Any]
NotificationHandler = Callable[[Any], None]


def _method_name(method: str | Enum) -> str:
    return method.value if isinstance(method, Enum) else method


class RpcCorrelator:
    """Tracks in-flight requests of one language server and dispatches inbound messages."""

    def __init__(
        self,
        name: str,
        write: Callable[[bytes], None],
        on_response: ResponseCallback,
    ) -> None:
        self.name = name
        self._write = write
        self._on_response = on_response
        self._next_id = 0
        self.in_flight: dict[int, InFlightRequest] = {}
        self._request_handlers: dict[ServerRequest, RequestHandler] = {}
        self._notification_handlers: dict[ServerNotification, NotificationHandler] = {}

    def on_request(self, method: ServerRequest, handler: RequestHandler) -> None:
        """Register the handler answering a server call.

        The handler receives the validated params model and returns the result.
        """
        self._request_handlers[method] = handler

    def on_notification(self, method: ServerNotification, handler: NotificationHandler) -> None:
        """Register the handler for a server notification."""
        self._notification_handlers[method] = handler

    # -- outbound --

    def _send_message(self, message: dict[str, Any]) -> None:
        message["jsonrpc"] = JSONRPC_VERSION
        data = encode_message(message)
        wire_log.log(TRACE, "-> %s: %s", self.name, data)
        self._write(data)

    def send(self, method: str | Enum, params: Any = None) -> None:
        """Send a notification."""
        message: dict[str, Any] = {"method": _method_name(method)}
        if params is not None:
            message["params"] = params
        self._send_message(message)

    def call(
        self,
        method: str | Enum,
        params: Any = None,
        context: Any = None,
        view_id: int | None = None,
    ) -> int:
        """Send a request and track it until its response arrives.

        Returns:
            The id assigned to the request.
        """
        request_id = self._next_id
        self._next_id += 1

        name = _method_name(method)
        self.in_flight[request_id] = InFlightRequest(
            id=request_id, method=name, context=context, view_id=view_id
        )

        message: dict[str, Any] = {"id": request_id, "method": name}
        if params is not None:
            message["params"] = params
        self._send_message(message)
        return request_id

    def _reply(self, request_id: Any, result: Any = None, error: dict[str, Any] | None = None) -> None:
        message: dict[str, Any] = {"id": request_id}
        if error is not None:
            message["error"] = error
        else:
            message["result"] = result
        self._send_message(message)

    # -- inbound --

    def on_inbound(self, message: dict[str, Any]) -> None:
        """Dispatch one decoded inbound message.

        Raises:
            ProtocolError: If a response matches no in-flight request.
        """
        if "id" in message:
            if "method" in message:
                self._handle_call(message)
            else:
                self._handle_response(message)
        else:
            self._handle_notification(message)

    def _handle_response(self, message: dict[str, Any]) -> None:
        request_id = message["id"]
        request = self.in_flight.pop(request_id, None) if isinstance(request_id, int) else None
        if request is None:
            raise ProtocolError(f"{self.name} sent a response to unknown request id {request_id!r}")

        error = message.get("error")
        if error is not None:
            if not isinstance(error, dict):
                error = {"message": str(error)}
            response_error = ResponseError(
                request.method,
                error.get("code", ErrorCode.UNKNOWN_ERROR_CODE),
                error.get("message", ""),
                error.get("data"),
            )
            log.warning("%s: %s", self.name, response_error)
            self._on_response(request, None, response_error)
            return

        self._on_response(request, message.get("result"), None)

    def _handle_call(self, message: dict[str, Any]) -> None:
        request_id = message["id"]
        method_name = message["method"]
        method = lookup(ServerRequest, method_name)
        handler = self._request_handlers.get(method) if method else None

        if handler is None:
            log.log(VERBOSE, "Unknown method call %s from %s", method_name, self.name)
            self._reply(
                request_id,
                error={
                    "code": int(ErrorCode.METHOD_NOT_FOUND),
                    "message": f"{method_name} not implemented",
                },
            )
            return

        assert method is not None
        try:
            params = method.parse_params(message.get("params"))
        except ValidationError as e:
            self._reply(
                request_id,
                error={"code": int(ErrorCode.INVALID_PARAMS), "message": str(e)},
            )
            return

        try:
            result = handler(params)
        except LSPCError as e:
            log.warning("Handling %s from %s failed: %s", method_name, self.name, e)
            self._reply(
                request_id,
                error={"code": int(ErrorCode.INTERNAL_ERROR), "message": str(e)},
            )
            return
        self._reply(request_id, result=result)

    def _handle_notification(self, message: dict[str, Any]) -> None:
        method_name = message.get("method")
        method = lookup(ServerNotification, method_name)
        handler = self._notification_handlers.get(method) if method else None
        if handler is None:
            log.log(VERBOSE, "Ignoring notification %s from %s", method_name, self.name)
            return

        assert method is not None
        try:
            params = method.parse_params(message.get("params"))
        except ValidationError as e:
            raise ProtocolError(f"Invalid {method_name} params from {self.name}: {e}") from e
        handler(params)
