"""
Request/response bridge between a front end and the extraction backend.

Messages are plain dicts:

    {'type': 'request', 'action': str, 'request_id': str, 'payload': dict}
    {'type': 'response', 'request_id': str, 'response': dict}
    {'type': 'ping'}
    {'type': 'ready', 'version': str}

``RequestBridge`` is the front-end side; it owns the map of pending
requests. ``ExtractionBackend`` answers requests by running imports.
``LocalChannel`` connects the two inside one process over asyncio queues.
"""

import asyncio
import json
from typing import Any, Awaitable, Callable, Dict, List, Optional

from .config import ALL_SOURCES
from .logging_utils import get_logger
from .models import ImportResult


PROTOCOL_VERSION = '1.0.0'

ACTION_IMPORT_ALL = 'import-all'
ACTION_IMPORT_SOURCE = 'import-source'
ACTION_PING = 'ping'

DEFAULT_REQUEST_TIMEOUT = 300.0


class BridgeError(Exception):
    """Exception raised when a bridge request fails."""
    pass


class BridgeTimeoutError(BridgeError):
    """Exception raised when a bridge request gets no response in time."""
    pass


class ChannelEndpoint:
    """
    One side of a message channel.

    Messages go through JSON on the way, so only serializable values cross.
    """

    def __init__(self, inbox: asyncio.Queue, outbox: asyncio.Queue):
        self._inbox = inbox
        self._outbox = outbox

    async def send(self, message: Dict[str, Any]):
        await self._outbox.put(json.dumps(message))

    async def receive(self) -> Dict[str, Any]:
        return json.loads(await self._inbox.get())


class LocalChannel:
    """In-process channel with a ``client`` and a ``backend`` endpoint."""

    def __init__(self):
        to_backend = asyncio.Queue()
        to_client = asyncio.Queue()
        self.client = ChannelEndpoint(inbox=to_client, outbox=to_backend)
        self.backend = ChannelEndpoint(inbox=to_backend, outbox=to_client)


class RequestBridge:
    """
    Front-end side of the bridge.

    Each request gets an ID and a pending entry; the entry is removed when
    the matching response arrives or the request times out.
    """

    def __init__(self, endpoint: ChannelEndpoint, timeout: float = DEFAULT_REQUEST_TIMEOUT):
        """
        Initialize the bridge.

        Args:
            endpoint: Client endpoint of the channel
            timeout: Default request timeout in seconds
        """
        self.endpoint = endpoint
        self.timeout = timeout
        self.pending: Dict[str, asyncio.Future] = {}
        self.backend_version: Optional[str] = None
        self.logger = get_logger()
        self._counter = 0
        self._ready = asyncio.Event()
        self._reader: Optional[asyncio.Task] = None

    async def start(self):
        """Start reading messages from the backend."""
        if self._reader is None:
            self._reader = asyncio.ensure_future(self._read_loop())

    async def close(self):
        """Stop reading and fail every request still pending."""
        if self._reader is not None:
            self._reader.cancel()
            try:
                await self._reader
            except asyncio.CancelledError:
                pass
            self._reader = None

        for request_id, future in list(self.pending.items()):
            if not future.done():
                future.set_exception(BridgeError(f"Bridge closed before response to {request_id}"))
        self.pending.clear()

    async def __aenter__(self):
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    async def _read_loop(self):
        while True:
            message = await self.endpoint.receive()
            self.handle_message(message)

    def handle_message(self, message: Dict[str, Any]):
        """Resolve the pending request a response belongs to, or record a ready signal."""
        kind = message.get('type')

        if kind == 'ready':
            self.backend_version = message.get('version')
            self._ready.set()
            return

        if kind == 'response':
            request_id = message.get('request_id')
            future = self.pending.pop(request_id, None)
            if future is None:
                self.logger.debug(f"Response for unknown request {request_id} ignored")
                return
            if not future.done():
                future.set_result(message.get('response') or {})
            return

        self.logger.debug(f"Unexpected message type {kind!r} ignored")

    def _next_request_id(self) -> str:
        self._counter += 1
        return f"req-{self._counter}"

    async def request(self, action: str, payload: Optional[Dict[str, Any]] = None,
                      timeout: Optional[float] = None) -> Dict[str, Any]:
        """
        Send a request and wait for its response.

        Args:
            action: Action name
            payload: Action arguments
            timeout: Seconds to wait (bridge default if None)

        Returns:
            Response dict

        Raises:
            BridgeTimeoutError: If no response arrives in time
        """
        timeout = self.timeout if timeout is None else timeout
        request_id = self._next_request_id()
        future = asyncio.get_running_loop().create_future()
        self.pending[request_id] = future

        try:
            await self.endpoint.send({
                'type': 'request',
                'action': action,
                'request_id': request_id,
                'payload': payload or {},
            })
            return await asyncio.wait_for(future, timeout)
        except asyncio.TimeoutError:
            raise BridgeTimeoutError(f"Request {request_id} ({action}) timed out after {timeout:.0f}s")
        finally:
            self.pending.pop(request_id, None)

    async def ping(self, timeout: float = 2.0) -> bool:
        """
        Check whether the backend is available.

        Returns:
            True if the backend answered with a ready signal
        """
        self._ready.clear()
        await self.endpoint.send({'type': 'ping'})
        try:
            await asyncio.wait_for(self._ready.wait(), timeout)
        except asyncio.TimeoutError:
            return False
        return True

    async def import_all(self, sources: Optional[List[str]] = None,
                         timeout: Optional[float] = None) -> ImportResult:
        """
        Ask the backend to import sources.

        Raises:
            BridgeError: If the backend reports a failure
        """
        response = await self.request(ACTION_IMPORT_ALL, {'sources': sources}, timeout=timeout)
        if not response.get('success'):
            raise BridgeError(response.get('error') or 'Unknown error')
        return ImportResult.from_dict(response['results'])


ImportFunction = Callable[[List[str]], Awaitable[ImportResult]]


class ExtractionBackend:
    """
    Backend side of the bridge.

    Requests are handled concurrently so a ping is answered while an
    import is running.
    """

    def __init__(self, endpoint: ChannelEndpoint, import_sources: ImportFunction,
                 version: str = PROTOCOL_VERSION):
        """
        Initialize the backend.

        Args:
            endpoint: Backend endpoint of the channel
            import_sources: Coroutine function importing the given source names
            version: Version announced in ready signals
        """
        self.endpoint = endpoint
        self.import_sources = import_sources
        self.version = version
        self.logger = get_logger()
        self._tasks = set()

    async def announce(self):
        await self.endpoint.send({'type': 'ready', 'version': self.version})

    async def serve(self):
        """Announce readiness, then answer messages until cancelled."""
        await self.announce()
        try:
            while True:
                message = await self.endpoint.receive()
                kind = message.get('type')

                if kind == 'ping':
                    await self.announce()
                elif kind == 'request':
                    task = asyncio.ensure_future(self._answer(message))
                    self._tasks.add(task)
                    task.add_done_callback(self._tasks.discard)
                else:
                    self.logger.debug(f"Unexpected message type {kind!r} ignored")
        finally:
            for task in list(self._tasks):
                task.cancel()

    async def _answer(self, message: Dict[str, Any]):
        action = message.get('action')
        try:
            response = await self.handle_request(action, message.get('payload') or {})
        except Exception as e:
            self.logger.debug(f"Request {action} failed: {e}")
            response = {'success': False, 'error': str(e)}

        await self.endpoint.send({
            'type': 'response',
            'request_id': message.get('request_id'),
            'response': response,
        })

    async def handle_request(self, action: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        """
        Run one action.

        Returns:
            Response dict with ``success`` and either results or ``error``
        """
        if action == ACTION_PING:
            await self.announce()
            return {'success': True, 'version': self.version}

        if action == ACTION_IMPORT_ALL:
            sources = payload.get('sources') or list(ALL_SOURCES)
            result = await self.import_sources(sources)
            return {'success': True, 'results': result.to_dict()}

        if action == ACTION_IMPORT_SOURCE:
            source = payload.get('source')
            if source not in ALL_SOURCES:
                return {'success': False, 'error': f"Unknown source: {source}"}
            result = await self.import_sources([source])
            return {'success': True, 'result': result[source].to_dict()}

        return {'success': False, 'error': f"Unknown action: {action}"}
