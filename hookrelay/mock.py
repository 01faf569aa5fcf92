"""Mock local endpoint that records replayed webhooks and answers with scripted responses."""

import json
import asyncio
import logging
from collections import deque
from typing import Any, Dict, Iterator, List, Optional
from pathlib import Path
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from .utils import get_timestamp


class MockTarget:
    """Stand-in for the local endpoint webhooks are replayed against.

    Every request is recorded in arrival order (last ``MAX_RECORDED`` kept)
    and answered according to the spec.
    """

    MAX_DELAY_SECONDS = 30.0
    MAX_RECORDED = 100

    def __init__(self, spec: Optional[Dict[str, Any]] = None):
        """Initialize MockTarget with a response specification.

        Args:
            spec: Response specification dictionary
        """
        self.spec = spec or {}
        self.defaults = self.spec.get('defaults', {
            'status': 200,
            'delay': 0,
            'body': {'status': 'ok'}
        })
        self.routes = self.spec.get('routes', {})
        self.logger = logging.getLogger("hookrelay.mock")
        self.call_counts: Dict[str, int] = {}
        self.requests: deque = deque(maxlen=self.MAX_RECORDED)
        self._lock = asyncio.Lock()

    @classmethod
    def from_file(cls, spec_path: Path) -> 'MockTarget':
        """Load MockTarget configuration from a file.

        Args:
            spec_path: Path to JSON or YAML spec file

        Returns:
            MockTarget instance

        Raises:
            ValueError: If spec file is invalid
        """
        try:
            with open(spec_path, 'r', encoding='utf-8') as f:
                if spec_path.suffix in ['.yaml', '.yml']:
                    try:
                        import yaml
                    except ImportError:
                        raise ImportError(
                            "PyYAML required for YAML specs. Install with: pip install hookrelay[yaml]"
                        )
                    spec = yaml.safe_load(f)
                else:
                    spec = json.load(f)
        except ImportError:
            raise
        except json.JSONDecodeError as e:
            raise ValueError(f"Invalid JSON in spec file: {e}")
        except Exception as e:
            raise ValueError(f"Error reading spec file: {e}")

        if spec is None:
            spec = {}
        if not isinstance(spec, dict):
            raise ValueError("Spec file must contain a mapping")

        return cls(spec)

    def create_app(self) -> FastAPI:
        """Create and configure the FastAPI application.

        Returns:
            Configured FastAPI application
        """
        app = FastAPI(
            title="hookrelay-mock",
            description="Mock local endpoint for replayed webhooks"
        )

        @app.get("/__mock__/stats")
        async def mock_stats():
            async with self._lock:
                stats = {
                    'call_counts': dict(self.call_counts),
                    'routes': list(self.routes.keys()),
                    'total_calls': sum(self.call_counts.values())
                }
            return JSONResponse(stats)

        @app.get("/__mock__/requests")
        async def mock_requests():
            async with self._lock:
                recorded: List[Dict[str, Any]] = list(self.requests)
            return JSONResponse({'requests': recorded, 'count': len(recorded)})

        @app.post("/__mock__/reset")
        async def mock_reset():
            async with self._lock:
                self.call_counts.clear()
                self.requests.clear()
            return JSONResponse({'status': 'reset', 'message': 'Call counts and requests cleared'})

        @app.get("/__mock__/health")
        async def mock_health():
            return JSONResponse({
                'status': 'healthy',
                'routes_configured': len(self.routes)
            })

        @app.api_route("/{path:path}", methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS", "HEAD"])
        async def mock_handler(path: str, request: Request):
            """Record the request and answer with the configured response."""
            route_path = f"/{path}"
            method = request.method
            body_bytes = await request.body()

            route_key = f"{method} {route_path}"
            async with self._lock:
                self.call_counts[route_key] = self.call_counts.get(route_key, 0) + 1
                call_num = self.call_counts[route_key]
                self.requests.append(self._record(request, route_path, body_bytes))

            reply = self._resolve_response(route_path, method, call_num)
            if reply['delay'] > 0:
                await asyncio.sleep(reply['delay'])

            self.logger.info(f"{method} {route_path} -> {reply['status']} (call #{call_num})")
            return JSONResponse(content=reply['body'], status_code=reply['status'], headers=reply['headers'])

        return app

    def _record(self, request: Request, path: str, body_bytes: bytes) -> Dict[str, Any]:
        raw = body_bytes.decode('utf-8', errors='replace')
        try:
            parsed = json.loads(raw) if raw else None
        except json.JSONDecodeError:
            parsed = None

        return {
            'timestamp': get_timestamp(),
            'method': request.method,
            'path': path,
            'query': dict(request.query_params),
            'headers': dict(request.headers),
            'json': parsed,
            'raw': raw,
        }

    def _candidate_routes(self, path: str) -> Iterator[Dict[str, Any]]:
        """Yield route entries matching ``path``: exact first, then ``*`` prefixes, longest first."""
        exact = self.routes.get(path)
        if isinstance(exact, dict):
            yield exact

        prefixes = [pattern for pattern in self.routes if pattern.endswith('*')]
        for pattern in sorted(prefixes, key=len, reverse=True):
            entry = self.routes[pattern]
            if path.startswith(pattern[:-1]) and isinstance(entry, dict):
                yield entry

    def _resolve_response(self, path: str, method: str, call_num: int) -> Dict[str, Any]:
        """Work out status, body, headers and delay for the ``call_num``-th call.

        The first matching route that scripts ``method`` (or ``ANY``) wins;
        defaults fill whatever it leaves out. A ``sequence`` is indexed by call
        number and sticks at its last entry.
        """
        scripted: Dict[str, Any] = {}
        for entry in self._candidate_routes(path):
            scripted = entry.get(method, entry.get('ANY'))
            if scripted is not None:
                break
        else:
            scripted = {}

        reply = {
            'status': scripted.get('status', self.defaults.get('status', 200)),
            'body': scripted.get('body', self.defaults.get('body', {'status': 'ok'})),
            'headers': scripted.get('headers', {}),
            'delay': scripted.get('delay', self.defaults.get('delay', 0)),
        }

        sequence = scripted.get('sequence')
        if sequence:
            step = sequence[min(call_num, len(sequence)) - 1]
            reply.update({key: step[key] for key in ('status', 'body', 'headers') if key in step})

        reply['delay'] = min(reply['delay'], self.MAX_DELAY_SECONDS)
        return reply
