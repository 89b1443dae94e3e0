"""GET /api/teacher?eiin=... — Teacher roster + employee details for one institution.

Looks up the EIIN's teachers on EMIS, fetches every teacher's employee record
in parallel and returns them flattened:

  {"ok": true, "developer": "...", "eiin": "...", "total_teachers": N,
   "result": [{"basic_info": {...}, "details": {...}}, ...]}
"""

from http.server import BaseHTTPRequestHandler

from api._emis import handle_teacher_request
from api._helpers import send_json, get_query_params


class handler(BaseHTTPRequestHandler):
    # HTTP client for upstream calls; None means the requests module
    http_session = None

    def _respond(self):
        body, status = handle_teacher_request(
            self.command, get_query_params(self), session=self.http_session
        )
        send_json(self, None if self.command == "HEAD" else body, status)

    def do_OPTIONS(self):
        """CORS preflight."""
        self._respond()

    def do_GET(self):
        self._respond()

    do_HEAD = do_POST = do_PUT = do_PATCH = do_DELETE = _respond
