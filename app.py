import logging

from dotenv import load_dotenv
from flask import Flask, current_app, jsonify, request

from api._emis import handle_teacher_request
from api._helpers import CORS_HEADERS

load_dotenv()

logging.basicConfig(level=logging.INFO, format="%(asctime)s %(name)s %(levelname)s %(message)s")

app = Flask(__name__)
app.json.ensure_ascii = False
# Upstream HTTP client; None means the requests module. Tests swap in a fake.
app.config.setdefault("HTTP_SESSION", None)


# ---------------------------------------------------------------------------
# Local dev mirror of the Vercel function in api/teacher.py
# ---------------------------------------------------------------------------
@app.route("/api/teacher", methods=["GET", "OPTIONS", "POST", "PUT", "PATCH", "DELETE"])
def api_teacher():
    """Teacher roster + employee details for ?eiin=..."""
    body, status = handle_teacher_request(
        request.method,
        request.args.to_dict(),
        session=current_app.config.get("HTTP_SESSION"),
    )
    if body is None:
        return "", status, CORS_HEADERS
    return jsonify(body), status, CORS_HEADERS


if __name__ == "__main__":
    app.run(host="localhost", port=5050, debug=True)
