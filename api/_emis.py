"""
EMIS portal logic: teacher roster lookup, per-employee detail fan-out and
flattening of the nested employee records.

Endpoints used (both POST, both need the portal's CSRF token + cookies):
  1. /emis/Portal/GetTeacherDetails              — roster for one EIIN (form body)
  2. /emis/services/HRM/Public/GetEmployeeInfo   — one employee (JSON body)
"""

import json
import re
from urllib.parse import urlencode

from api._helpers import EmisConfig, envelope, fetch_parallel, load_config, logger

LOOKUP_PATH = "/emis/Portal/GetTeacherDetails"
DETAIL_PATH = "/emis/services/HRM/Public/GetEmployeeInfo"

USER_AGENT = (
    "Mozilla/5.0 (Linux; Android 10; K) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/140.0.0.0 Mobile Safari/537.36"
)

EIIN_RE = re.compile(r"^\d+$", re.ASCII)
IMAGE_SRC_RE = re.compile(r"""src=['"]([^'"]+)['"]""")

MAX_FLATTEN_DEPTH = 32
FLATTEN_MODES = ("prefix", "hoist")
PLACEHOLDER = "N/A"


# ---------------------------------------------------------------------------
# Upstream headers
# ---------------------------------------------------------------------------
def _portal_headers(config: EmisConfig, csrf_token: str, content_type: str, referer: str) -> dict:
    return {
        "User-Agent": USER_AGENT,
        "Accept": "application/json, text/javascript, */*; q=0.01",
        "Accept-Encoding": "gzip, deflate",
        "Content-Type": content_type,
        "X-CSRF-TOKEN": csrf_token,
        "X-Requested-With": "XMLHttpRequest",
        "DNT": "1",
        "Origin": config.base_url,
        "Referer": f"{config.base_url}{referer}",
        "Accept-Language": "en-US,en;q=0.9,bn;q=0.8",
        "Cookie": (
            f"__RequestVerificationToken_L2VtaXM1={config.verification_token}; "
            f"CSRF-TOKEN={csrf_token}"
        ),
    }


def lookup_headers(config: EmisConfig) -> dict:
    return _portal_headers(
        config,
        config.lookup_csrf_token,
        "application/x-www-form-urlencoded; charset=UTF-8",
        "/EMIS/portal",
    )


def detail_headers(config: EmisConfig) -> dict:
    return _portal_headers(
        config,
        config.detail_csrf_token,
        "application/json",
        "/emis/HRM/ExistingEmployeeRegistration",
    )


# ---------------------------------------------------------------------------
# Parsers
# ---------------------------------------------------------------------------
def extract_image_url(html, base_url: str) -> str | None:
    """Pull the relative ``src`` out of the portal's <img> fragment and make it absolute."""
    if not html:
        return None
    match = IMAGE_SRC_RE.search(str(html))
    return f"{base_url}{match.group(1)}" if match else None


def format_date(value: str) -> str:
    """'2021-05-01T10:00:00' → '2021-05-01'. Anything with a 'T' is cut there."""
    if not value:
        return ""
    return value.split("T", 1)[0]


def parse_teacher(raw: dict, base_url: str) -> dict:
    """Normalise a roster record into the basic_info block."""
    return {
        "image": extract_image_url(raw.get("Image"), base_url),
        "designation": raw.get("DesignationNameBn") or PLACEHOLDER,
        "district": raw.get("DistrictName") or PLACEHOLDER,
        "subject": raw.get("SubjectName") or PLACEHOLDER,
        "name": raw.get("TeacherName") or PLACEHOLDER,
        "empId": raw.get("EmpId"),
    }


def build_teacher_index(records: list, base_url: str) -> tuple[list, dict]:
    """
    Returns (emp_ids, teachers_by_id). Records without an EmpId are skipped;
    a repeated EmpId is listed again and the index keeps the last record.
    """
    emp_ids = []
    teachers = {}
    for raw in records:
        if not isinstance(raw, dict):
            continue
        emp_id = raw.get("EmpId")
        if not emp_id:
            continue
        emp_ids.append(emp_id)
        teachers[emp_id] = parse_teacher(raw, base_url)
    return emp_ids, teachers


def flatten_details(record, mode: str = "prefix") -> dict:
    """
    Flatten a nested employee record into one level.

    mode="prefix": nested keys become ``parent_child``.
    mode="hoist":  nested keys go to the top level as-is; later keys win.

    String leaves containing a 'T' are treated as date-times and truncated
    (see ``format_date``). Mappings deeper than MAX_FLATTEN_DEPTH are kept as
    leaves instead of being walked.
    """
    if mode not in FLATTEN_MODES:
        raise ValueError(f"Unknown flatten mode: {mode!r}")

    flat = {}
    if not isinstance(record, dict):
        return flat

    def walk(obj: dict, prefix: str, depth: int):
        for key, value in obj.items():
            if mode == "prefix" and prefix:
                new_key = f"{prefix}_{key}"
            else:
                new_key = str(key)

            if isinstance(value, dict) and depth < MAX_FLATTEN_DEPTH:
                walk(value, new_key, depth + 1)
            elif isinstance(value, str) and "T" in value:
                flat[new_key] = format_date(value)
            else:
                flat[new_key] = value

    walk(record, "", 0)
    return flat


# ---------------------------------------------------------------------------
# Orchestration
# ---------------------------------------------------------------------------
def _fetch_roster(eiin: str, config: EmisConfig, session) -> list | dict:
    body = urlencode({"instituteId": "", "EIIN": eiin, "isTeacher": ""})
    results = fetch_parallel(
        [f"{config.base_url}{LOOKUP_PATH}"],
        lookup_headers(config),
        [body],
        session=session,
    )
    return results[0]


def _fetch_details(emp_ids: list, config: EmisConfig, session) -> list:
    urls = [f"{config.base_url}{DETAIL_PATH}"] * len(emp_ids)
    bodies = [json.dumps({"EmpText": emp_id}) for emp_id in emp_ids]
    return fetch_parallel(urls, detail_headers(config), bodies, session=session)


def handle_teacher_request(method: str, params: dict, session=None, config: EmisConfig | None = None):
    """
    Resolve a /api/teacher request. Returns (body, status); body is None for
    the CORS preflight.
    """
    config = config or load_config()
    method = (method or "").upper()

    if method == "OPTIONS":
        return None, 200

    if method != "GET":
        return envelope(config, False, error="Method not allowed"), 405

    eiin = params.get("eiin")
    if not eiin or not EIIN_RE.fullmatch(eiin):
        return envelope(config, False, error="Invalid EIIN number"), 400

    try:
        roster = _fetch_roster(eiin, config, session)
        if not isinstance(roster, list):
            logger.info("No roster for EIIN %s: %s", eiin, roster)
            return envelope(config, False, error="No teacher data found for this EIIN"), 404

        emp_ids, teachers = build_teacher_index(roster, config.base_url)
        if not emp_ids:
            return envelope(config, False, error="No valid employee IDs found"), 404

        logger.info("EIIN %s: fetching details for %d teachers", eiin, len(emp_ids))
        details = _fetch_details(emp_ids, config, session)

        results = []
        for emp_id, detail in zip(emp_ids, details):
            if emp_id not in teachers:
                continue
            results.append({
                "basic_info": teachers[emp_id],
                "details": flatten_details(detail, config.flatten_mode),
            })

        return envelope(
            config,
            True,
            eiin=eiin,
            total_teachers=len(results),
            result=results,
        ), 200

    except Exception as e:
        logger.exception("API Error for EIIN %s", eiin)
        return envelope(config, False, error=str(e) or "Internal server error"), 500
