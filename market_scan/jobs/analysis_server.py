"""HTTP entrypoint that runs location analyses (Cloud Run friendly)."""

from __future__ import annotations

import logging
import os
from typing import Any, Dict, Optional

from flask import Flask, jsonify, request

from market_scan.core.config import get_settings
from market_scan.jobs.run_analysis import run_analysis
from market_scan.models import AnalysisRequest
from market_scan.vendors import gemini

# ---------- Logging ----------
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s - %(message)s",
)
logger = logging.getLogger(__name__)

# ---------- App ----------
app = Flask(__name__)
app.json.ensure_ascii = False

# ---------- Routes ----------


@app.get("/healthz")
def healthcheck() -> Any:
    """Lightweight health endpoint; reports which providers have credentials."""
    settings = get_settings()
    return (
        jsonify(
            {
                "status": "ok",
                "providers": {
                    "semas": bool(settings.semas_api_key),
                    "tmap": bool(settings.tmap_api_key),
                    "naver_local": bool(settings.naver_client_id and settings.naver_client_secret),
                    "advice": bool(settings.gemini_api_key),
                },
                "revision": os.getenv("K_REVISION", "unknown"),
            }
        ),
        200,
    )


@app.post("/analyze")
def analyze() -> Any:
    """
    Run a competitor analysis synchronously.
    Required JSON fields: centerLon, centerLat, radiusMeters, category
    Optional: addressHint (str), withAdvice (bool)
    """
    payload: Dict[str, Any] = request.get_json(silent=True) or {}

    required = ("centerLon", "centerLat", "radiusMeters", "category")
    missing = [f for f in required if payload.get(f) in (None, "")]
    if missing:
        return jsonify({"error": f"missing fields: {', '.join(missing)}"}), 400

    try:
        center_lon = float(payload["centerLon"])
        center_lat = float(payload["centerLat"])
    except (TypeError, ValueError):
        return jsonify({"error": "centerLon and centerLat must be numeric"}), 400

    radius_meters = _parse_radius(payload["radiusMeters"])
    if radius_meters is None:
        return jsonify({"error": "radiusMeters must be an integer"}), 400

    address_hint = payload.get("addressHint")
    try:
        analysis_request = AnalysisRequest(
            center_lon=center_lon,
            center_lat=center_lat,
            radius_meters=radius_meters,
            category=str(payload["category"]),
            address_hint=str(address_hint) if address_hint else None,
        )
    except ValueError as exc:
        return jsonify({"error": str(exc)}), 400

    settings = get_settings()
    report = run_analysis(analysis_request, settings=settings)
    body: Dict[str, Any] = {"data": report.to_dict()}

    if bool(payload.get("withAdvice", False)):
        try:
            body["advice"] = gemini.generate_advice(report, settings)
        except gemini.AdvisorError as exc:
            logger.warning("Advice generation failed: %s", exc)
            body["adviceError"] = str(exc)

    if report.degraded:
        logger.warning("Returning degraded report: no provider succeeded")
    return jsonify(body), 200


# ---------- Internals ----------


def _parse_radius(value: Any) -> Optional[int]:
    """Whole-number radius from JSON; ``None`` for booleans, fractions and non-finite values."""
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if value.is_integer() else None
    if isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError:
            return None
    return None


def main() -> None:
    """Bind on PORT when the platform injects it, otherwise WORKER_PORT."""
    env_port = os.getenv("PORT")
    logger.info("[BOOT] ENV PORT=%s", env_port)

    port = int(env_port or get_settings().worker_port)
    logger.info("[BOOT] Binding on 0.0.0.0:%d", port)
    app.run(host="0.0.0.0", port=port)


if __name__ == "__main__":
    main()
