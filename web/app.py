"""
JSON API for the FX bias dashboard.

Read endpoints:
  GET /api/data              - Collected data points (?assets=USD,EUR&indicators=...&max_age_hours=24)
  GET /api/scores            - Asset scores, strongest first (?assets=...)
  GET /api/scores/<asset>    - One asset's score with its explanation
  GET /api/rate-decisions    - Central-bank decision probabilities
  GET /api/health            - System health
  GET /api/schedule          - Task schedule status
  GET /api/sources           - Source health and adapter stats

Operator endpoints:
  POST /api/sources/<name>/enable|disable
  POST /api/schedule/<name>/enable|disable
  POST /api/tasks/<name>/trigger
  POST /api/cache/clear

Started via: python main.py web [--port 5000] [--host 0.0.0.0]
"""
import logging
from datetime import datetime, timezone

from flask import Flask, jsonify, request

from models.enums import Asset, Indicator
from monitor.manager import UnknownSourceError
from monitor.scheduler import TaskAlreadyRunningError, UnknownTaskError

logger = logging.getLogger("fxbias.web.app")


class _BadRequest(Exception):
    pass


def _csv_enum(name, enum_cls):
    """Parse a comma-separated query arg into enum members; None when absent."""
    raw = request.args.get(name)
    if not raw:
        return None
    values = []
    for part in raw.split(","):
        part = part.strip().upper()
        if not part:
            continue
        try:
            values.append(enum_cls(part))
        except ValueError:
            raise _BadRequest(f"Unknown {name} value: {part}") from None
    return values


def create_app(config: dict, engines: dict) -> Flask:
    """
    Factory function. Receives initialized components from main.py / wsgi.py.

    Args:
        config: Application config dict
        engines: dict with at least "monitor" (a BiasMonitor)
    """
    app = Flask(__name__)
    monitor = engines["monitor"]

    def _now():
        return datetime.now(timezone.utc).isoformat()

    @app.errorhandler(_BadRequest)
    def bad_request(e):
        return jsonify({"error": str(e)}), 400

    @app.errorhandler(UnknownSourceError)
    def unknown_source(e):
        return jsonify({"error": f"Unknown source: {e.args[0]}"}), 404

    @app.errorhandler(UnknownTaskError)
    def unknown_task(e):
        return jsonify({"error": f"Unknown task: {e.args[0]}"}), 404

    @app.errorhandler(TaskAlreadyRunningError)
    def task_running(e):
        return jsonify({"error": f"Task already running: {e.args[0]}"}), 409

    # ─── Read API ────────────────────────────────────────

    @app.route("/api/data")
    def api_data():
        assets = _csv_enum("assets", Asset)
        indicators = _csv_enum("indicators", Indicator)
        try:
            max_age = float(request.args.get("max_age_hours", 24))
        except ValueError:
            raise _BadRequest("max_age_hours must be a number") from None
        points = monitor.get_data(assets=assets, indicators=indicators, max_age_hours=max_age)
        return jsonify({
            "points": [p.to_dict() for p in points],
            "count": len(points),
            "timestamp": _now(),
        })

    @app.route("/api/scores")
    def api_scores():
        scores = monitor.get_scores(_csv_enum("assets", Asset))
        return jsonify({"scores": [s.to_dict() for s in scores], "count": len(scores), "timestamp": _now()})

    @app.route("/api/scores/<asset>")
    def api_score(asset):
        try:
            code = Asset(asset.upper())
        except ValueError:
            return jsonify({"error": f"Unknown asset: {asset}"}), 404
        scores = monitor.get_scores([code])
        if not scores:
            return jsonify({"error": f"No score yet for {code.value}"}), 404
        score = scores[0]
        body = score.to_dict()
        body["explanation"] = monitor.engine.explain(score)
        return jsonify(body)

    @app.route("/api/rate-decisions")
    def api_rate_decisions():
        estimates = monitor.get_rate_decisions(_csv_enum("assets", Asset))
        return jsonify({
            "estimates": [e.to_dict() for e in estimates],
            "summary": monitor.estimator.summarize(estimates),
            "timestamp": _now(),
        })

    @app.route("/api/health")
    def api_health():
        health = monitor.get_system_health()
        body = health.to_dict()
        body["cache"] = monitor.get_cache_stats()
        return jsonify(body)

    @app.route("/api/schedule")
    def api_schedule():
        return jsonify({"tasks": monitor.get_schedule_status(), "timestamp": _now()})

    @app.route("/api/sources")
    def api_sources():
        health = monitor.get_source_health()
        stats = monitor.manager.get_stats()
        return jsonify({
            "sources": {name: h.to_dict() for name, h in health.items()},
            "stats": stats,
        })

    # ─── Operator controls ───────────────────────────────

    @app.route("/api/sources/<name>/<action>", methods=["POST"])
    def api_source_toggle(name, action):
        if action not in ("enable", "disable"):
            return jsonify({"error": f"Unknown action: {action}"}), 404
        monitor.enable_source(name, action == "enable")
        return jsonify({"source": name, "enabled": action == "enable"})

    @app.route("/api/schedule/<name>/<action>", methods=["POST"])
    def api_schedule_toggle(name, action):
        if action not in ("enable", "disable"):
            return jsonify({"error": f"Unknown action: {action}"}), 404
        monitor.enable_schedule(name, action == "enable")
        return jsonify({"task": name, "enabled": action == "enable"})

    @app.route("/api/tasks/<name>/trigger", methods=["POST"])
    def api_trigger(name):
        result = monitor.trigger_task(name)
        logger.info(f"Task {name} triggered via API: success={result.success}")
        return jsonify(result.to_dict())

    @app.route("/api/cache/clear", methods=["POST"])
    def api_cache_clear():
        monitor.clear_cache()
        return jsonify({"cleared": True, "timestamp": _now()})

    return app
