#!/usr/bin/env python3
"""
Kanban JSON API
---------------
A thin HTTP adapter over the write-through Storage façade. Every write
request is one checkout → mutate → save cycle on a single project, run
under the façade lock so overlapping requests never lose each other's writes.

Usage:
    python -m kanban.server --db ~/.local/share/kanban/kanban.db

API:
    GET  /health                                   → { status, projects }
    GET  /api/projects                             → { projects, count }
    POST /api/projects                             → body { name, stages? }
    GET  /api/projects/<id>                        → { project }
    GET  /api/archived                             → { projects, count }
    POST /api/projects/<id>/archive                → { archived }
    POST /api/archived/<id>/restore                → { restored }
    POST /api/projects/<id>/stages                 → body { name }
    POST /api/projects/<id>/stages/<name>/move     → body { direction }
    POST /api/projects/<id>/tickets                → body { stage, title, summary?, details? }
    PUT  /api/projects/<id>/tickets/<tid>          → body { title?, summary?, details? }
    POST /api/projects/<id>/tickets/<tid>/<action> → action: progress | regress | finalize

Write endpoints require an X-API-Key header matching KANBAN_API_SECRET.
"""

import argparse
import dataclasses
import hmac
import logging
import os
from functools import wraps
from typing import Optional

from flask import Flask, jsonify, request, current_app

from .config import Config, configure_logging
from .errors import (
    AlreadyExists,
    EngineFailure,
    KanbanError,
    NotFound,
    StageNotFound,
    TicketAlreadyAssigned,
    TicketNotFound,
)
from .schema import Direction, NewTicket, Project
from .storage import Storage

logger = logging.getLogger(__name__)

TICKET_ACTIONS = ("progress", "regress", "finalize")


# ── Auth ─────────────────────────────────────────────────────────────────────

def require_api_key(f):
    """Decorator: reject requests without a valid X-API-Key header."""
    @wraps(f)
    def decorated(*args, **kwargs):
        secret = current_app.config["API_SECRET"]
        if not secret:
            return jsonify({"error": "API secret not set"}), 503
        provided = request.headers.get("X-API-Key", "").strip()
        if not hmac.compare_digest(provided, secret):
            code = 401 if not provided else 403
            return jsonify({"error": "Unauthorized"}), code
        return f(*args, **kwargs)
    return decorated


# ── Helpers ──────────────────────────────────────────────────────────────────

def _storage() -> Storage:
    return current_app.config["STORAGE"]


def _body() -> dict:
    data = request.get_json(force=True, silent=True)
    return data if isinstance(data, dict) else {}


def _find(project_id: str) -> Project:
    project = _storage().find(project_id)
    if project is None:
        raise NotFound(project_id)
    return project


def _direction(value: str) -> Direction:
    try:
        return Direction[value.strip().upper()]
    except KeyError:
        raise ValueError(f"direction must be 'forward' or 'backward', got {value!r}") from None


# ── App factory ──────────────────────────────────────────────────────────────

def create_app(storage: Storage, config: Optional[Config] = None,
               api_secret: Optional[str] = None) -> Flask:
    """Build the Flask app serving ``storage``."""
    app = Flask(__name__)
    app.config["STORAGE"] = storage
    app.config["KANBAN"] = config or Config()
    app.config["API_SECRET"] = (
        api_secret if api_secret is not None else os.environ.get("KANBAN_API_SECRET", "")
    )

    @app.errorhandler(NotFound)
    @app.errorhandler(StageNotFound)
    @app.errorhandler(TicketNotFound)
    def handle_not_found(e):
        return jsonify({"error": str(e)}), 404

    @app.errorhandler(AlreadyExists)
    @app.errorhandler(TicketAlreadyAssigned)
    def handle_conflict(e):
        return jsonify({"error": str(e)}), 409

    @app.errorhandler(ValueError)
    def handle_bad_request(e):
        return jsonify({"error": str(e)}), 400

    @app.errorhandler(EngineFailure)
    def handle_engine_failure(e):
        logger.error(f"Storage failure serving {request.path}: {e}")
        return jsonify({"error": "storage failure"}), 500

    @app.errorhandler(KanbanError)
    def handle_kanban_error(e):
        logger.error(f"Kanban error serving {request.path}: {e}")
        return jsonify({"error": str(e)}), 500

    # ── Reads ────────────────────────────────────────────────────────────

    @app.route("/health")
    def health():
        return jsonify({"status": "ok", "projects": _storage().count()})

    @app.route("/api/projects", methods=["GET"])
    def api_projects():
        projects = _storage().list()
        return jsonify({"projects": [p.to_dict() for p in projects], "count": len(projects)})

    @app.route("/api/projects/<project_id>", methods=["GET"])
    def api_project(project_id):
        return jsonify({"project": _find(project_id).to_dict()})

    @app.route("/api/archived", methods=["GET"])
    def api_archived():
        projects = _storage().list_archived()
        return jsonify({"projects": [p.to_dict() for p in projects], "count": len(projects)})

    # ── Project lifecycle ────────────────────────────────────────────────

    @app.route("/api/projects", methods=["POST"])
    @require_api_key
    def api_create_project():
        data = _body()
        name = str(data.get("name", "")).strip()
        if not name:
            return jsonify({"error": "name is required"}), 400
        stages = data.get("stages")
        if stages is None:
            stages = current_app.config["KANBAN"].default_stages
        if not isinstance(stages, list):
            return jsonify({"error": "stages must be a list of names"}), 400
        project = Project.new(name, stages=[str(s) for s in stages])
        _storage().create(project)
        return jsonify({"project": project.to_dict(), "id": project.project_id}), 201

    @app.route("/api/projects/<project_id>/archive", methods=["POST"])
    @require_api_key
    def api_archive(project_id):
        _storage().archive(project_id)
        return jsonify({"archived": project_id})

    @app.route("/api/archived/<project_id>/restore", methods=["POST"])
    @require_api_key
    def api_restore(project_id):
        _storage().restore(project_id)
        return jsonify({"restored": project_id})

    # ── Stages ───────────────────────────────────────────────────────────

    @app.route("/api/projects/<project_id>/stages", methods=["POST"])
    @require_api_key
    def api_make_stage(project_id):
        name = str(_body().get("name", "")).strip()
        if not name:
            return jsonify({"error": "name is required"}), 400
        with _storage().checkout(project_id) as project:
            project.make_stage(name)
        return jsonify({"project": project.to_dict()}), 201

    @app.route("/api/projects/<project_id>/stages/<name>/move", methods=["POST"])
    @require_api_key
    def api_move_stage(project_id, name):
        direction = _direction(str(_body().get("direction", "")))
        with _storage().checkout(project_id) as project:
            if project.find_stage(name) is None:
                raise StageNotFound(name)
            moved = project.move_stage(name, direction)
        return jsonify({"moved": moved, "project": project.to_dict()})

    # ── Tickets ──────────────────────────────────────────────────────────

    @app.route("/api/projects/<project_id>/tickets", methods=["POST"])
    @require_api_key
    def api_assign_ticket(project_id):
        data = _body()
        title = str(data.get("title", "")).strip()
        if not title:
            return jsonify({"error": "title is required"}), 400
        with _storage().checkout(project_id) as project:
            ticket = project.assign_ticket(str(data.get("stage", "")), NewTicket(
                title=title,
                summary=str(data.get("summary", "")),
                details=str(data.get("details", "")),
            ))
        return jsonify({"ticket": ticket.to_dict()}), 201

    @app.route("/api/projects/<project_id>/tickets/<ticket_id>", methods=["PUT"])
    @require_api_key
    def api_update_ticket(project_id, ticket_id):
        data = _body()
        updates = {k: str(data[k]) for k in ("title", "summary", "details") if k in data}
        with _storage().checkout(project_id) as project:
            stage = project.stage_for_ticket(ticket_id)
            current = next((t for t in stage.tickets if t.ticket_id == ticket_id), None)
            if current is None:
                raise TicketNotFound(ticket_id)
            ticket = dataclasses.replace(current, **updates)
            project.update_ticket(ticket)
        return jsonify({"ticket": ticket.to_dict()})

    @app.route("/api/projects/<project_id>/tickets/<ticket_id>/<action>", methods=["POST"])
    @require_api_key
    def api_ticket_action(project_id, ticket_id, action):
        if action not in TICKET_ACTIONS:
            return jsonify({"error": f"action must be one of {', '.join(TICKET_ACTIONS)}"}), 400
        with _storage().checkout(project_id) as project:
            if not project.contains(ticket_id):
                raise TicketNotFound(ticket_id)
            handler = {
                "progress": project.progress_ticket,
                "regress": project.regress_ticket,
                "finalize": project.finalize_ticket,
            }[action]
            moved = handler(ticket_id)
        return jsonify({
            "moved": moved,
            "stage": project.stage_for_ticket(ticket_id).name,
            "project": project.to_dict(),
        })

    return app


# ── Main ─────────────────────────────────────────────────────────────────────

def main(argv=None):
    parser = argparse.ArgumentParser(description="Kanban JSON API server")
    parser.add_argument("--config", help="Path to kanban.yaml")
    parser.add_argument("--host", help="Bind address (use 0.0.0.0 to expose on network)")
    parser.add_argument("--port", type=int)
    parser.add_argument("--db", help="Path to kanban.db (overrides KANBAN_DB env var)")
    args = parser.parse_args(argv)

    config = Config.load(args.config)
    if args.db:
        config.db_path = args.db
        config.resolve_paths()
    configure_logging(config)

    host = args.host or config.server_host
    port = args.port or config.server_port

    with Storage.open(config.db_path, busy_timeout_ms=config.busy_timeout_ms) as storage:
        logger.info(f"Serving {storage.count()} project(s) from {config.db_path} on http://{host}:{port}")
        app = create_app(storage, config)
        app.run(host=host, port=port, debug=False, threaded=True)


if __name__ == "__main__":
    main()
