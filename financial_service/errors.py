import logging

from flask import Flask, jsonify

logger = logging.getLogger(__name__)


def problem(status:int, title:str, detail:str=None, type_:str="about:blank", **ext):
    payload = {"type": type_, "title": title, "status": status, "success": False}
    if detail:
        payload["detail"] = detail
        # the dashboard frontend reads `error`
        payload["error"] = detail
    payload.update(ext)
    return jsonify(payload), status, {"Content-Type": "application/problem+json"}

def _description(e):
    return getattr(e, "description", None) or str(e)

def register_error_handlers(app: Flask):
    @app.errorhandler(400)
    def bad_request(e): return problem(400, "Bad Request", _description(e))
    @app.errorhandler(401)
    def unauthorized(e): return problem(401, "Unauthorized", _description(e))
    @app.errorhandler(403)
    def forbidden(e): return problem(403, "Forbidden", _description(e))
    @app.errorhandler(404)
    def notfound(e): return problem(404, "Not Found", _description(e))
    @app.errorhandler(405)
    def not_allowed(e): return problem(405, "Method Not Allowed", _description(e))
    @app.errorhandler(409)
    def conflict(e): return problem(409, "Conflict", _description(e))
    @app.errorhandler(422)
    def unproc(e): return problem(422, "Unprocessable Entity", _description(e))
    @app.errorhandler(500)
    def server(e):
        original = getattr(e, "original_exception", None)
        if original is not None:
            logger.error("Unhandled error: %r", original, exc_info=original)
        return problem(500, "Internal Server Error", "Internal server error")
