"""
Flask routes for the Speaking Coach backend.

Handles the coaching session lifecycle, audio frame and recognition pushes,
metrics/recovery/event polling, transcript text analysis, the speech token and
public config.
"""

from typing import Optional

import requests
from flask import Blueprint, request, jsonify

from services.azure_speech import get_speech_service
from utils.acoustic_features import AudioFrame
from utils.game_scoring import (
    DEFAULT_ENERGY_BANDWIDTH,
    calculate_composite_energy,
    calculate_energy_accuracy,
)
from utils.helpers import build_config_response
from utils.linguistic_features import RecognitionResult

# Create a Blueprint for API routes
api = Blueprint('api', __name__)

# Global coaching session (one per server, replaced by POST /session/start)
coaching_session = None  # type: Optional["CoachingSession"]


def _session_not_started():
    return jsonify({"error": "Coaching session not started"}), 404


# ============================================================================
# Session Routes
# ============================================================================

@api.route("/session/start", methods=["POST"])
def start_session():
    """
    Create a new coaching session, replacing any existing one.

    Request Body (optional):
        {
            "hesitationMarkers": ["um", "uh", ...],
            "capture": true,      # start the audio tick right away
            "listen": true        # start recognition right away
        }

    Returns:
        JSON: {"success": true, "capturing": bool, "listening": bool}
    """
    global coaching_session
    # Lazy import: defer numpy-heavy core until the first session
    from coaching_session import CoachingSession

    data = {}
    if request.data:
        if not request.is_json:
            return jsonify({"error": "Request must be JSON"}), 400
        data = request.get_json(silent=True) or {}
    if not isinstance(data, dict):
        return jsonify({"error": "Request body must be a JSON object"}), 400

    markers = data.get("hesitationMarkers")
    if markers is not None and (not isinstance(markers, list) or not all(isinstance(m, str) for m in markers)):
        return jsonify({"error": "hesitationMarkers must be an array of strings"}), 400

    try:
        if coaching_session:
            coaching_session.shutdown()
        coaching_session = CoachingSession(hesitation_markers=markers)
        coaching_session.start()
        capturing = coaching_session.start_capture() if data.get("capture") else False
        listening = coaching_session.start_listening() if data.get("listen") else False
        return jsonify({
            "success": True,
            "message": "Coaching session started",
            "capturing": capturing,
            "listening": listening,
        })
    except Exception as e:
        return jsonify({
            "error": "Failed to start coaching session",
            "details": str(e)
        }), 500


@api.route("/session/stop", methods=["POST"])
def stop_session():
    """Stop every driver and drop the session."""
    global coaching_session
    try:
        if coaching_session:
            coaching_session.shutdown()
            coaching_session = None
        return jsonify({"success": True, "message": "Coaching session stopped"})
    except Exception as e:
        return jsonify({
            "error": "Failed to stop coaching session",
            "details": str(e)
        }), 500


@api.route("/session/reset", methods=["POST"])
def reset_session():
    """Clear accumulated speech, voice history, baseline, recovery state and score."""
    if not coaching_session:
        return _session_not_started()
    try:
        coaching_session.reset()
        return jsonify({"success": True, "message": "Coaching session reset"})
    except Exception as e:
        return jsonify({"error": "Failed to reset coaching session", "details": str(e)}), 500


@api.route("/session/metrics", methods=["GET"])
def get_session_metrics():
    """
    Get the latest fused metrics plus psychology profile, resilience and status.

    Returns:
        JSON: {linguistic, acoustic, combined, recordedAt, psychology, baseline, resilience, status}
    """
    if not coaching_session:
        return _session_not_started()
    try:
        return jsonify(coaching_session.get_metrics_payload())
    except Exception as e:
        return jsonify({"error": "Failed to get metrics", "details": str(e)}), 500


@api.route("/session/recovery", methods=["GET"])
def get_session_recovery():
    """Recovery state, active intervention, last assessment, history and trends."""
    if not coaching_session:
        return _session_not_started()
    try:
        return jsonify(coaching_session.get_recovery_payload())
    except Exception as e:
        return jsonify({"error": "Failed to get recovery state", "details": str(e)}), 500


@api.route("/session/events", methods=["GET"])
def get_session_events():
    """Drain pending intervention and recommendation events."""
    if not coaching_session:
        return _session_not_started()
    return jsonify({"events": coaching_session.drain_events()})


@api.route("/session/text-analysis", methods=["GET"])
def get_text_analysis():
    """Word count, pace, fillers and readability of the accumulated transcript."""
    if not coaching_session:
        return _session_not_started()
    try:
        return jsonify(coaching_session.get_text_analysis())
    except Exception as e:
        return jsonify({"error": "Failed to analyze transcript", "details": str(e)}), 500


@api.route("/session/energy", methods=["GET"])
def get_energy_level():
    """
    Composite voice energy (0-100) of the latest fused metrics, scored against
    an optional target for the Energy Modulator game.

    Query: ?target=60&bandwidth=20
    """
    if not coaching_session:
        return _session_not_started()
    target = request.args.get("target", type=float)
    bandwidth = request.args.get("bandwidth", default=DEFAULT_ENERGY_BANDWIDTH, type=float)
    if bandwidth <= 0:
        return jsonify({"error": "bandwidth must be a positive number"}), 400
    acoustic = coaching_session.get_fused_metrics().acoustic
    energy = calculate_composite_energy(acoustic) if acoustic else None
    out = {"energy": energy, "target": target, "accuracy": None, "withinBandwidth": False}
    if energy is not None and target is not None:
        out["accuracy"] = calculate_energy_accuracy(energy, target, bandwidth)
        out["withinBandwidth"] = abs(energy - target) <= bandwidth
    return jsonify(out)


# ============================================================================
# Capture Routes (microphone analyser frames)
# ============================================================================

@api.route("/capture/start", methods=["POST"])
def start_capture():
    """
    Start the audio tick. Optional body {"retry": true} clears an earlier
    permission refusal before opening the frame source.
    """
    if not coaching_session:
        return _session_not_started()
    data = request.get_json(silent=True) if request.is_json else None
    retry = isinstance(data, dict) and data.get("retry") is True
    started = coaching_session.start_capture(retry=retry)
    status = coaching_session.get_status()
    return jsonify({
        "success": started,
        "capturing": status["capturing"],
        "captureError": status["captureError"],
    })


@api.route("/capture/stop", methods=["POST"])
def stop_capture():
    if not coaching_session:
        return _session_not_started()
    coaching_session.stop_capture()
    return jsonify({"success": True, "capturing": False})


@api.route("/capture/frame", methods=["POST"])
def push_capture_frame():
    """
    Receive one analyser frame from the client.
    Body: JSON {timeDomain: [...], frequencyDomain: [...], sampleRate, magnitudeMax?, encoding?}
    """
    if not coaching_session:
        return _session_not_started()
    if not request.is_json:
        return jsonify({"error": "Request must be JSON"}), 400
    try:
        frame = AudioFrame.from_payload(request.get_json(silent=True))
    except ValueError as e:
        return jsonify({"error": "Invalid audio frame", "details": str(e)}), 400
    try:
        if not coaching_session.push_frame(frame):
            return jsonify({"error": "Capture not started"}), 409
        return "", 204
    except Exception as e:
        return jsonify({"error": "Failed to process frame", "details": str(e)}), 500


@api.route("/capture/permission-denied", methods=["POST"])
def capture_permission_denied():
    """The client could not get microphone access."""
    if not coaching_session:
        return _session_not_started()
    coaching_session.report_permission_denied()
    return "", 204


# ============================================================================
# Listening Routes (speech recognition pushes)
# ============================================================================

@api.route("/listening/start", methods=["POST"])
def start_listening():
    if not coaching_session:
        return _session_not_started()
    started = coaching_session.start_listening()
    return jsonify({
        "success": started,
        "recognition": coaching_session.get_status()["recognition"],
    })


@api.route("/listening/stop", methods=["POST"])
def stop_listening():
    if not coaching_session:
        return _session_not_started()
    coaching_session.stop_listening()
    return jsonify({"success": True, "listening": False})


@api.route("/listening/result", methods=["POST"])
def push_listening_result():
    """
    Receive one recognition result.
    Body: JSON {transcript | text, isFinal?, confidence?}
    """
    if not coaching_session:
        return _session_not_started()
    if not request.is_json:
        return jsonify({"error": "Request must be JSON"}), 400
    try:
        result = RecognitionResult.from_payload(request.get_json(silent=True))
    except (TypeError, ValueError) as e:
        return jsonify({"error": "Invalid recognition result", "details": str(e)}), 400
    try:
        if not coaching_session.push_result(result):
            return jsonify({"error": "Listening not started"}), 409
        return "", 204
    except Exception as e:
        return jsonify({"error": "Failed to process result", "details": str(e)}), 500


@api.route("/listening/error", methods=["POST"])
def push_listening_error():
    """
    Receive a recognizer error code. Body: JSON {"error": "no-speech" | "network" | ...}
    Transient codes restart recognition; anything else stops listening.
    """
    if not coaching_session:
        return _session_not_started()
    if not request.is_json:
        return jsonify({"error": "Request must be JSON"}), 400
    data = request.get_json(silent=True) or {}
    if not isinstance(data, dict):
        return jsonify({"error": "Request body must be a JSON object"}), 400
    code = str(data.get("error") or "").strip()
    if not code:
        return jsonify({"error": "error code is required"}), 400
    transient = coaching_session.push_recognition_error(code)
    return jsonify({
        "transient": transient,
        "recognition": coaching_session.get_status()["recognition"],
    })


# ============================================================================
# Speech Service Routes
# ============================================================================

@api.route("/speech/token", methods=["GET"])
def get_speech_token():
    """
    Get Azure Speech Service access token.

    Returns:
        JSON: {
            "token": "Access token string",
            "region": "Azure region"
        }
    """
    try:
        token_data = get_speech_service().get_speech_token()
        return jsonify(token_data)
    except Exception as e:
        status_code = 504 if isinstance(e, requests.Timeout) else 502
        return jsonify({
            "error": "Failed to get speech token",
            "details": str(e)
        }), status_code


# ============================================================================
# Configuration Routes
# ============================================================================

@api.route("/config/all", methods=["GET"])
def get_all_config():
    """
    Get all public configuration in one endpoint.

    Returns:
        JSON: audio, speech, recovery and advisor settings
    """
    return jsonify(build_config_response())


def register_routes(app):
    """
    Register all routes with the Flask application.

    Args:
        app: Flask application instance
    """
    app.register_blueprint(api)
