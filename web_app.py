#!/usr/bin/env python3
"""
Reframe web service - chat, voice and session endpoints for the
three-stage reflection exercise.

Endpoints:
- POST /api/chat            model reply for one stage request ({rawText})
- POST /api/whisper         base64 audio -> {text}
- POST /api/tts             {text} -> audio/mpeg
- GET  /api/status          provider and voice availability
- POST /api/session/start   new server-side session
- GET  /api/session/export  session snapshot
- POST /api/session/import  replace a session from a snapshot
- POST /api/session/reset   clear a session, keeping its experience

Run:
    python3 web_app.py

Then POST to: http://localhost:5001/api/chat
"""

import secrets
import threading

from flask import Flask, Response, jsonify, request

from reframe.agents.chat_backend import LocalChatBackend
from reframe.config import get_settings
from reframe.errors import (
    ResponseShapeError,
    ServiceNotConfigured,
    SessionImportError,
    TransportError,
)
from reframe.schemas.chat import ChatRequest
from reframe.state import SessionState
from reframe.voice.speech_to_text import decode_audio, get_transcriber
from reframe.voice.text_to_speech import TextToSpeech

app = Flask(__name__)

settings = get_settings()

# Session state per session_id
sessions = {}
sessions_lock = threading.Lock()

# Created on first use so the app imports without provider credentials
chat_backend = None
transcriber = None


def get_chat_backend():
    global chat_backend
    if chat_backend is None:
        chat_backend = LocalChatBackend()
    return chat_backend


def get_speech_transcriber():
    global transcriber
    if transcriber is None:
        transcriber = get_transcriber(settings)
    return transcriber


def _get_session(session_id):
    with sessions_lock:
        return sessions.get(session_id)


def _config_error(e):
    return jsonify({'error': 'Server configuration error', 'message': str(e)}), 500


# ── Chat ────────────────────────────────────────────────────────

@app.route('/api/chat', methods=['POST'])
def chat():
    data = request.get_json(silent=True)

    try:
        chat_request = ChatRequest.from_payload(data)
    except ValueError as e:
        return jsonify({'error': 'Invalid request', 'message': str(e)}), 400

    if len(chat_request.experience) > settings.max_experience_chars:
        return jsonify({
            'error': 'Invalid request',
            'message': f'Experience must be at most {settings.max_experience_chars} characters',
        }), 400

    try:
        raw_text = get_chat_backend().complete(chat_request)
    except TransportError as e:
        print(f"  [Web] Chat error: {e}")
        return jsonify({'error': 'Failed to get response', 'message': str(e)}), e.status_code or 502
    except ResponseShapeError as e:
        print(f"  [Web] Chat error: {e}")
        return jsonify({'error': 'Failed to get response', 'message': str(e)}), 502

    return jsonify({'rawText': raw_text})


# ── Voice ───────────────────────────────────────────────────────

@app.route('/api/whisper', methods=['POST'])
def whisper():
    """Transcribe base64 audio (a JSON string, or {"audio": ...})."""
    data = request.get_json(silent=True)
    if isinstance(data, dict):
        data = data.get('audio')

    try:
        audio = decode_audio(data)
    except ValueError as e:
        return jsonify({'error': str(e)}), 400

    try:
        result = get_speech_transcriber().transcribe_bytes(audio)
    except ServiceNotConfigured as e:
        return _config_error(e)
    except TransportError as e:
        return jsonify({'error': 'Failed to transcribe audio', 'message': str(e)}), 500

    return jsonify({'text': result.text})


@app.route('/api/tts', methods=['POST'])
def tts():
    """Generate speech audio using ElevenLabs (returns MP3)."""
    data = request.get_json(silent=True) or {}
    text = data.get('text') if isinstance(data, dict) else None
    if not isinstance(text, str) or not text.strip():
        return jsonify({'error': 'Text is required'}), 400

    try:
        audio = TextToSpeech.from_settings(settings).generate_audio(text)
    except ServiceNotConfigured as e:
        return _config_error(e)
    except TransportError as e:
        return jsonify({'error': 'Failed to generate speech', 'message': str(e)}), e.status_code or 500

    return Response(audio, mimetype='audio/mpeg')


@app.route('/api/status', methods=['GET'])
def status():
    return jsonify({
        'chat': bool(settings.openai_api_key) or 'ollama' in settings.provider_priority,
        'whisper': settings.whisper_backend == 'local' or bool(settings.openai_api_key),
        'elevenlabs': bool(settings.eleven_labs_api_key),
        'sessions': len(sessions),
    })


# ── Sessions ────────────────────────────────────────────────────

@app.route('/api/session/start', methods=['POST'])
def start_session():
    data = request.get_json(silent=True) or {}
    experience = data.get('experience', '') if isinstance(data, dict) else ''
    if not isinstance(experience, str) or not experience.strip():
        return jsonify({'error': 'Experience is required'}), 400
    if len(experience.strip()) > settings.max_experience_chars:
        return jsonify({'error': f'Experience must be at most {settings.max_experience_chars} characters'}), 400

    session_id = secrets.token_hex(8)
    with sessions_lock:
        sessions[session_id] = SessionState(experience=experience.strip())

    return jsonify({'session_id': session_id, 'experience': experience.strip()})


@app.route('/api/session/export', methods=['GET'])
def export_session():
    state = _get_session(request.args.get('session_id'))
    if state is None:
        return jsonify({'error': 'Invalid session'}), 400
    return jsonify(state.export_snapshot())


@app.route('/api/session/import', methods=['POST'])
def import_session():
    """Load a snapshot into an existing session, or into a new one."""
    data = request.get_json(silent=True) or {}
    if not isinstance(data, dict):
        return jsonify({'error': 'Request body must be a JSON object'}), 400

    session_id = data.get('session_id')
    if session_id:
        state = _get_session(session_id)
        if state is None:
            return jsonify({'error': 'Invalid session'}), 400
    else:
        session_id = secrets.token_hex(8)
        state = SessionState()

    try:
        state.import_snapshot(data.get('snapshot'))
    except SessionImportError as e:
        return jsonify({'error': 'Invalid session file', 'message': str(e)}), 400

    with sessions_lock:
        sessions[session_id] = state

    return jsonify({'session_id': session_id, 'snapshot': state.export_snapshot()})


@app.route('/api/session/reset', methods=['POST'])
def reset_session():
    data = request.get_json(silent=True) or {}
    state = _get_session(data.get('session_id') if isinstance(data, dict) else None)
    if state is None:
        return jsonify({'error': 'Invalid session'}), 400

    state.reset()
    return jsonify({'reset': True, 'experience': state.experience})


if __name__ == '__main__':
    print("""
╔═══════════════════════════════════════════════════════════════╗
║     REFRAME - GUIDED REFLECTION SERVICE                       ║
╠═══════════════════════════════════════════════════════════════╣
║  Stage 1: Define the experience                               ║
║  Stage 2: Generate ideas                                      ║
║  Stage 3: Challenge biases                                    ║
╚═══════════════════════════════════════════════════════════════╝

Starting web server on http://localhost:5001

Press Ctrl+C to stop the server.
    """)

    app.run(debug=True, host='0.0.0.0', port=5001)
