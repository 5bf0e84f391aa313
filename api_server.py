#!/usr/bin/env python3
"""
Try-On Image Engine API Server
Thin HTTP surface over one ImageEngine: enhancement, colour analysis and
the utility transforms. Every endpoint takes an image reference (JSON
"image") or an uploaded file (multipart "image").
"""

import base64
import json
import logging
import os
from typing import Any, Dict, Tuple

from dotenv import load_dotenv

# Load environment variables first
load_dotenv()

from flask import Flask, g, request, jsonify
from flask_cors import CORS

# --- Centralized Logging Configuration ---
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)-25s - %(levelname)-8s - %(message)s',
    datefmt='%H:%M:%S'
)

from models.enhancement_config import EnhancementConfig
from models.errors import ColorAnalysisError, DecodeError, FilterError
from services.image_engine import ImageEngine

app = Flask(__name__)
CORS(app)  # Enable CORS for frontend communication

# Configuration
MAX_CONTENT_LENGTH = int(os.getenv("UPLOAD_MAX_SIZE_MB", "20")) * 1024 * 1024
app.config['MAX_CONTENT_LENGTH'] = MAX_CONTENT_LENGTH

# One engine for the whole process; disposed on shutdown by the caller
engine = ImageEngine()

logger = logging.getLogger(__name__)


class BadRequest(Exception):
    pass


def read_payload() -> Tuple[str, Dict[str, Any]]:
    """
    Returns (image_ref, options) from either a JSON body or a multipart form.
    Multipart uploads are turned into a data: URL; options come from the
    "options" form field as JSON.
    """
    if request.files.get('image') is not None:
        upload = request.files['image']
        data = upload.read()
        if not data:
            raise BadRequest('Uploaded image is empty')
        mime = upload.mimetype or 'application/octet-stream'
        image_ref = f"data:{mime};base64,{base64.b64encode(data).decode('utf-8')}"
        try:
            options = json.loads(request.form.get('options', '{}'))
        except json.JSONDecodeError as e:
            raise BadRequest(f'Invalid options JSON: {e}')
        if not isinstance(options, dict):
            raise BadRequest('options must be a JSON object')
        g.image_ref = image_ref
        return image_ref, options

    body = request.get_json(silent=True) or {}
    if not isinstance(body, dict):
        raise BadRequest('Request body must be a JSON object')
    image_ref = body.get('image')
    if not image_ref or not isinstance(image_ref, str):
        raise BadRequest('No image reference provided')
    g.image_ref = image_ref
    return image_ref, body


@app.errorhandler(BadRequest)
def handle_bad_request(e):
    return jsonify({'success': False, 'message': str(e)}), 400


@app.errorhandler(DecodeError)
def handle_decode_error(e):
    return jsonify({'success': False, 'message': f'Cannot read image: {e}'}), 422


@app.errorhandler(FilterError)
def handle_filter_error(e):
    return jsonify({'success': False, 'message': f'Invalid parameter: {e}'}), 400


@app.errorhandler(ColorAnalysisError)
def handle_color_analysis_error(e):
    return jsonify({'success': False, 'message': f'Palette unavailable: {e}'}), 422


@app.after_request
def release_inline_image(response):
    """
    Uploads and inline data: references are one-shot; drop them from the
    decode cache so a long-running server does not grow with every request.
    """
    image_ref = g.pop('image_ref', None)
    if image_ref and image_ref.startswith('data:'):
        engine.loader.invalidate(image_ref)
    return response


@app.route('/api/enhance', methods=['POST'])
def enhance():
    """Enhance one image; falls back to the original on failure."""
    image_ref, options = read_payload()
    # FilterError on a malformed config is answered with 400
    config = EnhancementConfig.from_dict(options.get('config', options))
    result = engine.enhance_with_result(image_ref, config)

    logger.info(f"Enhance: enhanced={result.enhanced} backend={result.backend}")
    return jsonify({
        'success': True,
        'enhanced': result.enhanced,
        'backend': result.backend,
        'skipped': result.skipped,
        'error': result.error,
        'image': result.image_ref,
    })


@app.route('/api/analyze-colors', methods=['POST'])
def analyze_colors():
    """Dominant palette plus complementary and analogous colours."""
    image_ref, options = read_payload()
    try:
        num_colors = int(options.get('numColors', options.get('num_colors', 5)))
    except (TypeError, ValueError):
        raise BadRequest('numColors must be an integer')
    palette = engine.analyze(image_ref, num_colors)
    return jsonify({'success': True, **palette.to_dict()})


@app.route('/api/upscale', methods=['POST'])
def upscale():
    image_ref, options = read_payload()
    try:
        factor = float(options.get('factor', 2))
    except (TypeError, ValueError):
        raise BadRequest('factor must be a number')
    return jsonify({'success': True, 'image': engine.upscale(image_ref, factor)})


@app.route('/api/resize', methods=['POST'])
def resize():
    image_ref, options = read_payload()
    try:
        width, height = int(options['width']), int(options['height'])
    except (KeyError, TypeError, ValueError):
        raise BadRequest('width and height are required integers')
    return jsonify({'success': True, 'image': engine.resize(image_ref, width, height)})


@app.route('/api/remove-background', methods=['POST'])
def remove_background():
    """Corner-colour keying; output is PNG with transparency."""
    image_ref, _ = read_payload()
    return jsonify({'success': True, 'image': engine.remove_background(image_ref)})


@app.route('/api/capabilities', methods=['GET'])
def capabilities():
    return jsonify(engine.capabilities())


@app.route('/api/health', methods=['GET'])
def health_check():
    """Health check endpoint."""
    return jsonify({
        'status': 'healthy',
        'message': 'Try-On Image Engine API is running',
        'cached_images': len(engine.loader),
    })


@app.errorhandler(413)
def too_large(e):
    """Handle file too large error."""
    return jsonify({'error': f'File too large. Maximum size is {MAX_CONTENT_LENGTH // (1024 * 1024)}MB.'}), 413


@app.errorhandler(500)
def internal_error(e):
    """Handle internal server error."""
    logger.error(f"Internal server error: {e}")
    return jsonify({'error': 'Internal server error'}), 500


if __name__ == '__main__':
    host = os.getenv("API_HOST", "0.0.0.0")
    port = int(os.getenv("API_PORT", "5000"))
    logger.info(f"Starting Try-On Image Engine API on {host}:{port}")
    try:
        app.run(host=host, port=port, threaded=True)
    finally:
        engine.dispose()
