import asyncio
import logging
import threading
from time import perf_counter

from flask import Flask, g, jsonify, request
from flask_cors import CORS

from .config import get_settings
from .errors import (InsufficientParticipants, InvalidRadius, SpotFinderError, UnknownCategoryClass,
                     UnknownParticipant, VenueSourceUnavailable)
from .models import GeoCoordinate, Participant, SearchFilters
from .services import build_geocoder, build_orchestrator

logger = logging.getLogger(__name__)

BRIDGE_CALL_TIMEOUT_S = 10


def configure_logging(level=logging.INFO, log_file: str = None):
    handlers = [logging.StreamHandler()]
    if log_file:
        handlers.append(logging.FileHandler(log_file))
    logging.basicConfig(
        level=level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=handlers,
    )


class LoopThread:
    """Background asyncio loop that owns the orchestrator; Flask threads submit work to it"""

    def __init__(self):
        self.loop = asyncio.new_event_loop()
        self._thread = threading.Thread(target=self._run, name='spotfinder-loop', daemon=True)

    def _run(self):
        asyncio.set_event_loop(self.loop)
        self.loop.run_forever()

    def start(self):
        self._thread.start()
        return self

    def call(self, fn, *args, timeout: float = BRIDGE_CALL_TIMEOUT_S):
        """Run fn(*args) on the loop thread and return its result (or raise its exception)"""
        async def _invoke():
            return fn(*args)
        return asyncio.run_coroutine_threadsafe(_invoke(), self.loop).result(timeout)

    def run(self, coro, timeout: float = None):
        return asyncio.run_coroutine_threadsafe(coro, self.loop).result(timeout)

    def stop(self):
        self.loop.call_soon_threadsafe(self.loop.stop)
        self._thread.join(timeout=5)


def _json_body():
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else None


def _error(message: str, status: int):
    return jsonify({'success': False, 'error': message}), status


def _coordinate_from(data):
    try:
        return GeoCoordinate(float(data['lat']), float(data['lng']))
    except (KeyError, TypeError, ValueError):
        return None


def create_app(orchestrator=None, geocoder=None, loop_thread: LoopThread = None, settings=None) -> Flask:
    settings = settings or get_settings()
    orchestrator = orchestrator or build_orchestrator(settings)
    geocoder = geocoder or build_geocoder(settings)
    runner = loop_thread or LoopThread().start()

    app = Flask(__name__)
    CORS(app)  # Enable CORS for all routes
    app.config['ORCHESTRATOR'] = orchestrator
    app.config['LOOP_THREAD'] = runner

    # Per-request timing: record start time and log duration on completion
    @app.before_request
    def _start_timer():
        g._start_time = perf_counter()

    @app.after_request
    def _log_request_duration(response):
        start = getattr(g, '_start_time', None)
        if start is not None:
            duration_ms = (perf_counter() - start) * 1000.0
            response.headers['X-Process-Time-ms'] = f"{duration_ms:.1f}"
            logger.info(
                "request completed: method=%s path=%s status=%s duration_ms=%.1f",
                request.method,
                request.full_path if request.query_string else request.path,
                response.status_code,
                duration_ms,
            )
        return response

    def _session_response(status: int = 200):
        return jsonify({'success': True, 'data': orchestrator.snapshot.to_dict()}), status

    @app.route('/', methods=['GET'])
    def health_check():
        """Health check endpoint"""
        return jsonify({
            'message': 'SpotFinder API is running!',
            'endpoints': {
                'geocode': '/api/geocode',
                'session': '/api/session',
                'participants': '/api/participants',
                'radius': '/api/radius',
                'center': '/api/center',
                'filters': '/api/filters',
                'refresh': '/api/refresh',
                'config': '/api/config',
                'health': '/'
            },
            'status': 'healthy'
        })

    @app.route('/api/geocode', methods=['POST'])
    def geocode_address():
        """
        Address suggestions for the participant input
        Expected JSON: {"query": "10 Downing St, London"}
        """
        data = _json_body()
        if not data or not (data.get('query') or data.get('address')):
            return _error('query is required', 400)
        query = data.get('query') or data.get('address')
        try:
            limit = max(1, min(int(data.get('limit', 5)), 10))
        except (TypeError, ValueError):
            return _error('limit must be an integer', 400)
        try:
            results = geocoder.search(query, limit=limit)
        except VenueSourceUnavailable as e:
            logger.warning(f"Geocoding failed for '{query}': {e}")
            return _error('Geocoding service unavailable, try again', 503)
        return jsonify({'success': True, 'data': [r.to_dict() for r in results]})

    @app.route('/api/session', methods=['GET'])
    def get_session():
        return _session_response()

    @app.route('/api/participants', methods=['POST'])
    def add_participant():
        """
        Expected JSON: {"name": "Ana", "address": "...", "lat": 52.52, "lng": 13.40}
        """
        data = _json_body()
        if not data:
            return _error('JSON data is required', 400)
        coord = _coordinate_from(data)
        if coord is None:
            return _error('lat and lng must be valid coordinates', 400)
        participant = Participant(
            display_name=data.get('name') or '',
            location=coord,
            raw_address=data.get('address') or '',
        )
        runner.call(orchestrator.add_participant, participant)
        return jsonify({'success': True, 'data': participant.to_dict()}), 201

    @app.route('/api/participants/<participant_id>', methods=['DELETE'])
    def remove_participant(participant_id):
        try:
            runner.call(orchestrator.remove_participant, participant_id)
        except UnknownParticipant:
            return _error(f'Unknown participant {participant_id}', 404)
        return _session_response()

    @app.route('/api/radius', methods=['PUT'])
    def set_radius():
        data = _json_body()
        if not data or 'radius_m' not in data:
            return _error('radius_m is required', 400)
        try:
            radius = runner.call(orchestrator.set_radius, data['radius_m'])
        except InvalidRadius as e:
            return _error(str(e), 400)
        return jsonify({'success': True, 'data': {'radius_m': radius}})

    @app.route('/api/center', methods=['PUT'])
    def set_center():
        data = _json_body()
        coord = _coordinate_from(data or {})
        if coord is None:
            return _error('lat and lng must be valid coordinates', 400)
        try:
            area = runner.call(orchestrator.set_manual_center, coord)
        except InsufficientParticipants as e:
            return _error(str(e), 409)
        return jsonify({'success': True, 'data': area.to_dict()})

    @app.route('/api/filters', methods=['PUT'])
    def set_filters():
        data = _json_body()
        if data is None:
            return _error('JSON data is required', 400)
        current = orchestrator.session.filters
        if not isinstance(data.get('require_alcohol', False), bool):
            return _error('require_alcohol must be true or false', 400)
        try:
            requested = SearchFilters(
                category_class=data.get('category_class', current.category_class),
                require_alcohol=data.get('require_alcohol', current.require_alcohol),
                ranking_mode=data.get('ranking_mode', current.ranking_mode),
            )
        except ValueError:
            return _error('ranking_mode must be one of: distance, traffic_fairness', 400)
        try:
            applied = runner.call(orchestrator.set_filters, requested)
        except UnknownCategoryClass as e:
            return _error(str(e), 400)
        notice = None
        if applied.ranking_mode != requested.ranking_mode:
            notice = orchestrator.snapshot.notice or 'Traffic-based ranking is unavailable'
        return jsonify({'success': True, 'data': applied.to_dict(), 'notice': notice})

    @app.route('/api/refresh', methods=['POST'])
    def refresh():
        runner.call(orchestrator.refresh)
        return _session_response(202)

    @app.route('/api/config', methods=['GET'])
    def get_config():
        return jsonify({
            'success': True,
            'data': {
                'trafficRankingAvailable': orchestrator.traffic_ranking_available,
                'categoryClasses': sorted(orchestrator.pipeline.category_classes),
                'radius': {
                    'min_m': orchestrator.session.area_model.min_radius_m,
                    'max_m': orchestrator.session.area_model.max_radius_m,
                    'current_m': orchestrator.session.area_model.radius_meters,
                },
                'apiBaseUrl': request.host_url.rstrip('/')
            }
        })

    @app.errorhandler(SpotFinderError)
    def spotfinder_error(error):
        logger.warning(f"Unhandled SpotFinder error: {error}")
        return _error(str(error), 400)

    @app.errorhandler(404)
    def not_found(error):
        return jsonify({'error': 'Endpoint not found'}), 404

    @app.errorhandler(500)
    def internal_error(error):
        return jsonify({'error': 'Internal server error'}), 500

    return app
