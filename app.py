# app.py

import hmac
import logging
import os
import uuid
from datetime import date, timedelta
from functools import wraps
from urllib.parse import urlparse

import click
from flask import Blueprint, Flask, current_app, jsonify, redirect, request, session, url_for
from flask_cors import CORS

from config import Config
from guards import SESSION_USER_KEY, run_guards
from identity import IdentityProvider, user_payload
from mappers import AnnouncementMapper, TransportMapper
from models import db, migrate
from read_state import SITE_AUTHENTICATED, KeyValueStore, ReadStateTracker, RowBackedMapping
from records import Announcement, Transport, ValidationError, is_iso_date, validate_announcement, validate_transport
from schedule import SERVICE_AREAS, filter_by_location, sort_by_pickup_time
from store import RowStore

logging.basicConfig(level=logging.INFO, format='%(asctime)s %(levelname)s:%(message)s')

# --- Constants ---
MAX_SCHEDULE_DAYS = 31
READER_KEY = 'reader_id'
READ_LEDGERS = 'read_ledgers'

gate = Blueprint('gate', __name__)
api = Blueprint('api', __name__, url_prefix='/api')
pages = Blueprint('pages', __name__)


# --- Decorator for Error Handling ---
def api_error_handler(f):
    @wraps(f)
    def decorated_function(*args, **kwargs):
        try: return f(*args, **kwargs)
        except Exception as e:
            logging.error(f"An error occurred in endpoint '{f.__name__}': {e}", exc_info=True)
            return jsonify({"error": "An unexpected server error occurred."}), 500
    return decorated_function


# --- Helper Functions ---
def services():
    return current_app.extensions['transport_dashboard']


def read_state():
    """The browser's ledger lives in a table row; the cookie only carries the row id."""
    reader_id = session.get(READER_KEY)
    if not reader_id:
        reader_id = session[READER_KEY] = str(uuid.uuid4())
        session.permanent = True
    return ReadStateTracker(KeyValueStore(RowBackedMapping(services()['store'], READ_LEDGERS, reader_id)))


def current_identity():
    return services()['identity'].get_identity(session.get(SESSION_USER_KEY))


def parse_day(value, default=None):
    """Returns an ISO date string, or None when the value is not YYYY-MM-DD."""
    if not value:
        return (default or date.today()).isoformat()
    return value if is_iso_date(value) else None


def is_safe_redirect(target):
    if not target or not target.startswith('/') or target.startswith('//'):
        return False
    parsed = urlparse(target)
    return not parsed.scheme and not parsed.netloc


def day_view(day, area='all'):
    transports = sort_by_pickup_time(filter_by_location(services()['transports'].fetch_by_date(day), area))
    return {"date": day, "location": area, "count": len(transports), "transports": [t.to_dict() for t in transports]}


# --- Site gate and admin login ---
@gate.route("/auth", methods=['GET', 'POST'])
@api_error_handler
def site_auth():
    kv = KeyValueStore(session)
    if request.method == 'GET': return jsonify({"authenticated": kv.get(SITE_AUTHENTICATED)})
    password = str((request.get_json(silent=True) or {}).get('password', ''))
    expected = current_app.config.get('SITE_PASSWORD') or ''
    if not expected or not hmac.compare_digest(password.encode('utf-8'), expected.encode('utf-8')):
        return jsonify({"error": "Invalid password"}), 401
    session.permanent = True
    kv.set(SITE_AUTHENTICATED, True)
    return jsonify({"message": "Access granted."})


@gate.route("/login", methods=['GET', 'POST'])
@api_error_handler
def admin_login():
    target = request.args.get('redirect', '/')
    if not is_safe_redirect(target): target = '/'
    if request.method == 'GET':
        if session.get(SESSION_USER_KEY): return redirect(url_for('pages.home'))
        return jsonify({"authenticated": False, "redirect": target})
    payload = request.get_json(silent=True) or {}
    email, password = payload.get('email'), payload.get('password')
    if not all([email, password]): return jsonify({"error": "Please enter both username and password"}), 400
    provider = services()['identity']
    identity = provider.sign_in(email, password)
    if not identity: return jsonify({"error": "Invalid username or password"}), 401
    profile = provider.ensure_profile(identity)
    session[SESSION_USER_KEY] = identity.id
    session.permanent = True
    logging.info(f"User {identity.email} signed in")
    return jsonify({"user": user_payload(identity, profile), "redirect": target})


@gate.route("/logout", methods=['POST'])
@api_error_handler
def admin_logout():
    session.pop(SESSION_USER_KEY, None)
    return jsonify({"message": "Signed out."})


# --- API Endpoints ---
@api.route("/me", methods=['GET'])
@api_error_handler
def me():
    identity = current_identity()
    if not identity: return jsonify({"user": None})
    profile = services()['store'].get('users', identity.id)
    return jsonify({"user": user_payload(identity, profile)})


@api.route("/transports", methods=['GET'])
@api_error_handler
def list_transports():
    day = parse_day(request.args.get('date'))
    if not day: return jsonify({"error": "Date must be in YYYY-MM-DD format."}), 400
    area = request.args.get('location', 'all').lower()
    if area not in SERVICE_AREAS: return jsonify({"error": f"Location must be one of: {', '.join(SERVICE_AREAS)}."}), 400
    return jsonify(day_view(day, area))


@api.route("/schedule/week", methods=['GET'])
@api_error_handler
def weekly_schedule():
    start = parse_day(request.args.get('start'))
    if not start: return jsonify({"error": "Start must be in YYYY-MM-DD format."}), 400
    try: days = int(request.args.get('days', 7))
    except ValueError: return jsonify({"error": "Days must be a number."}), 400
    if not 1 <= days <= MAX_SCHEDULE_DAYS: return jsonify({"error": f"Days must be between 1 and {MAX_SCHEDULE_DAYS}."}), 400
    week = services()['transports'].fetch_week(date.fromisoformat(start), days)
    return jsonify([{"date": d['date'], "transports": [t.to_dict() for t in d['transports']]} for d in week])


def _save_transport(payload, transport_id=None):
    transport = Transport.from_dict(payload)
    try: validate_transport(transport)
    except ValidationError as e: return jsonify({"error": str(e)}), 400
    mapper = services()['transports']
    if transport_id is None:
        created = mapper.create(transport)
        if not created: return jsonify({"error": "Failed to add transport."}), 500
        logging.info(f"Transport {created.id} added for {created.pickup.date}")
        return jsonify(created.to_dict()), 201
    updated = mapper.update(transport_id, transport)
    if not updated: return jsonify({"error": "Transport not found."}), 404
    return jsonify(updated.to_dict())


@api.route("/requests", methods=['POST'])
@api_error_handler
def request_transport():
    """Staff ride request: anyone past the site gate may submit one; it always starts as scheduled."""
    payload = request.get_json(silent=True) or {}
    payload['status'] = 'scheduled'
    return _save_transport(payload)


@api.route("/transports", methods=['POST'])
@api_error_handler
def create_transport():
    return _save_transport(request.get_json(silent=True) or {})


@api.route("/transports/<string:transport_id>", methods=['PUT'])
@api_error_handler
def update_transport(transport_id):
    return _save_transport(request.get_json(silent=True) or {}, transport_id=transport_id)


@api.route("/transports/<string:transport_id>", methods=['DELETE'])
@api_error_handler
def delete_transport(transport_id):
    if not services()['transports'].delete(transport_id): return jsonify({"error": "Transport not found."}), 404
    return jsonify({"message": f"Transport {transport_id} deleted."})


@api.route("/announcements", methods=['GET'])
@api_error_handler
def list_announcements():
    announcements = services()['announcements'].fetch_all()
    tracker = read_state()
    last_viewed = tracker.last_viewed()
    tracker.touch_last_viewed()
    return jsonify({
        "announcements": [{**a.to_dict(), "isNew": tracker.is_new(a)} for a in announcements],
        "newCount": tracker.count_new(announcements),
        "lastViewed": last_viewed,
    })


@api.route("/announcements/unread-count", methods=['GET'])
@api_error_handler
def unread_count():
    return jsonify({"count": read_state().count_new(services()['announcements'].fetch_all())})


@api.route("/announcements/read", methods=['POST'])
@api_error_handler
def mark_announcements_read():
    ids = (request.get_json(silent=True) or {}).get('ids')
    if not isinstance(ids, list): return jsonify({"error": "ids must be a list."}), 400
    tracker = read_state()
    tracker.mark_seen(str(i) for i in ids)
    return jsonify({"seen": sorted(tracker.get_seen_ids())})


@api.route("/announcements/<string:announcement_id>/read", methods=['POST'])
@api_error_handler
def mark_announcement_read(announcement_id):
    read_state().mark_seen([announcement_id])
    return jsonify({"message": "Marked as read."})


def _announcement_from_request():
    announcement = Announcement.from_dict(request.get_json(silent=True) or {})
    if announcement.date and not parse_day(announcement.date):
        raise ValidationError("Date must be in YYYY-MM-DD format.")
    return validate_announcement(announcement)


@api.route("/announcements", methods=['POST'])
@api_error_handler
def create_announcement():
    try: announcement = _announcement_from_request()
    except ValidationError as e: return jsonify({"error": str(e)}), 400
    created = services()['announcements'].create(announcement, author_id=session.get(SESSION_USER_KEY))
    if not created: return jsonify({"error": "Failed to add announcement."}), 500
    return jsonify(created.to_dict()), 201


@api.route("/announcements/<string:announcement_id>", methods=['PUT'])
@api_error_handler
def update_announcement(announcement_id):
    try: announcement = _announcement_from_request()
    except ValidationError as e: return jsonify({"error": str(e)}), 400
    updated = services()['announcements'].update(announcement_id, announcement)
    if not updated: return jsonify({"error": "Announcement not found."}), 404
    return jsonify(updated.to_dict())


@api.route("/announcements/<string:announcement_id>", methods=['DELETE'])
@api_error_handler
def delete_announcement(announcement_id):
    if not services()['announcements'].delete(announcement_id): return jsonify({"error": "Announcement not found."}), 404
    return jsonify({"message": f"Announcement {announcement_id} deleted."})


# --- Pages ---
@pages.route("/")
@api_error_handler
def home():
    identity = current_identity()
    view = day_view(parse_day(request.args.get('date')) or date.today().isoformat())
    view["newAnnouncements"] = read_state().count_new(services()['announcements'].fetch_all())
    view["user"] = identity.email if identity else None
    return jsonify(view)


@pages.route("/admin")
@api_error_handler
def admin_page():
    start = date.today()
    week = services()['transports'].fetch_week(start)
    return jsonify({
        "week": [{"date": d['date'], "count": len(d['transports'])} for d in week],
        "announcements": len(services()['announcements'].fetch_all()),
        "weekEnding": (start + timedelta(days=6)).isoformat(),
    })


# --- CLI ---
def register_commands(app):
    @app.cli.command('init-db')
    def init_db():
        """Create all tables (development only; use `flask db upgrade` elsewhere)."""
        db.create_all()
        click.echo("Tables created.")

    @app.cli.command('create-admin')
    @click.argument('email')
    @click.argument('password')
    @click.option('--name', default=None, help="Display name shown as announcement author.")
    def create_admin(email, password, name):
        provider = services()['identity']
        identity = provider.register(email, password)
        provider.ensure_profile(identity, name=name, is_admin=True)
        click.echo(f"Admin {identity.email} created.")


# --- App Initialization, Config, and Extensions ---
def create_app(config_object=Config):
    app = Flask(__name__)
    app.config.from_object(config_object)
    app.config['SQLALCHEMY_DATABASE_URI'] = app.config['STORE'].database_uri()
    CORS(app, origins=app.config['CORS_ORIGINS'], supports_credentials=True)
    db.init_app(app)
    migrate.init_app(app, db)
    store = RowStore(db.session, db.metadata)
    app.extensions['transport_dashboard'] = {
        "store": store,
        "transports": TransportMapper(store),
        "announcements": AnnouncementMapper(store),
        "identity": IdentityProvider(store),
    }
    app.before_request(run_guards)
    app.register_blueprint(gate)
    app.register_blueprint(api)
    app.register_blueprint(pages)
    register_commands(app)
    return app


if __name__ == "__main__":
    create_app().run(debug=os.environ.get('FLASK_DEBUG') == '1')
