# models.py

from datetime import datetime, timezone
import uuid

from flask_sqlalchemy import SQLAlchemy
from flask_migrate import Migrate

db = SQLAlchemy()
migrate = Migrate()


def new_id():
    return str(uuid.uuid4())


def utcnow():
    return datetime.now(timezone.utc).replace(tzinfo=None)


# --- Database Models ---
# Column names follow the store-side convention; the nested application shape lives in records.py.
class TransportRow(db.Model):
    __tablename__ = 'transports'
    id = db.Column(db.String(36), primary_key=True, default=new_id)
    client_name = db.Column(db.String(120), nullable=False)
    client_phone = db.Column(db.String(40), nullable=False, default='')
    pickup_location = db.Column(db.String(255), nullable=False)
    pickup_time = db.Column(db.String(10), nullable=False, default='')
    pickup_date = db.Column(db.String(10), nullable=False, index=True)
    dropoff_location = db.Column(db.String(255), nullable=False, default='')
    dropoff_time = db.Column(db.String(10), nullable=False, default='')
    dropoff_date = db.Column(db.String(10))
    requested_by = db.Column(db.String(120))
    driver_id = db.Column(db.String(120), nullable=False)
    assistant_id = db.Column(db.String(120))
    client_count = db.Column(db.Integer, nullable=False, default=1)
    status = db.Column(db.String(20), nullable=False, default='scheduled')
    notes = db.Column(db.Text)
    vehicle = db.Column(db.String(120))
    car_seats = db.Column(db.Integer, nullable=False, default=0)


class AnnouncementRow(db.Model):
    __tablename__ = 'announcements'
    id = db.Column(db.String(36), primary_key=True, default=new_id)
    title = db.Column(db.String(200), nullable=False)
    content = db.Column(db.Text, nullable=False)
    date = db.Column(db.String(10), nullable=False)
    timestamp = db.Column(db.DateTime, nullable=False, default=utcnow, index=True)
    priority = db.Column(db.String(10), nullable=False, default='medium')
    author_id = db.Column(db.String(36), db.ForeignKey('users.id'))


class Profile(db.Model):
    __tablename__ = 'users'
    id = db.Column(db.String(36), primary_key=True)
    name = db.Column(db.String(120))
    email = db.Column(db.String(255))
    is_admin = db.Column(db.Boolean, nullable=False, default=False)


class IdentityRow(db.Model):
    __tablename__ = 'identities'
    id = db.Column(db.String(36), primary_key=True, default=new_id)
    email = db.Column(db.String(255), unique=True, nullable=False)
    password_hash = db.Column(db.String(255), nullable=False)


class ReadLedgerRow(db.Model):
    __tablename__ = 'read_ledgers'
    id = db.Column(db.String(36), primary_key=True, default=new_id)
    seen_announcements = db.Column(db.Text)
    last_announcement_view = db.Column(db.Text)
