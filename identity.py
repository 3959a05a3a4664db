# identity.py

import logging
from dataclasses import dataclass
from typing import Optional

from werkzeug.security import check_password_hash, generate_password_hash

IDENTITIES = 'identities'
PROFILES = 'users'


@dataclass
class Identity:
    id: str
    email: str


class IdentityProvider:
    """Email/password sign-in plus the lazily created application profile row."""

    def __init__(self, store):
        self.store = store

    def register(self, email, password) -> Identity:
        email = (email or '').strip().lower()
        if not email or not password:
            raise ValueError("Email and password are required.")
        row = self.store.insert(IDENTITIES, {'email': email, 'password_hash': generate_password_hash(password)})
        return Identity(id=row['id'], email=row['email'])

    def sign_in(self, email, password) -> Optional[Identity]:
        email = (email or '').strip().lower()
        if not email or not password:
            return None
        rows = self.store.select(IDENTITIES, where={'email': email})
        if not rows or not check_password_hash(rows[0]['password_hash'], password):
            logging.info(f"Failed sign-in for {email}")
            return None
        return Identity(id=rows[0]['id'], email=rows[0]['email'])

    def get_identity(self, user_id) -> Optional[Identity]:
        if not user_id:
            return None
        row = self.store.get(IDENTITIES, user_id)
        return Identity(id=row['id'], email=row['email']) if row else None

    def ensure_profile(self, identity: Identity, name=None, is_admin=False) -> dict:
        profile = self.store.get(PROFILES, identity.id)
        if profile:
            return profile
        logging.info(f"Creating profile for {identity.email}")
        return self.store.insert(PROFILES, {'id': identity.id, 'name': name or identity.email, 'email': identity.email,
                                            'is_admin': bool(is_admin)})


def user_payload(identity: Identity, profile: Optional[dict]) -> dict:
    profile = profile or {}
    return {"id": identity.id, "email": identity.email, "username": profile.get('name') or identity.email,
            "isAdmin": bool(profile.get('is_admin'))}
