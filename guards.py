# guards.py
"""
Request gates, checked in order before every request:

1. site gate  - the shared site password has been entered in this browser
2. admin gate - the signed-in user still exists (only for endpoints that change data)

API calls get a 401 JSON body; page requests are redirected to the page that
can clear the gate.
"""

from flask import current_app, jsonify, redirect, request, session, url_for

from read_state import SITE_AUTHENTICATED, KeyValueStore

SITE_GATE_EXEMPT = {'gate.site_auth', 'gate.admin_login', 'static'}
ADMIN_ENDPOINTS = {
    'api.create_transport', 'api.update_transport', 'api.delete_transport',
    'api.create_announcement', 'api.update_announcement', 'api.delete_announcement',
    'pages.admin_page',
}
SESSION_USER_KEY = 'user_id'


def is_api_request():
    return request.path.startswith('/api/')


def site_gate():
    if request.endpoint in SITE_GATE_EXEMPT:
        return None
    if KeyValueStore(session).get(SITE_AUTHENTICATED):
        return None
    if is_api_request():
        return jsonify({"error": "Site password required."}), 401
    return redirect(url_for('gate.site_auth'))


def admin_gate():
    if request.endpoint not in ADMIN_ENDPOINTS:
        return None
    user_id = session.get(SESSION_USER_KEY)
    if user_id and current_app.extensions['transport_dashboard']['identity'].get_identity(user_id):
        return None
    if user_id:
        # the account behind this cookie is gone
        session.pop(SESSION_USER_KEY, None)
    if is_api_request():
        return jsonify({"error": "Sign in as an admin to make changes."}), 401
    return redirect(url_for('gate.admin_login', redirect=request.path))


GUARDS = (site_gate, admin_gate)


def run_guards():
    for guard in GUARDS:
        response = guard()
        if response is not None:
            return response
    return None
