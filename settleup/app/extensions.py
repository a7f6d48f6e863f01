"""
extensions.py — Flask extension singletons.

Initialises SQLAlchemy, marshmallow and the activity dispatcher as
module-level objects so they can be imported anywhere without creating
circular dependencies.

Pattern:
    1. Create the extension object here (no app attached yet).
    2. Call init_app(app) inside the app factory in app/__init__.py.
    3. Import `db`, `ma` or `activity_dispatcher` from here wherever needed.

    from settleup.app.extensions import db, ma

Do not pass the app object to SQLAlchemy() or Marshmallow() at import time —
that would prevent running tests with a separate test app instance.
"""

from flask_marshmallow import Marshmallow
from flask_sqlalchemy import SQLAlchemy

from settleup.app.dispatcher import ActivityDispatcher

db = SQLAlchemy()

# Marshmallow instance: available for SQLAlchemy model serialization helpers.
#
# Schema inheritance rule:
#   All validation Schema classes (in app/schemas/) inherit from
#   marshmallow.Schema directly, NOT from ma.Schema. ma.Schema requires an
#   active Flask application context, and tests/unit runs without one.
ma = Marshmallow()

activity_dispatcher = ActivityDispatcher()
