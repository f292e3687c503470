"""
ReportTracker
Domain models package.

The shared SQLAlchemy handle lives here so every model module can do
``from reporttracker.models import db``.
"""

from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()
