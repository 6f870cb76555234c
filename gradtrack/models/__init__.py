"""
GradTrack
SQLAlchemy extension instance shared by every model module.

Usage:
    from gradtrack.models import db
"""

from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()
