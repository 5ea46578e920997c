"""
Gemba Issue Tracker
SQLAlchemy instance shared by all models.

Usage:
    from gemba.models import db
"""

from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()
