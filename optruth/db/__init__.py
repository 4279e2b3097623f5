"""SQLAlchemy persistence for project records."""
