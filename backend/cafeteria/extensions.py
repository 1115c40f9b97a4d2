# Overview: shared SQLAlchemy handle and the migration engine; bound to the app in create_app().

from flask_migrate import Migrate
from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()

# migrations/ lives next to the package; `flask db upgrade` from backend/
migrate = Migrate(directory="migrations")
