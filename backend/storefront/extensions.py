# Overview: Flask extension instances for database and migrations.

from flask_sqlalchemy import SQLAlchemy
from flask_migrate import Migrate

# One engine (and therefore one bounded connection pool) per application;
# services receive db.session instead of building their own connections.
db = SQLAlchemy()
migrate = Migrate()
