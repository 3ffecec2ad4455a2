from flask_migrate import Migrate
from flask_sqlalchemy import SQLAlchemy

from .services.notifications import Mailer

db = SQLAlchemy()
migrate = Migrate()
mailer = Mailer()
