from flask import Flask, jsonify
from flask_sqlalchemy import SQLAlchemy
from flask_bcrypt import Bcrypt
from flask_login import LoginManager
from flask_cors import CORS
from flask_migrate import Migrate
from flask_socketio import SocketIO
import click
from config import Config

db = SQLAlchemy()
bcrypt = Bcrypt()
login_manager = LoginManager()
migrate = Migrate()
dev_origins = [
    "http://localhost:5173",
    "http://127.0.0.1:5173",
    "http://localhost:3000",
    "http://127.0.0.1:3000",
]
socketio = SocketIO(async_mode=None)


def create_app(config_class=Config):
    flask_app = Flask(__name__)
    flask_app.config.from_object(config_class)

    allowed_origins = list(flask_app.config.get('CORS_ALLOWED_ORIGINS') or []) + dev_origins

    db.init_app(flask_app)
    bcrypt.init_app(flask_app)
    login_manager.init_app(flask_app)
    migrate.init_app(flask_app, db)
    CORS(flask_app, supports_credentials=True, origins=allowed_origins)

    socketio.init_app(flask_app, cors_allowed_origins=allowed_origins)

    from mtgstats.errors import register_error_handlers
    register_error_handlers(flask_app)

    from mtgstats.main import main
    flask_app.register_blueprint(main)

    from mtgstats.api.auth import auth
    flask_app.register_blueprint(auth, url_prefix='/api/auth')

    from mtgstats.api.users import users
    flask_app.register_blueprint(users, url_prefix='/api/users')

    from mtgstats.api.decks import decks
    flask_app.register_blueprint(decks, url_prefix='/api/decks')

    from mtgstats.api.games import games
    flask_app.register_blueprint(games, url_prefix='/api/games')

    from mtgstats.api.stats import stats
    flask_app.register_blueprint(stats, url_prefix='/api/stats')

    from mtgstats.api.transfer import transfer
    flask_app.register_blueprint(transfer, url_prefix='/api')

    from mtgstats.socketio_events import register_socketio_handlers
    register_socketio_handlers()

    from mtgstats.models import User

    @login_manager.user_loader
    def load_user(user_id):
        return db.session.get(User, int(user_id))

    @login_manager.unauthorized_handler
    def unauthorized():
        return jsonify({'error': 'Authentication required', 'category': 'unauthorized'}), 401

    @click.command('db-reset')
    def db_reset_command():
        """Drops, recreates, and seeds the database."""
        from mtgstats.models import Deck
        with flask_app.app_context():
            db.drop_all()
            db.create_all()

            admin = User(name='admin', is_admin=True)
            admin.set_password('password')
            db.session.add(admin)
            for name in ['player1', 'player2', 'player3', 'player4']:
                db.session.add(User(name=name))
            for name in ['Mono Red Aggro', 'Azorius Control']:
                db.session.add(Deck(name=name))

            db.session.commit()
            print('Database has been reset and seeded!')

    @click.command('hash-password')
    @click.argument('password')
    def hash_password_command(password):
        """Prints a bcrypt hash for PASSWORD, for seeding users by hand."""
        print(bcrypt.generate_password_hash(password).decode('utf-8'))

    @click.command('create-admin')
    @click.argument('name')
    @click.password_option()
    def create_admin_command(name, password):
        """Creates NAME as an admin, or promotes and re-keys an existing user."""
        with flask_app.app_context():
            user = User.query.filter_by(name=name).first()
            if user is None:
                user = User(name=name)
                db.session.add(user)
            user.is_admin = True
            user.set_password(password)
            db.session.commit()
            print(f'Admin {name} is ready.')

    flask_app.cli.add_command(db_reset_command)
    flask_app.cli.add_command(hash_password_command)
    flask_app.cli.add_command(create_admin_command)

    return flask_app
