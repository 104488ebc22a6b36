from datetime import timezone

from mtgstats import db, bcrypt
from flask_login import UserMixin
from mtgstats.services.games import clock
from mtgstats.services.games.stats import team_for_seat


def _cache_busted(url, updated_at):
    """Append ``t=<updated_at>`` so browsers refetch replaced images."""
    if not url:
        return ''
    sep = '&' if '?' in url else '?'
    stamp = int(updated_at.replace(tzinfo=timezone.utc).timestamp()) if updated_at else 0
    return f'{url}{sep}t={stamp}'


class User(UserMixin, db.Model):
    __tablename__ = 'user'
    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), unique=True, nullable=False, index=True)
    password_hash = db.Column(db.String(256), nullable=True)
    is_admin = db.Column(db.Boolean, default=False, nullable=False)
    created_at = db.Column(db.DateTime, default=clock.utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=clock.utcnow, onupdate=clock.utcnow, nullable=False)

    def set_password(self, password):
        if password:
            self.password_hash = bcrypt.generate_password_hash(password).decode('utf-8')
        else:
            self.password_hash = None

    def check_password(self, password):
        if not self.password_hash or not password:
            return False
        return bcrypt.check_password_hash(self.password_hash, password)

    def to_dict(self, viewer=None):
        data = {
            'id': self.id,
            'name': self.name,
            'created_at': clock.to_iso(self.created_at),
            'updated_at': clock.to_iso(self.updated_at),
        }
        # is_admin is only shown to admins and to the user themself
        if viewer is not None and getattr(viewer, 'is_authenticated', False):
            if viewer.is_admin or viewer.id == self.id:
                data['is_admin'] = self.is_admin
        return data


class Deck(db.Model):
    __tablename__ = 'deck'
    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(150), nullable=False)
    image_url = db.Column(db.String(500), nullable=False, default='')
    avatar_url = db.Column(db.String(500), nullable=False, default='')
    created_at = db.Column(db.DateTime, default=clock.utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=clock.utcnow, onupdate=clock.utcnow, nullable=False)

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'image_url': _cache_busted(self.image_url, self.updated_at),
            'avatar_url': _cache_busted(self.avatar_url, self.updated_at),
            'created_at': clock.to_iso(self.created_at),
            'updated_at': clock.to_iso(self.updated_at),
        }


class GamePlayer(db.Model):
    __tablename__ = 'game_player'
    id = db.Column(db.Integer, primary_key=True)
    game_id = db.Column(db.Integer, db.ForeignKey('game.id'), nullable=False, index=True)
    user_id = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=False, index=True)
    seat = db.Column(db.Integer, nullable=False, default=0)
    # Snapshot of the deck at play time, not a foreign key
    deck_id = db.Column(db.Integer, nullable=False)
    deck_name = db.Column(db.String(150), nullable=False, default='')
    game = db.relationship('Game', back_populates='players')
    user = db.relationship('User')

    @property
    def team(self):
        return team_for_seat(self.seat)

    def to_dict(self, viewer=None):
        return {
            'id': self.id,
            'seat': self.seat,
            'team': self.team,
            'user': self.user.to_dict(viewer) if self.user else None,
            'deck_id': self.deck_id,
            'deck_name': self.deck_name,
        }


class GameTurn(db.Model):
    __tablename__ = 'game_turn'
    id = db.Column(db.Integer, primary_key=True)
    game_id = db.Column(db.Integer, db.ForeignKey('game.id'), nullable=False, index=True)
    team_number = db.Column(db.Integer, nullable=False)
    duration_sec = db.Column(db.Integer, nullable=False, default=0)
    overtime_sec = db.Column(db.Integer, nullable=False, default=0)
    game = db.relationship('Game', back_populates='turns')

    def to_dict(self):
        return {
            'id': self.id,
            'team_number': self.team_number,
            'duration_sec': self.duration_sec,
            'overtime_sec': self.overtime_sec,
        }


class Game(db.Model):
    __tablename__ = 'game'
    __table_args__ = (db.UniqueConstraint('active_slot', name='uq_game_active_slot'),)
    id = db.Column(db.Integer, primary_key=True)
    start_time = db.Column(db.DateTime, nullable=False, default=clock.utcnow)
    end_time = db.Column(db.DateTime, nullable=True, index=True)
    # True while the game is active, NULL afterwards; the unique constraint
    # lets the database refuse a second active game.
    active_slot = db.Column(db.Boolean, nullable=True)
    turn_limit_seconds = db.Column(db.Integer, nullable=False, default=0)
    team_time_limit_seconds = db.Column(db.Integer, nullable=False, default=0)
    first_move_team = db.Column(db.Integer, nullable=False, default=1)
    team1_name = db.Column(db.String(100), nullable=False, default='')
    team2_name = db.Column(db.String(100), nullable=False, default='')
    current_turn_team = db.Column(db.Integer, nullable=False, default=1)
    current_turn_start = db.Column(db.DateTime, nullable=True)
    is_paused = db.Column(db.Boolean, nullable=False, default=False)
    pause_started_at = db.Column(db.DateTime, nullable=True)
    total_pause_duration_seconds = db.Column(db.Integer, nullable=False, default=0)
    winning_team = db.Column(db.Integer, nullable=True)
    is_technical_defeat = db.Column(db.Boolean, nullable=False, default=False)
    created_at = db.Column(db.DateTime, default=clock.utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=clock.utcnow, onupdate=clock.utcnow, nullable=False)

    players = db.relationship('GamePlayer', back_populates='game', order_by='GamePlayer.seat',
                              cascade='all, delete-orphan')
    turns = db.relationship('GameTurn', back_populates='game', order_by='GameTurn.id',
                            cascade='all, delete-orphan')

    @property
    def is_active(self):
        return self.end_time is None

    def to_dict(self, viewer=None):
        data = {
            'id': self.id,
            'start_time': clock.to_iso(self.start_time),
            'end_time': clock.to_iso(self.end_time),
            'turn_limit_seconds': self.turn_limit_seconds,
            'team_time_limit_seconds': self.team_time_limit_seconds,
            'first_move_team': self.first_move_team,
            'team1_name': self.team1_name,
            'team2_name': self.team2_name,
            'players': [p.to_dict(viewer) for p in self.players],
            'turns': [t.to_dict() for t in self.turns],
            'current_turn_team': self.current_turn_team,
            'current_turn_start': clock.to_iso(self.current_turn_start),
            'is_paused': self.is_paused,
            'pause_started_at': clock.to_iso(self.pause_started_at),
            'total_pause_duration_seconds': self.total_pause_duration_seconds,
            'winning_team': self.winning_team,
            'is_technical_defeat': self.is_technical_defeat,
            'created_at': clock.to_iso(self.created_at),
            'updated_at': clock.to_iso(self.updated_at),
        }
        if self.is_active:
            data['current_turn_elapsed_sec'] = clock.turn_elapsed_seconds(self)
        return data
