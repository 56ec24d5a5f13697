from pelada.app import db
from pelada.time_utils import isoformat_or_none, utcnow_naive


class User(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    email = db.Column(db.String(255), unique=True, nullable=False)
    password_hash = db.Column(db.String(256), nullable=False)
    created_at = db.Column(db.DateTime, default=lambda: utcnow_naive())

    player = db.relationship(
        'Player', back_populates='user', uselist=False,
        cascade='all, delete-orphan',
    )

    def to_dict(self):
        return {
            'id': self.id, 'name': self.name, 'email': self.email,
            'created_at': isoformat_or_none(self.created_at),
        }


class Player(db.Model):
    """Career profile of a user; counters only change when a match is finished."""
    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('user.id'), unique=True, nullable=False)
    name = db.Column(db.String(255), nullable=False)
    nickname = db.Column(db.String(255), nullable=True)
    image = db.Column(db.String(500), nullable=True)
    goals = db.Column(db.Integer, default=0, nullable=False)
    assists = db.Column(db.Integer, default=0, nullable=False)
    tackles = db.Column(db.Integer, default=0, nullable=False)
    mvps = db.Column(db.Integer, default=0, nullable=False)
    wins = db.Column(db.Integer, default=0, nullable=False)
    matches = db.Column(db.Integer, default=0, nullable=False)
    average_rating = db.Column(db.Float, default=0.0, nullable=False)
    created_at = db.Column(db.DateTime, default=lambda: utcnow_naive())

    user = db.relationship('User', back_populates='player')

    @property
    def win_percentage(self):
        if not self.matches:
            return 0
        return round((self.wins or 0) / self.matches * 100, 2)

    @property
    def has_stats(self):
        return (self.matches or 0) > 0

    def to_dict(self):
        return {
            'id': self.id, 'user_id': self.user_id,
            'name': self.name, 'nickname': self.nickname, 'image': self.image,
            'goals': self.goals, 'assists': self.assists,
            'tackles': self.tackles, 'mvps': self.mvps,
            'wins': self.wins, 'matches': self.matches,
            'average_rating': round(self.average_rating or 0.0, 2),
            'win_percentage': self.win_percentage,
            'has_stats': self.has_stats,
        }


class FootballMatch(db.Model):
    """A pickup match: configuration, lifecycle state and its join code."""
    __tablename__ = 'football_match'

    id = db.Column(db.Integer, primary_key=True)
    code = db.Column(db.String(8), unique=True, nullable=False)
    admin_id = db.Column(db.Integer, db.ForeignKey('player.id'), nullable=False)
    match_date = db.Column(db.Date, nullable=False)
    match_time = db.Column(db.Time, nullable=False)
    location = db.Column(db.String(255), nullable=False)
    players_count = db.Column(db.String(10), nullable=False)  # 3vs3, 5vs5, 6vs6
    end_mode = db.Column(db.String(10), nullable=False)  # goals, time, both
    goal_limit = db.Column(db.Integer, nullable=True)
    time_limit = db.Column(db.Integer, nullable=True)  # minutes
    status = db.Column(db.String(20), default='waiting', nullable=False)
    # waiting -> in_progress -> finished; cancelled from either open state
    started_at = db.Column(db.DateTime, nullable=True)
    finished_at = db.Column(db.DateTime, nullable=True)
    current_minute = db.Column(db.Integer, default=0, nullable=False)
    is_paused = db.Column(db.Boolean, default=False, nullable=False)
    winning_team_id = db.Column(
        db.Integer,
        db.ForeignKey('match_team.id', use_alter=True, name='fk_football_match_winning_team'),
        nullable=True,
    )
    created_at = db.Column(db.DateTime, default=lambda: utcnow_naive())
    updated_at = db.Column(
        db.DateTime, default=lambda: utcnow_naive(), onupdate=lambda: utcnow_naive(),
    )

    __table_args__ = (
        db.Index('ix_football_match_status_date', 'status', 'match_date'),
    )

    admin = db.relationship('Player', foreign_keys=[admin_id], backref='administered_matches')
    participants = db.relationship(
        'MatchParticipant', back_populates='match',
        cascade='all, delete-orphan', order_by='MatchParticipant.id',
    )
    teams = db.relationship(
        'MatchTeam', back_populates='match', foreign_keys='MatchTeam.match_id',
        cascade='all, delete-orphan', order_by='MatchTeam.team_name',
    )
    events = db.relationship(
        'MatchEvent', back_populates='match',
        cascade='all, delete-orphan', order_by='MatchEvent.id',
    )
    winning_team = db.relationship(
        'MatchTeam', foreign_keys=[winning_team_id], post_update=True,
    )

    def team_by_name(self, team_name):
        return next((team for team in self.teams if team.team_name == team_name), None)

    def participation_for(self, player_id):
        return next((p for p in self.participants if p.player_id == player_id), None)

    def to_dict(self):
        return {
            'id': self.id, 'code': self.code, 'admin_id': self.admin_id,
            'match_date': isoformat_or_none(self.match_date),
            'match_time': self.match_time.strftime('%H:%M') if self.match_time else None,
            'location': self.location,
            'players_count': self.players_count, 'end_mode': self.end_mode,
            'goal_limit': self.goal_limit, 'time_limit': self.time_limit,
            'status': self.status,
            'started_at': isoformat_or_none(self.started_at),
            'finished_at': isoformat_or_none(self.finished_at),
            'current_minute': self.current_minute,
            'is_paused': self.is_paused,
            'winning_team_id': self.winning_team_id,
            'created_at': isoformat_or_none(self.created_at),
            'updated_at': isoformat_or_none(self.updated_at),
        }


class MatchTeam(db.Model):
    """One of the two sides of a match, holding the running score."""
    id = db.Column(db.Integer, primary_key=True)
    match_id = db.Column(db.Integer, db.ForeignKey('football_match.id'), nullable=False)
    team_name = db.Column(db.String(10), nullable=False)  # team_a, team_b
    team_color = db.Column(db.String(10), nullable=False)
    score = db.Column(db.Integer, default=0, nullable=False)

    __table_args__ = (
        db.UniqueConstraint('match_id', 'team_name', name='uq_match_team_match_name'),
    )

    match = db.relationship('FootballMatch', back_populates='teams', foreign_keys=[match_id])
    participants = db.relationship(
        'MatchParticipant', back_populates='team', order_by='MatchParticipant.id',
    )

    def add_goal(self):
        self.score = (self.score or 0) + 1

    def to_dict(self):
        return {
            'id': self.id, 'match_id': self.match_id,
            'team_name': self.team_name, 'team_color': self.team_color,
            'score': self.score,
        }


class MatchParticipant(db.Model):
    """Participation of a player in one match: team assignment and per-match counters."""
    id = db.Column(db.Integer, primary_key=True)
    match_id = db.Column(db.Integer, db.ForeignKey('football_match.id'), nullable=False)
    player_id = db.Column(db.Integer, db.ForeignKey('player.id'), nullable=False)
    team_id = db.Column(db.Integer, db.ForeignKey('match_team.id'), nullable=True)
    joined_at = db.Column(db.DateTime, default=lambda: utcnow_naive(), nullable=False)
    goals_scored = db.Column(db.Integer, default=0, nullable=False)
    assists_made = db.Column(db.Integer, default=0, nullable=False)
    tackles_made = db.Column(db.Integer, default=0, nullable=False)
    defenses_made = db.Column(db.Integer, default=0, nullable=False)

    __table_args__ = (
        db.UniqueConstraint('match_id', 'player_id', name='uq_match_participant_match_player'),
        db.Index('ix_match_participant_player', 'player_id'),
    )

    match = db.relationship('FootballMatch', back_populates='participants')
    team = db.relationship('MatchTeam', back_populates='participants')
    player = db.relationship('Player', backref='participations')

    def reset_counters(self):
        self.goals_scored = 0
        self.assists_made = 0
        self.tackles_made = 0
        self.defenses_made = 0

    def to_dict(self):
        return {
            'id': self.id, 'match_id': self.match_id,
            'player_id': self.player_id, 'team_id': self.team_id,
            'joined_at': isoformat_or_none(self.joined_at),
            'goals_scored': self.goals_scored,
            'assists_made': self.assists_made,
            'tackles_made': self.tackles_made,
            'defenses_made': self.defenses_made,
            'player': self.player.to_dict() if self.player else None,
        }


class MatchEvent(db.Model):
    """Append-only ledger entry recorded while a match is in progress."""
    id = db.Column(db.Integer, primary_key=True)
    match_id = db.Column(db.Integer, db.ForeignKey('football_match.id'), nullable=False)
    player_id = db.Column(db.Integer, db.ForeignKey('player.id'), nullable=False)
    team_id = db.Column(db.Integer, db.ForeignKey('match_team.id'), nullable=True)
    event_type = db.Column(db.String(20), nullable=False)  # goal, assist, tackle, defense
    minute = db.Column(db.Integer, nullable=False, default=0)
    description = db.Column(db.String(255), nullable=True)
    created_at = db.Column(db.DateTime, default=lambda: utcnow_naive())

    __table_args__ = (
        db.Index('ix_match_event_match_type', 'match_id', 'event_type'),
    )

    match = db.relationship('FootballMatch', back_populates='events')
    player = db.relationship('Player')
    team = db.relationship('MatchTeam')

    def to_dict(self):
        return {
            'id': self.id, 'match_id': self.match_id,
            'player_id': self.player_id, 'team_id': self.team_id,
            'event_type': self.event_type, 'minute': self.minute,
            'description': self.description,
            'created_at': isoformat_or_none(self.created_at),
            'player': self.player.to_dict() if self.player else None,
            'team': self.team.to_dict() if self.team else None,
        }
