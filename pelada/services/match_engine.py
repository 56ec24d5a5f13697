"""
Match lifecycle and statistics engine.

A match moves through ``waiting -> in_progress -> finished``; ``cancelled`` can
be reached from either open state. Teams are created lazily the first time the
roster is shuffled or the match is started. Events recorded while the match is
in progress feed the per-match counters on each participation, and finishing
the match folds those counters into the players' career statistics.

Every function here works on loaded model instances and leaves committing to
the caller, except ``create_match`` which owns its insert-and-retry loop.
Guards report failure through return values (``False`` or a list of reason
codes) and never write before deciding.
"""
import logging
import random

from sqlalchemy.exc import IntegrityError

from pelada.app import db
from pelada.models import FootballMatch, MatchEvent, MatchParticipant, MatchTeam
from pelada.services.join_codes import generate_code
from pelada.services.ratings import participation_rating, updated_average
from pelada.time_utils import utcnow_naive

logger = logging.getLogger(__name__)

STATUS_WAITING = 'waiting'
STATUS_IN_PROGRESS = 'in_progress'
STATUS_FINISHED = 'finished'
STATUS_CANCELLED = 'cancelled'
MATCH_STATUSES = (STATUS_WAITING, STATUS_IN_PROGRESS, STATUS_FINISHED, STATUS_CANCELLED)

PLAYERS_COUNT_OPTIONS = ('3vs3', '5vs5', '6vs6')
END_MODES = ('goals', 'time', 'both')
EVENT_TYPES = ('goal', 'assist', 'tackle', 'defense')

TEAM_A = 'team_a'
TEAM_B = 'team_b'
TEAM_COLORS = {TEAM_A: '#FF6B6B', TEAM_B: '#4ECDC4'}

_ROSTER_CAPACITY = {'3vs3': 6, '5vs5': 10, '6vs6': 12}
_PER_TEAM_CAPACITY = {'3vs3': 3, '5vs5': 5, '6vs6': 6}
_DEFAULT_PER_TEAM_CAPACITY = 5

EVENT_COUNTER_COLUMNS = {
    'goal': 'goals_scored',
    'assist': 'assists_made',
    'tackle': 'tackles_made',
    'defense': 'defenses_made',
}

MATCH_FULL = 'match_full'
MATCH_NOT_WAITING = 'match_not_waiting'
ALREADY_JOINED = 'already_joined'
NOT_A_PARTICIPANT = 'not_a_participant'
ADMIN_CANNOT_LEAVE = 'admin_cannot_leave'

REASON_MESSAGES = {
    MATCH_FULL: 'match is full',
    MATCH_NOT_WAITING: 'match is not waiting for players',
    ALREADY_JOINED: 'you are already in this match',
    NOT_A_PARTICIPANT: 'you are not in this match',
    ADMIN_CANNOT_LEAVE: 'the match admin cannot leave; cancel the match instead',
}


def describe_reasons(reasons):
    return ', '.join(REASON_MESSAGES.get(reason, reason) for reason in reasons)


# ── Capacity & eligibility ──────────────────────────────────────

def roster_capacity(players_count):
    # Unknown formats have no room at all.
    return _ROSTER_CAPACITY.get(players_count, 0)


def per_team_capacity(players_count):
    return _PER_TEAM_CAPACITY.get(players_count, _DEFAULT_PER_TEAM_CAPACITY)


def participant_count(match):
    return len(match.participants)


def is_full(match):
    return participant_count(match) >= roster_capacity(match.players_count)


def is_participant(match, player):
    return match.participation_for(player.id) is not None


def is_admin(match, player):
    return player is not None and match.admin_id == player.id


def join_blockers(match, player):
    """Every reason ``player`` cannot join ``match`` right now, in a stable order."""
    reasons = []
    if is_full(match):
        reasons.append(MATCH_FULL)
    if match.status != STATUS_WAITING:
        reasons.append(MATCH_NOT_WAITING)
    if is_participant(match, player):
        reasons.append(ALREADY_JOINED)
    return reasons


def can_join(match, player):
    return not join_blockers(match, player)


def join(match, player):
    """Add ``player`` to the roster. Returns ``(participant, reasons)``."""
    reasons = join_blockers(match, player)
    if reasons:
        logger.warning(
            'Player %s rejected from match %s: %s', player.id, match.id, ', '.join(reasons),
        )
        return None, reasons

    participant = MatchParticipant(match=match, player=player, joined_at=utcnow_naive())
    db.session.add(participant)
    logger.info(
        'Player %s joined match %s (%s/%s)',
        player.id, match.id, participant_count(match), roster_capacity(match.players_count),
    )
    return participant, []


def leave_blockers(match, player):
    participant = match.participation_for(player.id)
    if participant is None:
        return [NOT_A_PARTICIPANT]
    reasons = []
    if is_admin(match, player):
        reasons.append(ADMIN_CANNOT_LEAVE)
    if match.status != STATUS_WAITING:
        reasons.append(MATCH_NOT_WAITING)
    return reasons


def leave(match, player):
    """Drop ``player``'s participation, counters included. Returns the blocking reasons."""
    reasons = leave_blockers(match, player)
    if reasons:
        return reasons
    participant = match.participation_for(player.id)
    participant.team = None
    match.participants.remove(participant)
    db.session.delete(participant)
    logger.info('Player %s left match %s', player.id, match.id)
    return []


# ── Creation ────────────────────────────────────────────────────

def _code_taken(code):
    return db.session.query(FootballMatch.id).filter_by(code=code).first() is not None


def create_match(admin, max_attempts=5, **fields):
    """Insert a new waiting match administered by ``admin`` and commit it.

    The join code is checked for uniqueness before insert; if another request
    claims the same code in between, the unique index rejects the row and a
    fresh code is drawn, up to ``max_attempts`` times.
    Any other integrity failure is re-raised unchanged.
    """
    admin_id = admin.id
    for attempt in range(1, max(1, max_attempts) + 1):
        code = generate_code(_code_taken)
        match = FootballMatch(
            code=code,
            admin_id=admin_id,
            status=STATUS_WAITING,
            current_minute=0,
            is_paused=False,
            **fields,
        )
        db.session.add(match)
        try:
            db.session.commit()
        except IntegrityError:
            db.session.rollback()
            if not _code_taken(code):
                raise
            logger.warning('Join code %s collided on attempt %s; retrying', code, attempt)
            continue
        logger.info('Match %s created by player %s with code %s', match.id, admin_id, code)
        return match
    raise RuntimeError(f'Could not allocate a unique match code after {max_attempts} attempts')


# ── Teams ───────────────────────────────────────────────────────

def ensure_teams(match):
    """Create team_a and team_b once; later calls return the existing pair."""
    teams = []
    for team_name in (TEAM_A, TEAM_B):
        team = match.team_by_name(team_name)
        if team is None:
            team = MatchTeam(team_name=team_name, team_color=TEAM_COLORS[team_name], score=0)
            match.teams.append(team)
            db.session.add(team)
        teams.append(team)
    db.session.flush()
    return teams[0], teams[1]


def shuffle_teams(match, rng=None):
    """Randomly split the current roster between the two teams.

    Participants are permuted uniformly and dealt alternately, even positions
    to team_a and odd positions to team_b, so team sizes differ by at most one.
    Any earlier assignment and every per-match counter is wiped.
    """
    team_a, team_b = ensure_teams(match)
    rng = rng or random

    for participant in match.participants:
        if participant.team is not None:
            participant.team = None

    shuffled = list(match.participants)
    rng.shuffle(shuffled)
    for index, participant in enumerate(shuffled):
        participant.team = team_a if index % 2 == 0 else team_b
        participant.reset_counters()

    db.session.flush()
    logger.info(
        'Match %s teams shuffled: %s vs %s players',
        match.id, len(team_a.participants), len(team_b.participants),
    )
    return {TEAM_A: team_a, TEAM_B: team_b}


# ── State machine ───────────────────────────────────────────────

def start(match):
    if match.status != STATUS_WAITING:
        logger.warning('Match %s cannot start from %s', match.id, match.status)
        return False

    ensure_teams(match)
    match.status = STATUS_IN_PROGRESS
    match.started_at = utcnow_naive()
    match.current_minute = 0
    match.is_paused = False
    logger.info('Match %s started', match.id)
    return True


def toggle_pause(match):
    if match.status != STATUS_IN_PROGRESS:
        logger.warning('Match %s cannot pause/resume from %s', match.id, match.status)
        return False

    match.is_paused = not match.is_paused
    logger.info('Match %s %s', match.id, 'paused' if match.is_paused else 'resumed')
    return True


def cancel(match):
    if match.status not in (STATUS_WAITING, STATUS_IN_PROGRESS):
        logger.warning('Match %s cannot be cancelled from %s', match.id, match.status)
        return False

    match.status = STATUS_CANCELLED
    match.is_paused = False
    logger.info('Match %s cancelled', match.id)
    return True


def decide_winner(team_a, team_b):
    """Return the team with the strictly higher score, or None on a draw."""
    if team_a is None or team_b is None:
        return None
    if team_a.score > team_b.score:
        return team_a
    if team_b.score > team_a.score:
        return team_b
    return None


def _propagate_player_stats(team, is_winner):
    for participant in team.participants:
        player = participant.player
        player.goals = (player.goals or 0) + participant.goals_scored
        player.assists = (player.assists or 0) + participant.assists_made
        player.tackles = (player.tackles or 0) + participant.tackles_made
        player.matches = (player.matches or 0) + 1
        if is_winner:
            player.wins = (player.wins or 0) + 1

        rating = participation_rating(participant)
        player.average_rating = updated_average(player.average_rating, player.matches, rating)


def finish(match):
    """Close an in-progress match and fold its stats into every team-assigned player.

    Drawn matches leave ``winning_team_id`` empty but still count as a played
    match for everyone on either team. Only the status guard prevents a second
    propagation, so this must never run twice for the same match.
    """
    if match.status != STATUS_IN_PROGRESS:
        logger.warning('Match %s cannot finish from %s', match.id, match.status)
        return False

    team_a = match.team_by_name(TEAM_A)
    team_b = match.team_by_name(TEAM_B)
    winner = decide_winner(team_a, team_b)

    for team in (team_a, team_b):
        if team is not None:
            _propagate_player_stats(team, is_winner=team is winner)

    match.status = STATUS_FINISHED
    match.finished_at = utcnow_naive()
    match.is_paused = False
    match.winning_team = winner
    match.winning_team_id = winner.id if winner is not None else None
    logger.info(
        'Match %s finished %s-%s, winner %s',
        match.id,
        team_a.score if team_a else 0,
        team_b.score if team_b else 0,
        winner.team_name if winner else 'none (draw)',
    )
    return True


# ── Event ledger ────────────────────────────────────────────────

def add_event(match, player, event_type, minute=None, description=None):
    """Append an event for a current participant and update live counters.

    Only participants already on a team move their counters and, for goals,
    their team's score; events by team-less participants are kept scoreless.
    """
    if event_type not in EVENT_TYPES:
        raise ValueError(f'Unknown event type: {event_type}')
    participant = match.participation_for(player.id)
    if participant is None:
        raise ValueError(f'Player {player.id} is not in match {match.id}')

    team = participant.team
    event = MatchEvent(
        player=player,
        team=team,
        event_type=event_type,
        minute=match.current_minute if minute is None else minute,
        description=description,
    )
    match.events.append(event)
    db.session.add(event)

    if team is not None:
        column = EVENT_COUNTER_COLUMNS[event_type]
        setattr(participant, column, (getattr(participant, column) or 0) + 1)
        if event_type == 'goal':
            team.add_goal()

    db.session.flush()
    logger.info(
        'Match %s: %s by player %s at minute %s (team %s)',
        match.id, event_type, player.id, event.minute, team.team_name if team else 'none',
    )
    return event


def events_of_type(match, event_type=None):
    if not event_type:
        return list(match.events)
    return [event for event in match.events if event.event_type == event_type]
