"""
Per-match player rating and the career running average.

A match rating starts at 5.0 and rewards each recorded action:
    goal 1.5, assist 1.0, tackle 0.5, defense 0.3
capped at 10.0. The career average is a cumulative mean over finished matches,
rounded to two decimals after each update.
"""

BASE_RATING = 5.0
MAX_RATING = 10.0
GOAL_POINTS = 1.5
ASSIST_POINTS = 1.0
TACKLE_POINTS = 0.5
DEFENSE_POINTS = 0.3


def match_rating(goals_scored=0, assists_made=0, tackles_made=0, defenses_made=0):
    rating = (
        BASE_RATING
        + GOAL_POINTS * (goals_scored or 0)
        + ASSIST_POINTS * (assists_made or 0)
        + TACKLE_POINTS * (tackles_made or 0)
        + DEFENSE_POINTS * (defenses_made or 0)
    )
    return min(MAX_RATING, rating)


def participation_rating(participant):
    return match_rating(
        participant.goals_scored,
        participant.assists_made,
        participant.tackles_made,
        participant.defenses_made,
    )


def updated_average(current_average, matches_played, new_rating):
    """Fold ``new_rating`` into an average.

    ``matches_played`` is the count AFTER the new match has been added, so the
    previous average covered ``matches_played - 1`` matches.
    """
    if matches_played <= 0:
        return round(float(new_rating), 2)
    previous_total = (current_average or 0.0) * (matches_played - 1)
    return round((previous_total + new_rating) / matches_played, 2)
