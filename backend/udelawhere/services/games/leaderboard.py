from typing import List

from sqlalchemy.exc import SQLAlchemyError

from udelawhere import db
from udelawhere.models import LeaderboardEntry, utcnow
from .errors import LeaderboardError

LEADERBOARD_SIZE = 10


class LeaderboardStore:
    """Best-score-per-username leaderboard backed by the ``leaderboard`` table.

    Every write is committed or rolled back before returning, and database
    failures surface as ``LeaderboardError`` so callers can degrade instead of
    crashing a game in progress.
    """

    def submit_score(self, username: str, score: int) -> bool:
        """Record ``score`` for ``username`` if it beats their best.

        Returns True when a row was inserted or raised, False when the
        existing best is equal or higher.
        """
        try:
            existing = LeaderboardEntry.query.filter_by(username=username).first()
            if existing and existing.score >= score:
                return False
            if existing:
                existing.score = score
                existing.updated_at = utcnow()
                db.session.add(existing)
            else:
                db.session.add(LeaderboardEntry(username=username, score=score))
            db.session.commit()
            return True
        except SQLAlchemyError as exc:
            db.session.rollback()
            raise LeaderboardError(str(exc)) from exc

    def is_username_taken(self, username: str) -> bool:
        try:
            return LeaderboardEntry.query.filter_by(username=username).first() is not None
        except SQLAlchemyError as exc:
            db.session.rollback()
            raise LeaderboardError(str(exc)) from exc

    def top(self, limit: int = LEADERBOARD_SIZE) -> List[dict]:
        try:
            rows = (
                LeaderboardEntry.query
                .order_by(LeaderboardEntry.score.desc(), LeaderboardEntry.id.asc())
                .limit(limit)
                .all()
            )
        except SQLAlchemyError as exc:
            db.session.rollback()
            raise LeaderboardError(str(exc)) from exc
        return [dict(row.to_dict(), rank=idx) for idx, row in enumerate(rows, start=1)]
