from datetime import datetime, timezone

from udelawhere import db


def utcnow():
    return datetime.now(timezone.utc)


class LeaderboardEntry(db.Model):
    __tablename__ = 'leaderboard'
    id = db.Column(db.Integer, primary_key=True)
    username = db.Column(db.String(64), unique=True, nullable=False, index=True)
    score = db.Column(db.Integer, nullable=False, default=0)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=True)

    def to_dict(self):
        return {
            'id': self.id,
            'username': self.username,
            'score': self.score,
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }
