from memgame import db
from flask_login import UserMixin


class PlayerIdentity(UserMixin):
    """Player id supplied by the upstream identity provider."""

    def __init__(self, player_id):
        self.player_id = str(player_id)

    def get_id(self):
        return self.player_id


class PlayerTokens(db.Model):
    __tablename__ = 'player_tokens'
    player_id = db.Column(db.String(64), primary_key=True)
    total_tokens = db.Column(db.Integer, nullable=False, default=0, index=True)
    created_at = db.Column(db.DateTime(timezone=True), server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), server_default=db.func.now(), onupdate=db.func.now())
