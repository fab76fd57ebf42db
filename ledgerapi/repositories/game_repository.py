from datetime import datetime
from typing import List, Optional
from sqlalchemy.orm import Session
from sqlalchemy import desc, func

from ledgerapi.models.game import Game, GameResult, GameSession
from ledgerapi.schemas.game import GameResponse, GameSessionResponse, UserGameStats
from ledgerapi.repositories.base import BaseRepository

LEADERBOARD_SIZE = 10


class GameRepository(BaseRepository[Game, GameResponse]):
    """게임 설정 / 세션 / 통계 리포지토리"""

    def __init__(self, db: Session):
        super().__init__(Game, GameResponse, db)

    def get_active_games(self) -> List[GameResponse]:
        rows = (
            self.db.query(Game)
            .filter(Game.is_active.is_(True))
            .order_by(Game.id)
            .all()
        )
        return self._to_schemas(rows)

    def get_by_name_and_type(self, name: str, game_type: str) -> Optional[GameResponse]:
        row = (
            self.db.query(Game)
            .filter(Game.name == name, Game.game_type == game_type)
            .first()
        )
        return self._to_schema(row)

    def add_session(self, **kwargs) -> GameSession:
        session = GameSession(**kwargs)
        self.db.add(session)
        self.db.flush()
        return session

    def increment_stats(self, game_id: int, wagered: int, won: int) -> None:
        """집계 통계 증가 (게임 행 잠금 후 갱신)"""
        game = self.get_model(game_id, for_update=True)
        if game is None:
            return
        game.total_played = (game.total_played or 0) + 1
        game.total_wagered = (game.total_wagered or 0) + wagered
        game.total_won = (game.total_won or 0) + won
        self.db.flush()

    def get_user_sessions(
        self,
        user_id: int,
        game_id: Optional[int] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> List[GameSessionResponse]:
        query = self.db.query(GameSession).filter(GameSession.user_id == user_id)
        if game_id is not None:
            query = query.filter(GameSession.game_id == game_id)
        rows = (
            query.order_by(desc(GameSession.played_at), desc(GameSession.id))
            .offset(offset)
            .limit(limit)
            .all()
        )
        return [GameSessionResponse.model_validate(row) for row in rows]

    def get_user_stats(self, user_id: int, game_id: Optional[int] = None) -> UserGameStats:
        query = self.db.query(
            func.count(GameSession.id),
            func.coalesce(func.sum(GameSession.bet_amount), 0),
            func.coalesce(func.sum(GameSession.win_amount), 0),
            func.coalesce(func.max(GameSession.win_amount), 0),
            func.max(GameSession.played_at),
        ).filter(GameSession.user_id == user_id)
        wins_query = self.db.query(func.count(GameSession.id)).filter(
            GameSession.user_id == user_id,
            GameSession.result == GameResult.WIN.value,
        )
        if game_id is not None:
            query = query.filter(GameSession.game_id == game_id)
            wins_query = wins_query.filter(GameSession.game_id == game_id)

        sessions, wagered, won, biggest, last_played = query.one()
        wins = int(wins_query.scalar() or 0)
        sessions = int(sessions or 0)
        wagered = int(wagered or 0)
        won = int(won or 0)

        return UserGameStats(
            total_sessions=sessions,
            total_wagered=wagered,
            total_won=won,
            net_result=won - wagered,
            biggest_win=int(biggest or 0),
            win_rate=(wins / sessions * 100) if sessions else 0.0,
            average_bet=(wagered / sessions) if sessions else 0.0,
            last_played=last_played,
        )

    def _period_query(self, columns, game_id: int, since: Optional[datetime]):
        query = self.db.query(*columns).filter(GameSession.game_id == game_id)
        if since is not None:
            query = query.filter(GameSession.played_at >= since)
        return query

    def top_winners(self, game_id: int, since: Optional[datetime]) -> List[tuple]:
        total = func.sum(GameSession.win_amount)
        return (
            self._period_query([GameSession.user_id, total], game_id, since)
            .group_by(GameSession.user_id)
            .order_by(desc(total))
            .limit(LEADERBOARD_SIZE)
            .all()
        )

    def top_wagerers(self, game_id: int, since: Optional[datetime]) -> List[tuple]:
        total = func.sum(GameSession.bet_amount)
        return (
            self._period_query([GameSession.user_id, total], game_id, since)
            .group_by(GameSession.user_id)
            .order_by(desc(total))
            .limit(LEADERBOARD_SIZE)
            .all()
        )

    def biggest_wins(self, game_id: int, since: Optional[datetime]) -> List[tuple]:
        return (
            self._period_query(
                [GameSession.user_id, GameSession.win_amount], game_id, since
            )
            .filter(GameSession.win_amount > 0)
            .order_by(desc(GameSession.win_amount), GameSession.id)
            .limit(LEADERBOARD_SIZE)
            .all()
        )
