"""
Adapter: User account persistence.

Implements UserAccountRepository with SQLAlchemy.
Accounts are created lazily the first time an authenticated user is seen.
"""

from typing import Optional

from sqlalchemy.orm import Session, sessionmaker

from tickerdesk.domain.trading.entities import UserAccount
from tickerdesk.domain.trading.ports import UserAccountRepository
from tickerdesk.infrastructure.db.models import UserRow


def _to_entity(row: UserRow) -> UserAccount:
    return UserAccount(id=row.id, email=row.email, usd_balance=row.usd_balance or 0.0)


def load_user_row(session: Session, user_id: str, email: Optional[str] = None) -> UserRow:
    """Fetch the user row, creating it with a zero balance if missing."""
    row = session.get(UserRow, user_id)
    if row is None:
        row = UserRow(id=user_id, email=email, usd_balance=0.0)
        session.add(row)
        session.flush()
    elif email and row.email != email:
        row.email = email
    return row


def apply_balance_delta(row: UserRow, delta: float) -> None:
    row.usd_balance = max(0.0, (row.usd_balance or 0.0) + delta)


class SqlUserAccountRepository(UserAccountRepository):
    def __init__(self, session_factory: sessionmaker[Session]) -> None:
        self._session_factory = session_factory

    def get_or_create(self, user_id: str, email: Optional[str] = None) -> UserAccount:
        with self._session_factory.begin() as session:
            return _to_entity(load_user_row(session, user_id, email))

    def set_balance(self, user_id: str, balance: float) -> UserAccount:
        with self._session_factory.begin() as session:
            row = load_user_row(session, user_id)
            row.usd_balance = max(0.0, balance)
            return _to_entity(row)
