"""Atomic wallet balance updates.

Every change to available_cashback goes through these single-statement
conditional updates. They run on the caller's session connection and
take part in its transaction; the caller commits or rolls back.
"""

import uuid
from decimal import Decimal

from sqlalchemy import update
from sqlmodel import Session

from cashback.user.models import User


def debit_available(session: Session, user_id: uuid.UUID, amount: Decimal) -> bool:
    """Subtract amount from available cashback if the balance covers it.

    Returns False when no row matched (unknown user or balance too low).
    """
    statement = (
        update(User)
        .where(User.id == user_id, User.available_cashback >= amount)
        .values(available_cashback=User.available_cashback - amount)
    )
    result = session.connection().execute(statement)
    return result.rowcount == 1


def credit_available(
    session: Session,
    user_id: uuid.UUID,
    amount: Decimal,
    *,
    include_total: bool = True,
) -> bool:
    """Add amount to available cashback.

    include_total also raises total_cashback (new earnings); leave it off
    when returning a reserved amount, which was already counted.
    """
    values = {"available_cashback": User.available_cashback + amount}
    if include_total:
        values["total_cashback"] = User.total_cashback + amount
    statement = update(User).where(User.id == user_id).values(**values)
    result = session.connection().execute(statement)
    return result.rowcount == 1
