from __future__ import annotations

import logging
from typing import Optional

from sqlalchemy import func, update

from songstudio.database import db
from songstudio.errors import Forbidden, NotFound, ValidationFailed
from songstudio.models import CreditTransaction, Profile, Song, TransactionType

log = logging.getLogger(__name__)

REASON_SONG = "Song generation"
REASON_COVER = "Cover generation"
REASON_REFUND = "Refund: generation failed"
REASON_TEACHER = "Credits added by teacher"
REASON_INITIAL = "Initial credits"


def get_balance(user_id: str) -> int:
    p = db.session.get(Profile, user_id)
    if not p:
        raise NotFound("Account not found")
    return int(p.credits or 0)


def ledger_sum(user_id: str) -> int:
    total = (
        db.session.query(func.coalesce(func.sum(CreditTransaction.amount), 0))
        .filter(CreditTransaction.user_id == user_id)
        .scalar()
    )
    return int(total or 0)


def _record(user_id: str, amount: int, reason: str, song_id: Optional[str] = None,
            actor_id: Optional[str] = None) -> CreditTransaction:
    tx = CreditTransaction(
        user_id=user_id,
        amount=amount,
        type=(TransactionType.add if amount > 0 else TransactionType.deduct).value,
        reason=reason,
        related_song_id=song_id,
        created_by=actor_id,
    )
    db.session.add(tx)
    return tx


def debit_for_song(song: Song, reason: str) -> bool:
    """
    Descuenta song.credits_used de la cuenta del dueño y anota el -price.
    Update condicional (credits >= price): si otra petición gastó el saldo
    entre el chequeo y el débito, no toca nada y devuelve False.
    NO hace commit: lo hace quien llama, junto con el cambio de estado.
    """
    price = int(song.credits_used or 0)
    if price == 0:
        return True
    res = db.session.execute(
        update(Profile)
        .where(Profile.id == song.user_id, Profile.credits >= price)
        .values(credits=Profile.credits - price)
        .execution_options(synchronize_session=False)
    )
    if res.rowcount != 1:
        return False
    _record(song.user_id, -price, reason, song_id=song.id)
    return True


def refund_song(song: Song) -> None:
    """Devuelve song.credits_used. Sin commit (ver debit_for_song)."""
    price = int(song.credits_used or 0)
    if price == 0:
        return
    db.session.execute(
        update(Profile)
        .where(Profile.id == song.user_id)
        .values(credits=Profile.credits + price)
        .execution_options(synchronize_session=False)
    )
    _record(song.user_id, price, REASON_REFUND, song_id=song.id)


def grant_initial(profile: Profile, amount: int, actor_id: Optional[str]) -> None:
    """Anota en el ledger el saldo con el que nace una cuenta (si > 0)."""
    if amount > 0:
        _record(profile.id, amount, REASON_INITIAL, actor_id=actor_id)


def add_credits(account_id: str, amount, reason: Optional[str], actor: Profile) -> int:
    """
    Recarga de créditos hecha por un profesor.
    Devuelve el saldo nuevo.
    """
    if not actor or not actor.is_teacher:
        raise Forbidden("Only teachers can add credits")

    try:
        amount = int(amount)
    except (TypeError, ValueError):
        raise ValidationFailed("Invalid parameters")
    if not account_id or amount <= 0:
        raise ValidationFailed("Invalid parameters")

    student = db.session.get(Profile, account_id)
    if not student:
        raise NotFound("Student not found")

    db.session.execute(
        update(Profile)
        .where(Profile.id == account_id)
        .values(credits=Profile.credits + amount)
        .execution_options(synchronize_session=False)
    )
    _record(account_id, amount, reason or REASON_TEACHER, actor_id=actor.id)
    db.session.commit()

    db.session.refresh(student)
    log.info("Créditos +%s a %s por %s (saldo %s)", amount, account_id, actor.id, student.credits)
    return int(student.credits)
