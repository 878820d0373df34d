"""Credit ledger: atomic balance primitives for user and wallet accounts.

Every balance change is a single guarded UPDATE on ``credit_accounts`` plus
exactly one ``credit_transactions`` row, committed together. The guard clause
(``balance >= amount``) is what prevents overdraft under concurrent callers;
no read-then-write across round trips is ever trusted.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Union

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from models.credit_account import CreditAccount, OwnerKind
from models.credit_grant_claim import CreditGrantClaim
from models.credit_transaction import CreditTransaction, TransactionType
from services.errors import InsufficientFunds, InvalidAmount, SelfTransfer
from services.timeouts import mark_atomic_step

logger = logging.getLogger(__name__)

OwnerKindLike = Union[OwnerKind, str]
TransactionTypeLike = Union[TransactionType, str]


@dataclass
class LedgerResult:
    balance: int
    amount: int
    transaction_id: Optional[str]


@dataclass
class TransferResult:
    remaining_at_source: int
    balance_at_target: int
    debit_transaction_id: str
    credit_transaction_id: str


@dataclass
class GrantResult:
    applied: bool
    balance: int
    transaction_id: Optional[str] = None


def validate_amount(amount: Any) -> int:
    """Return ``amount`` if it is a positive integer, else raise InvalidAmount."""
    if isinstance(amount, bool) or not isinstance(amount, int):
        raise InvalidAmount()
    if amount <= 0:
        raise InvalidAmount()
    return amount


def _owner_key(owner_kind: OwnerKindLike, owner_id: Any) -> tuple[str, str]:
    kind = OwnerKind(owner_kind).value
    token = str(owner_id or "").strip()
    if not token:
        raise ValueError("owner_id is required")
    return kind, token


async def _find_account(db: AsyncSession, kind: str, owner_id: str) -> Optional[CreditAccount]:
    result = await db.execute(
        select(CreditAccount).where(
            CreditAccount.owner_kind == kind,
            CreditAccount.owner_id == owner_id,
        )
    )
    return result.scalar_one_or_none()


async def _read_balance(db: AsyncSession, account_id: str) -> int:
    result = await db.execute(select(CreditAccount.balance).where(CreditAccount.id == account_id))
    return int(result.scalar() or 0)


async def get_or_create_account(owner_kind: OwnerKindLike, owner_id: Any, db: AsyncSession) -> CreditAccount:
    """Return the account for an identity, creating it with balance 0 if absent.

    Creation commits on its own so that it never becomes part of a later
    balance mutation; call this before staging any other changes.
    """
    kind, token = _owner_key(owner_kind, owner_id)
    account = await _find_account(db, kind, token)
    if account:
        return account

    account = CreditAccount(id=str(uuid.uuid4()), owner_kind=kind, owner_id=token, balance=0, version=0)
    db.add(account)
    try:
        await db.commit()
    except IntegrityError:
        # Lost a creation race; the other writer's row is authoritative.
        await db.rollback()
        account = await _find_account(db, kind, token)
        if account is None:
            raise
    return account


async def get_balance(owner_kind: OwnerKindLike, owner_id: Any, db: AsyncSession) -> int:
    account = await get_or_create_account(owner_kind, owner_id, db)
    return await _read_balance(db, account.id)


async def has_enough_credits(owner_kind: OwnerKindLike, owner_id: Any, amount: int, db: AsyncSession) -> Dict[str, Any]:
    """Advisory check only; debit() re-validates atomically."""
    balance = await get_balance(owner_kind, owner_id, db)
    return {"has_enough": balance >= int(amount), "current_balance": balance}


def _append_entry(
    db: AsyncSession,
    *,
    account_id: str,
    amount: int,
    balance_after: int,
    description: Optional[str],
    transaction_type: TransactionTypeLike,
    reference_id: Optional[str] = None,
    counterparty_account_id: Optional[str] = None,
) -> CreditTransaction:
    entry = CreditTransaction(
        id=str(uuid.uuid4()),
        account_id=account_id,
        amount=int(amount),
        balance_after=int(balance_after),
        description=description,
        transaction_type=TransactionType(transaction_type).value,
        reference_id=str(reference_id) if reference_id is not None else None,
        counterparty_account_id=counterparty_account_id,
        created_at=datetime.now(timezone.utc),
    )
    db.add(entry)
    return entry


async def _guarded_decrement(db: AsyncSession, account_id: str, amount: int) -> Optional[int]:
    """Decrement only if the balance covers ``amount``; None when it does not."""
    result = await db.execute(
        update(CreditAccount)
        .where(CreditAccount.id == account_id, CreditAccount.balance >= amount)
        .values(balance=CreditAccount.balance - amount, version=CreditAccount.version + 1)
        .returning(CreditAccount.balance)
        .execution_options(synchronize_session=False)
    )
    new_balance = result.scalar_one_or_none()
    return int(new_balance) if new_balance is not None else None


async def _increment(db: AsyncSession, account_id: str, amount: int) -> int:
    result = await db.execute(
        update(CreditAccount)
        .where(CreditAccount.id == account_id)
        .values(balance=CreditAccount.balance + amount, version=CreditAccount.version + 1)
        .returning(CreditAccount.balance)
        .execution_options(synchronize_session=False)
    )
    return int(result.scalar_one())


async def debit(
    owner_kind: OwnerKindLike,
    owner_id: Any,
    db: AsyncSession,
    *,
    amount: int,
    description: str,
    transaction_type: TransactionTypeLike = TransactionType.DEDUCT,
    reference_id: Optional[str] = None,
    commit: bool = True,
) -> LedgerResult:
    """Atomically remove ``amount`` credits or raise InsufficientFunds.

    With ``commit=False`` the debit stays staged in ``db`` so the caller can
    commit it together with its own rows; any failure still rolls back.
    """
    debit_amount = validate_amount(amount)
    TransactionType(transaction_type)
    account = await get_or_create_account(owner_kind, owner_id, db)
    account_id = account.id

    mark_atomic_step()
    try:
        new_balance = await _guarded_decrement(db, account_id, debit_amount)
        if new_balance is None:
            available = await _read_balance(db, account_id)
            raise InsufficientFunds(required=debit_amount, available=available)
        entry = _append_entry(
            db,
            account_id=account_id,
            amount=-debit_amount,
            balance_after=new_balance,
            description=description,
            transaction_type=transaction_type,
            reference_id=reference_id,
        )
        await db.flush()
        entry_id = entry.id
        if commit:
            await db.commit()
    except Exception:
        await db.rollback()
        raise

    logger.info(
        "Debited %s credits from %s account %s (balance_after=%s, type=%s)",
        debit_amount,
        OwnerKind(owner_kind).value,
        account_id,
        new_balance,
        TransactionType(transaction_type).value,
    )
    return LedgerResult(balance=new_balance, amount=debit_amount, transaction_id=entry_id)


async def transfer(
    source_kind: OwnerKindLike,
    source_id: Any,
    target_kind: OwnerKindLike,
    target_id: Any,
    db: AsyncSession,
    *,
    amount: int,
    description: str = "Credits transfer",
) -> TransferResult:
    """Move credits between two accounts; both legs commit or neither does."""
    transfer_amount = validate_amount(amount)
    source_key = _owner_key(source_kind, source_id)
    target_key = _owner_key(target_kind, target_id)
    if source_key == target_key:
        raise SelfTransfer()

    source = await get_or_create_account(*source_key, db)
    target = await get_or_create_account(*target_key, db)
    source_account_id = source.id
    target_account_id = target.id

    mark_atomic_step()
    try:
        # Touch rows in id order so opposing transfers cannot deadlock.
        if target_account_id < source_account_id:
            target_balance = await _increment(db, target_account_id, transfer_amount)
            remaining = await _guarded_decrement(db, source_account_id, transfer_amount)
        else:
            remaining = await _guarded_decrement(db, source_account_id, transfer_amount)
            target_balance = None
            if remaining is not None:
                target_balance = await _increment(db, target_account_id, transfer_amount)
        if remaining is None:
            available = await _read_balance(db, source_account_id)
            raise InsufficientFunds(required=transfer_amount, available=available)

        out_entry = _append_entry(
            db,
            account_id=source_account_id,
            amount=-transfer_amount,
            balance_after=remaining,
            description=description,
            transaction_type=TransactionType.TRANSFER_OUT,
            counterparty_account_id=target_account_id,
        )
        in_entry = _append_entry(
            db,
            account_id=target_account_id,
            amount=transfer_amount,
            balance_after=target_balance,
            description=description,
            transaction_type=TransactionType.TRANSFER_RECEIVE,
            reference_id=out_entry.id,
            counterparty_account_id=source_account_id,
        )
        await db.flush()
        out_id, in_id = out_entry.id, in_entry.id
        await db.commit()
    except Exception:
        await db.rollback()
        raise

    logger.info(
        "Transferred %s credits %s -> %s (source_after=%s target_after=%s)",
        transfer_amount,
        source_account_id,
        target_account_id,
        remaining,
        target_balance,
    )
    return TransferResult(
        remaining_at_source=remaining,
        balance_at_target=int(target_balance),
        debit_transaction_id=out_id,
        credit_transaction_id=in_id,
    )


async def grant(
    owner_kind: OwnerKindLike,
    owner_id: Any,
    db: AsyncSession,
    *,
    amount: int,
    description: str,
    reference_id: str,
    transaction_type: TransactionTypeLike = TransactionType.GRANT,
    commit: bool = True,
) -> GrantResult:
    """Credit an account once per ``reference_id``.

    A repeated grant with the same reference leaves the balance untouched and
    returns ``applied=False``.
    """
    grant_amount = validate_amount(amount)
    reference = str(reference_id or "").strip()
    if not reference:
        raise ValueError("reference_id is required for grants")
    TransactionType(transaction_type)

    account = await get_or_create_account(owner_kind, owner_id, db)
    account_id = account.id

    mark_atomic_step()
    claim = CreditGrantClaim(id=str(uuid.uuid4()), account_id=account_id, reference_id=reference)
    db.add(claim)
    try:
        await db.flush()
    except IntegrityError:
        await db.rollback()
        balance = await _read_balance(db, account_id)
        logger.info("Grant %s already applied to account %s; skipping", reference, account_id)
        return GrantResult(applied=False, balance=balance)

    try:
        new_balance = await _increment(db, account_id, grant_amount)
        entry = _append_entry(
            db,
            account_id=account_id,
            amount=grant_amount,
            balance_after=new_balance,
            description=description,
            transaction_type=transaction_type,
            reference_id=reference,
        )
        await db.flush()
        claim.transaction_id = entry.id
        entry_id = entry.id
        if commit:
            await db.commit()
    except Exception:
        await db.rollback()
        raise

    logger.info("Granted %s credits to account %s (reference=%s)", grant_amount, account_id, reference)
    return GrantResult(applied=True, balance=new_balance, transaction_id=entry_id)


def serialize_transaction(entry: CreditTransaction) -> Dict[str, Any]:
    return {
        "id": entry.id,
        "amount": entry.amount,
        "balance_after": entry.balance_after,
        "description": entry.description,
        "transaction_type": entry.transaction_type,
        "reference_id": entry.reference_id,
        "created_at": entry.created_at.isoformat() if entry.created_at else None,
    }


async def list_transactions(
    owner_kind: OwnerKindLike,
    owner_id: Any,
    db: AsyncSession,
    *,
    limit: int = 10,
    offset: int = 0,
) -> List[Dict[str, Any]]:
    """Return ledger entries for an identity, newest first."""
    kind, token = _owner_key(owner_kind, owner_id)
    account = await _find_account(db, kind, token)
    if account is None:
        return []
    result = await db.execute(
        select(CreditTransaction)
        .where(CreditTransaction.account_id == account.id)
        .order_by(CreditTransaction.created_at.desc(), CreditTransaction.id.desc())
        .offset(max(int(offset), 0))
        .limit(max(int(limit), 1))
    )
    return [serialize_transaction(entry) for entry in result.scalars().all()]
