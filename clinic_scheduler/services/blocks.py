import logging
from dataclasses import dataclass
from datetime import date, time

from sqlalchemy import and_, or_
from sqlalchemy.orm import Session

from clinic_scheduler.core import config
from clinic_scheduler.core.errors import NotFoundError, ValidationFailed
from clinic_scheduler.models.block import BLOCK_TYPES, Block
from clinic_scheduler.models.professional import Professional
from clinic_scheduler.services.slot_grid import is_slot_boundary

logger = logging.getLogger(__name__)


@dataclass
class BlockResult:
    success: bool
    message: str
    block_id: str | None = None


def describe_block(block_date: date, start_time: time | None, end_time: time | None) -> str:
    if start_time is None:
        return f'full day {block_date.isoformat()}'
    return f'{block_date.isoformat()} from {start_time:%H:%M} to {end_time:%H:%M}'


def validate_block_fields(
    start_time: time | None,
    end_time: time | None,
    block_type: str,
    reason: str | None,
) -> dict[str, list[str]]:
    """Collect every problem with a block request instead of stopping at the first."""
    errors: dict[str, list[str]] = {}

    def add(field: str, message: str) -> None:
        errors.setdefault(field, []).append(message)

    if start_time is not None and not is_slot_boundary(start_time):
        add('start_time', 'start_time must be on a 30-minute boundary (HH:00 or HH:30).')
    if end_time is not None and not is_slot_boundary(end_time):
        add('end_time', 'end_time must be on a 30-minute boundary (HH:00 or HH:30).')

    if start_time is not None and end_time is None:
        add('end_time', 'end_time is required when start_time is set.')
    elif start_time is None and end_time is not None:
        add('start_time', 'start_time is required when end_time is set.')
    elif start_time is not None and end_time is not None and start_time >= end_time:
        add('start_time', 'start_time must be earlier than end_time.')

    if block_type not in BLOCK_TYPES:
        add('block_type', f'block_type must be one of: {", ".join(BLOCK_TYPES)}.')

    if reason is not None and len(reason) > config.MAX_REASON_LENGTH:
        add('reason', f'reason must be {config.MAX_REASON_LENGTH} characters or fewer.')

    return errors


def list_blocks(
    db: Session,
    professional_id: str,
    from_date: date | None = None,
    to_date: date | None = None,
) -> list[Block]:
    query = db.query(Block).filter(Block.professional_id == professional_id)

    if from_date is not None:
        query = query.filter(Block.block_date >= from_date)
    if to_date is not None:
        query = query.filter(Block.block_date <= to_date)

    # Full-day blocks (null start) sort ahead of partial ones on the same date.
    return query.order_by(Block.block_date.asc(), Block.start_time.asc().nulls_first()).all()


def get_block(db: Session, block_id: str, professional_id: str) -> Block:
    block = db.query(Block).filter(
        Block.id == block_id,
        Block.professional_id == professional_id,
    ).first()

    if block is None:
        raise NotFoundError('Block not found.')

    return block


def find_conflicting_block(
    db: Session,
    professional_id: str,
    block_date: date,
    start_time: time | None,
    end_time: time | None,
) -> Block | None:
    query = db.query(Block).filter(
        Block.professional_id == professional_id,
        Block.block_date == block_date,
    )

    if start_time is None:
        # A full-day block conflicts with anything already on that date.
        return query.first()

    return query.filter(
        or_(
            Block.start_time.is_(None),
            and_(Block.start_time < end_time, Block.end_time > start_time),
        )
    ).first()


def lock_professional_row(db: Session, professional_id: str) -> None:
    # A no-op UPDATE takes the row lock on PostgreSQL and the database
    # write lock on SQLite, where SELECT ... FOR UPDATE is not supported.
    locked = db.query(Professional).filter(
        Professional.id == professional_id,
    ).update({Professional.is_active: Professional.is_active}, synchronize_session=False)

    if not locked:
        db.rollback()
        raise NotFoundError('Professional not found.')


def create_block(
    db: Session,
    professional_id: str,
    block_date: date,
    start_time: time | None = None,
    end_time: time | None = None,
    block_type: str = 'other',
    reason: str | None = None,
) -> BlockResult:
    """Create a block unless it would overlap another block on the same date.

    The owning professional row is write-locked before the overlap check and
    stays locked until commit or rollback, so two concurrent creators for
    the same professional run one after the other.
    """
    field_errors = validate_block_fields(start_time, end_time, block_type, reason)
    if field_errors:
        raise ValidationFailed.from_fields(field_errors, message='Invalid block')

    lock_professional_row(db, professional_id)

    conflict = find_conflicting_block(db, professional_id, block_date, start_time, end_time)
    if conflict is not None:
        db.rollback()
        if start_time is None:
            message = 'A block already exists on this date. Remove it before creating a new one.'
        else:
            message = 'An existing block conflicts with this time range.'
        return BlockResult(success=False, message=message)

    block = Block(
        professional_id=professional_id,
        block_date=block_date,
        start_time=start_time,
        end_time=end_time,
        block_type=block_type,
        reason=reason or None,
    )
    db.add(block)
    db.commit()
    db.refresh(block)

    description = describe_block(block_date, start_time, end_time)
    logger.info('Professional %s blocked %s', professional_id, description)

    return BlockResult(success=True, message=f'Blocked {description}', block_id=block.id)


def delete_block(db: Session, block_id: str, professional_id: str) -> BlockResult:
    """Delete one of the professional's blocks.

    Unknown ids and blocks owned by someone else both raise ``NotFoundError``.
    """
    block = get_block(db, block_id, professional_id)
    description = describe_block(block.block_date, block.start_time, block.end_time)

    deleted = db.query(Block).filter(
        Block.id == block_id,
        Block.professional_id == professional_id,
    ).delete(synchronize_session=False)
    db.commit()

    if not deleted:
        raise NotFoundError('Block not found.')

    logger.info('Professional %s removed block %s', professional_id, description)
    return BlockResult(success=True, message=f'Removed block for {description}', block_id=block_id)
