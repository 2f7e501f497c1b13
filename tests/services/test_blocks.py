import threading
import time as clock
from datetime import date, time

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from clinic_scheduler.core.errors import NotFoundError, ValidationFailed
from clinic_scheduler.database import Base
from clinic_scheduler.models.block import Block
from clinic_scheduler.services import blocks
from clinic_scheduler.services.blocks import (
    create_block,
    delete_block,
    list_blocks,
    validate_block_fields,
)
from conftest import SCHEDULING_TABLES, make_professional


def test_validate_block_fields_reports_every_problem() -> None:
    errors = validate_block_fields(time(9, 15), None, 'sabbatical', 'x' * 501)

    assert set(errors) == {'start_time', 'end_time', 'block_type', 'reason'}
    assert 'start_time must be on a 30-minute boundary (HH:00 or HH:30).' in errors['start_time']
    assert errors['end_time'] == ['end_time is required when start_time is set.']


def test_validate_block_fields_rejects_inverted_range() -> None:
    errors = validate_block_fields(time(11, 0), time(10, 0), 'personal', None)

    assert errors == {'start_time': ['start_time must be earlier than end_time.']}


def test_validate_block_fields_accepts_full_day() -> None:
    assert validate_block_fields(None, None, 'vacation', 'Family trip') == {}


def test_create_block_raises_with_field_details(scheduling_db, professional) -> None:
    with pytest.raises(ValidationFailed) as exception_info:
        create_block(scheduling_db, professional.id, date(2025, 6, 10), start_time=None, end_time=time(10, 0))

    assert exception_info.value.status_code == 400
    assert 'start_time' in exception_info.value.details
    assert scheduling_db.query(Block).count() == 0


def test_create_block_for_unknown_professional_is_not_found(scheduling_db) -> None:
    with pytest.raises(NotFoundError):
        create_block(scheduling_db, 'missing-professional', date(2025, 6, 10))


def test_create_full_day_block(scheduling_db, professional) -> None:
    result = create_block(scheduling_db, professional.id, date(2025, 6, 10), block_type='vacation', reason='Trip')

    assert result.success is True
    assert result.block_id is not None
    assert result.message == 'Blocked full day 2025-06-10'

    stored = scheduling_db.query(Block).one()
    assert stored.is_full_day
    assert stored.block_type == 'vacation'


def test_full_day_block_conflicts_with_any_existing_block(scheduling_db, professional) -> None:
    create_block(scheduling_db, professional.id, date(2025, 6, 10), start_time=time(9, 0), end_time=time(10, 0))

    result = create_block(scheduling_db, professional.id, date(2025, 6, 10))

    assert result.success is False
    assert result.message == 'A block already exists on this date. Remove it before creating a new one.'
    assert scheduling_db.query(Block).count() == 1


@pytest.mark.parametrize(
    ('start_time', 'end_time'),
    [
        (time(9, 30), time(10, 30)),
        (time(8, 0), time(9, 30)),
        (time(9, 0), time(11, 0)),
    ],
)
def test_partial_block_conflicts_with_overlapping_range(scheduling_db, professional, start_time, end_time) -> None:
    create_block(scheduling_db, professional.id, date(2025, 6, 10), start_time=time(9, 0), end_time=time(10, 0))

    result = create_block(scheduling_db, professional.id, date(2025, 6, 10), start_time=start_time, end_time=end_time)

    assert result.success is False
    assert result.message == 'An existing block conflicts with this time range.'


def test_partial_block_conflicts_with_full_day_block(scheduling_db, professional) -> None:
    create_block(scheduling_db, professional.id, date(2025, 6, 10))

    result = create_block(scheduling_db, professional.id, date(2025, 6, 10), start_time=time(14, 0), end_time=time(15, 0))

    assert result.success is False


def test_adjacent_partial_blocks_both_succeed(scheduling_db, professional) -> None:
    first = create_block(scheduling_db, professional.id, date(2025, 6, 10), start_time=time(9, 0), end_time=time(10, 0))
    second = create_block(scheduling_db, professional.id, date(2025, 6, 10), start_time=time(10, 0), end_time=time(11, 0))

    assert first.success is True
    assert second.success is True
    assert scheduling_db.query(Block).count() == 2


def test_blocks_of_other_professionals_do_not_conflict(scheduling_db, professional) -> None:
    colleague = make_professional(scheduling_db, email='colleague@example.com')
    create_block(scheduling_db, colleague.id, date(2025, 6, 10))

    result = create_block(scheduling_db, professional.id, date(2025, 6, 10))

    assert result.success is True


def test_list_blocks_orders_full_day_first(scheduling_db, professional) -> None:
    create_block(scheduling_db, professional.id, date(2025, 6, 12), start_time=time(15, 0), end_time=time(16, 0))
    create_block(scheduling_db, professional.id, date(2025, 6, 11), start_time=time(13, 0), end_time=time(14, 0))
    create_block(scheduling_db, professional.id, date(2025, 6, 12), start_time=time(8, 0), end_time=time(9, 0))
    create_block(scheduling_db, professional.id, date(2025, 6, 20))

    blocks = list_blocks(scheduling_db, professional.id, from_date=date(2025, 6, 11), to_date=date(2025, 6, 12))

    assert [(block.block_date, block.start_time) for block in blocks] == [
        (date(2025, 6, 11), time(13, 0)),
        (date(2025, 6, 12), time(8, 0)),
        (date(2025, 6, 12), time(15, 0)),
    ]


def test_delete_block_removes_own_block(scheduling_db, professional) -> None:
    created = create_block(scheduling_db, professional.id, date(2025, 6, 10))

    result = delete_block(scheduling_db, created.block_id, professional.id)

    assert result.success is True
    assert scheduling_db.query(Block).count() == 0


def test_delete_block_of_other_professional_is_not_found(scheduling_db, professional) -> None:
    colleague = make_professional(scheduling_db, email='colleague@example.com')
    created = create_block(scheduling_db, colleague.id, date(2025, 6, 10))

    with pytest.raises(NotFoundError):
        delete_block(scheduling_db, created.block_id, professional.id)

    assert scheduling_db.query(Block).count() == 1


@pytest.fixture
def threaded_session_factory(tmp_path):
    engine = create_engine(
        f"sqlite:///{tmp_path / 'blocks.db'}",
        connect_args={'check_same_thread': False, 'timeout': 10},
    )
    Base.metadata.create_all(bind=engine, tables=SCHEDULING_TABLES)
    try:
        yield sessionmaker(autocommit=False, autoflush=False, bind=engine)
    finally:
        engine.dispose()


def test_concurrent_overlapping_blocks_only_one_succeeds(threaded_session_factory, monkeypatch: pytest.MonkeyPatch) -> None:
    setup = threaded_session_factory()
    professional_id = make_professional(setup).id
    setup.close()

    original_find = blocks.find_conflicting_block

    def slow_find(*args, **kwargs):
        # Hold the gap between the overlap check and the insert open.
        found = original_find(*args, **kwargs)
        clock.sleep(0.2)
        return found

    monkeypatch.setattr(blocks, 'find_conflicting_block', slow_find)

    barrier = threading.Barrier(2)
    results = []
    failures = []

    def create(start_time: time, end_time: time) -> None:
        db = threaded_session_factory()
        try:
            barrier.wait()
            results.append(create_block(db, professional_id, date(2025, 6, 10), start_time=start_time, end_time=end_time))
        except Exception as exc:
            failures.append(exc)
        finally:
            db.close()

    workers = [
        threading.Thread(target=create, args=(time(9, 0), time(10, 0))),
        threading.Thread(target=create, args=(time(9, 30), time(10, 30))),
    ]
    for worker in workers:
        worker.start()
    for worker in workers:
        worker.join(timeout=30)

    assert failures == []
    assert sorted(result.success for result in results) == [False, True]

    check = threaded_session_factory()
    try:
        assert check.query(Block).count() == 1
    finally:
        check.close()
