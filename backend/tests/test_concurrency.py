"""Allocation under real contention: a file-backed SQLite database shared by worker threads.

Uses its own engine so the app-wide in-memory session is left alone.
"""
from concurrent.futures import ThreadPoolExecutor
import pytest
from sqlalchemy import select
from sqlalchemy.orm import sessionmaker
from maintdesk import build_engine
from maintdesk.models.building import BuildingConfig, RequestIdentifier
from maintdesk.models.registry import load_all
from maintdesk.services.identifiers import allocate, format_identifier
from maintdesk.utils.clock import current_year

WORKERS = 16
ALLOCATIONS = 50


@pytest.fixture()
def file_sessions(tmp_path):
    engine = build_engine(f"sqlite:///{tmp_path / 'alloc.db'}")
    load_all().metadata.create_all(engine)
    factory = sessionmaker(bind=engine, expire_on_commit=False, autoflush=False)
    with factory() as s:
        s.add(BuildingConfig(building_name='B', building_code='B', display_name='Building B',
                             current_sequence=0, last_reset_year=current_year()))
        s.commit()
    yield factory
    engine.dispose()


def _allocate_once(factory):
    with factory() as s:
        ident = allocate('B', actor_id=None, session=s)
        s.commit()
        return ident


def test_parallel_allocations_are_unique_and_gapless(file_sessions):
    with ThreadPoolExecutor(max_workers=WORKERS) as pool:
        results = list(pool.map(lambda _: _allocate_once(file_sessions), range(ALLOCATIONS)))
    year = current_year()
    assert len(set(results)) == ALLOCATIONS
    assert sorted(results) == [format_identifier(year, 'B', n) for n in range(1, ALLOCATIONS + 1)]
    with file_sessions() as s:
        config = s.execute(select(BuildingConfig).where(BuildingConfig.building_name == 'B')).scalar_one()
        assert config.current_sequence == ALLOCATIONS
        stored = s.execute(select(RequestIdentifier.sequence).order_by(RequestIdentifier.sequence)).scalars().all()
        assert stored == list(range(1, ALLOCATIONS + 1))
