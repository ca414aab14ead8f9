#!/usr/bin/env python
"""Idempotent seed script for building configurations.

Usage:
    python backend/scripts/seed_buildings.py                       # seed the default buildings
    python backend/scripts/seed_buildings.py --building "Tower 1:T1" --building Annex
    python backend/scripts/seed_buildings.py --show                # print configs after seeding
    python backend/scripts/seed_buildings.py --dry-run             # run logic then rollback (no DB changes)

Existing buildings are left untouched; their sequence counters are never reset here.
"""
from __future__ import annotations
import os, sys, argparse, textwrap
from sqlalchemy import select, text

# Allow running from repo root
sys.path.append(os.path.abspath('backend'))

from maintdesk import create_app, get_db  # type: ignore
from maintdesk.models.building import BuildingConfig
from maintdesk.services.buildings import find_config, validate_building_code, unique_derived_code
from maintdesk.services.audit import add_audit
from maintdesk.utils.clock import current_year

DEFAULT_BUILDINGS = ['A', 'B', 'C', 'D']


def parse_spec(raw: str):
    """'Tower 1:T1' -> ('Tower 1', 'T1'); 'Annex' -> ('Annex', None)."""
    name, _, code = raw.partition(':')
    return name.strip(), (code.strip() or None)


def ensure_buildings(session, specs, actor_id: int = 0):
    created = []
    for name, code in specs:
        if not name or find_config(session, name):
            continue
        code = validate_building_code(code) if code else unique_derived_code(session, name)
        session.add(BuildingConfig(
            building_name=name,
            building_code=code,
            display_name=f'Building {name}',
            allow_custom_id=False,
            current_sequence=0,
            last_reset_year=current_year(),
            created_by=actor_id or None,
        ))
        session.flush()
        add_audit(session, 'BUILDING.CREATE', actor_id, 'BuildingConfig', name, {'building_code': code, 'source': 'seed'})
        created.append((name, code))
    return created


def print_configs(session):
    rows = session.execute(select(BuildingConfig).order_by(BuildingConfig.building_name)).scalars().all()
    if not rows:
        print("[INFO] No building configurations present.")
        return
    name_w = max(len(r.building_name) for r in rows)
    print(f"{'Building'.ljust(name_w)} | Code       | Seq   | Year | Custom IDs")
    print('-' * (name_w + 42))
    for r in rows:
        print(f"{r.building_name.ljust(name_w)} | {r.building_code.ljust(10)} | {str(r.current_sequence).rjust(5)} | "
              f"{r.last_reset_year or '----'} | {'yes' if r.allow_custom_id else 'no'}")


def parse_args():
    p = argparse.ArgumentParser(
        description="Seed building configurations",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=textwrap.dedent("""Examples:\n  seed defaults: seed_buildings.py\n  explicit: seed_buildings.py --building "Tower 1:T1"\n  dry run: seed_buildings.py --dry-run\n""")
    )
    p.add_argument('--building', action='append', metavar='NAME[:CODE]', help='Building to ensure (repeatable); defaults to A-D')
    p.add_argument('--show', action='store_true', help='Print building configurations after seeding')
    p.add_argument('--dry-run', action='store_true', help='Rollback after operations (no commit)')
    return p.parse_args()


def main():
    args = parse_args()
    specs = [parse_spec(b) for b in (args.building or DEFAULT_BUILDINGS)]
    app = create_app()
    with app.app_context():
        session = get_db()
        try:
            session.execute(text('SELECT 1 FROM building_configs LIMIT 1'))
        except Exception:
            # Bootstrap fallback when migrations have not run; prefer alembic upgrade
            session.rollback()
            from maintdesk.models.registry import load_all
            load_all().metadata.create_all(session.get_bind())
        finally:
            session.commit()

    with app.app_context():
        session = get_db()
        created = ensure_buildings(session, specs)
        if args.dry_run:
            session.rollback()
            print(f"[DRY-RUN] (rolled back) Buildings would create: {len(created)}")
        else:
            session.commit()
            print(f"[DONE] Buildings created: {len(created)}")
        for name, code in created:
            print(f"  + {name} ({code})")
        if args.show:
            print_configs(session)


if __name__ == '__main__':
    main()
