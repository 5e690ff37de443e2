#!/usr/bin/env python
"""Idempotent seed script for expense categories and demo companies/projects.

Usage:
    python backend/scripts/seed_ledger.py                 # categories only
    python backend/scripts/seed_ledger.py --demo          # also demo companies & projects
    python backend/scripts/seed_ledger.py --dry-run       # run logic then rollback (no DB changes)
    python backend/scripts/seed_ledger.py --show          # print projects per company afterwards
"""
from __future__ import annotations
import os, sys, argparse, textwrap
from sqlalchemy import select

# Allow running from repo root
sys.path.append(os.path.abspath('backend'))

from siteledger import create_app, get_db  # type: ignore
from siteledger.models import Base, Company, Project, ExpenseCategory
from siteledger.services.money import to_decimal, to_minor_units
from seeds.ledger_defaults import EXPENSE_CATEGORIES, DEMO_COMPANIES


def ensure_categories(session):
    existing = set(session.execute(select(ExpenseCategory.name)).scalars().all())
    created = 0
    for name in EXPENSE_CATEGORIES:
        if name not in existing:
            session.add(ExpenseCategory(name=name))
            created += 1
    return created


def ensure_demo_projects(session):
    companies = {c.name: c for c in session.execute(select(Company)).scalars().all()}
    created = 0
    for company_name, projects in DEMO_COMPANIES.items():
        company = companies.get(company_name)
        if company is None:
            company = Company(name=company_name)
            session.add(company)
            session.flush()
            companies[company_name] = company
        existing = set(session.execute(
            select(Project.name).where(Project.company_id == company.id)
        ).scalars().all())
        for name, status, budget in projects:
            if name in existing:
                continue
            budget_cents = to_minor_units(to_decimal(budget, 'budget')) if budget else None
            session.add(Project(name=name, company_id=company.id, status=status, budget_cents=budget_cents))
            created += 1
    return created


def print_projects(session):
    rows = session.execute(
        select(Company.name, Project.id, Project.name, Project.status)
        .join(Project, Project.company_id == Company.id)
        .order_by(Company.name, Project.id)
    ).all()
    if not rows:
        print('[INFO] No projects present.')
        return
    name_w = max(len(r[0]) for r in rows)
    print(f"{'Company'.ljust(name_w)} | {'ID'.rjust(4)} | Project (status)")
    print('-' * (name_w + 40))
    for company, pid, name, status in rows:
        print(f"{company.ljust(name_w)} | {str(pid).rjust(4)} | {name} ({status})")


def parse_args():
    p = argparse.ArgumentParser(
        description='Seed ledger reference data',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=textwrap.dedent("""Examples:\n  categories: seed_ledger.py\n  with demo data: seed_ledger.py --demo\n  dry run: seed_ledger.py --demo --dry-run\n"""),
    )
    p.add_argument('--demo', action='store_true', help='Also create demo companies and projects')
    p.add_argument('--dry-run', action='store_true', help='Rollback after operations (no commit)')
    p.add_argument('--show', action='store_true', help='Print projects per company after seeding')
    return p.parse_args()


def main():
    args = parse_args()
    app = create_app()
    with app.app_context():
        session = get_db()
        # Lightweight bootstrap when migrations have not been run yet; prefer `alembic upgrade head`
        Base.metadata.create_all(session.get_bind())
        try:
            created_c = ensure_categories(session)
            created_p = ensure_demo_projects(session) if args.demo else 0
            if args.dry_run:
                session.rollback()
                print(f'[DRY-RUN] (rolled back) Categories would create: {created_c}, Projects would create: {created_p}')
            else:
                session.commit()
                print(f'[DONE] Categories created: {created_c}, Projects created: {created_p}')
            if args.show:
                print_projects(session)
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()


if __name__ == '__main__':
    main()
