"""
Seed the store with a demo project, staff member, client, custom form and stock.

Usage:
    python scripts/seed_demo_data.py [--dry-run]

Idempotent: entities are matched by username / project code / product name
and only created when missing.
"""
import sys
import os
import argparse

# Add parent directory to path
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from ipmhub.config import settings
from ipmhub.db import create_store_tables
from ipmhub.services.data_context import DataContext
from ipmhub.services.time_rules import today_str
from ipmhub.storage.factory import get_store_provider


DEMO_PROJECT = {
    "code": "PRJ-001",
    "name": "Gulberg Warehouse",
    "client": "Gulberg Foods",
    "contact": "0300-0000000",
    "address": "Main Boulevard, Gulberg, Lahore",
    "lat": 31.5204,
    "lng": 74.3587,
    "radius": 50,
    "gpsEnabled": True,
    "active": True,
}

DEMO_PRODUCTS = [
    {"name": "Deltamethrin 2.5%", "category": "Insecticide", "brand": "Bayer", "unit": "ml", "minStock": 500, "openingStock": 2000},
    {"name": "Bromadiolone Blocks", "category": "Rodenticide", "brand": "", "unit": "pcs", "minStock": 50, "openingStock": 200},
    {"name": "Glue Board", "category": "Equipment", "brand": "", "unit": "pcs", "minStock": 20, "openingStock": 40},
]

DEMO_FORM = {
    "name": "Fumigation Log",
    "icon": "flask",
    "description": "Sealed-area fumigation record",
    "active": True,
    "fields": [
        {"id": "field_area", "type": "text", "label": "Area", "required": True},
        {"id": "field_method", "type": "select", "label": "Method", "required": True, "options": ["Phosphine", "Fogging"]},
        {"id": "field_sealed", "type": "checkbox", "label": "Area sealed"},
        {"id": "field_doses", "type": "table", "label": "Doses", "tableColumns": ["Chamber", "Tablets"]},
    ],
}


def seed(ctx: DataContext, dry_run: bool = False) -> None:
    if not dry_run and ctx.ensure_admin():
        print(f"[CREATE] Default admin '{settings.default_admin_username}'")

    project = next((p for p in ctx.projects if p.code == DEMO_PROJECT["code"]), None)
    if project:
        print(f"[SKIP] Project {project.code} exists")
        project_key = project.key
    elif dry_run:
        print(f"[DRY-RUN] Would create project {DEMO_PROJECT['code']}")
        project_key = "<new>"
    else:
        project_key = ctx.save_project(DEMO_PROJECT)
        print(f"[CREATE] Project {DEMO_PROJECT['code']} ({project_key})")

    usernames = {u.username.lower() for u in ctx.users}
    people = [
        {"empId": "EMP001", "name": "Demo Technician", "username": "tech", "password": "tech123", "role": "staff", "projects": [project_key], "active": True},
        {"name": "Demo Client", "username": "client", "password": "client123", "role": "client", "projectKey": project_key, "active": True},
    ]
    for person in people:
        if person["username"] in usernames:
            print(f"[SKIP] User {person['username']} exists")
        elif dry_run:
            print(f"[DRY-RUN] Would create {person['role']} {person['username']}")
        else:
            ctx.save_user(person)
            print(f"[CREATE] {person['role']} {person['username']}")

    if any(f.name == DEMO_FORM["name"] for f in ctx.custom_forms):
        print(f"[SKIP] Form {DEMO_FORM['name']} exists")
    elif dry_run:
        print(f"[DRY-RUN] Would create form {DEMO_FORM['name']}")
    else:
        ctx.save_custom_form(DEMO_FORM)
        print(f"[CREATE] Form {DEMO_FORM['name']}")

    names = {p.name for p in ctx.products}
    for product in DEMO_PRODUCTS:
        if product["name"] in names:
            print(f"[SKIP] Product {product['name']} exists")
            continue
        if dry_run:
            print(f"[DRY-RUN] Would create product {product['name']}")
            continue
        key = ctx.save_product({**product, "active": True})
        ctx.save_stock_log({
            "productKey": key,
            "type": "add",
            "qty": product["minStock"],
            "date": today_str(),
            "supplier": "Demo Supplier",
            "entryType": "admin_adjustment",
        })
        print(f"[CREATE] Product {product['name']}")


def main():
    parser = argparse.ArgumentParser(description="Seed demo data")
    parser.add_argument("--dry-run", action="store_true", help="Show what would be created")
    parser.add_argument("--backend", default=None, help="Store backend (sql|memory), default from settings")
    args = parser.parse_args()

    backend = (args.backend or settings.store_backend).lower()
    if backend == "sql":
        if settings.database_url.startswith("sqlite:///./"):
            os.makedirs("var", exist_ok=True)
        create_store_tables()

    provider = get_store_provider(backend)
    with DataContext(provider) as ctx:
        seed(ctx, dry_run=args.dry_run)
    provider.close()
    print("Done.")


if __name__ == "__main__":
    main()
