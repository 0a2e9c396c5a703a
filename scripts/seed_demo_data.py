#!/usr/bin/env python3
"""
Advisory Request Hub — Demo Data Seed Script.

Seeds one advisory service with offerings and an activity catalog, a small
advisory team (consultants, a lead and a head), user profiles and the
default status workflow, then submits two demo requests through the normal
submission path so they are auto-assigned.

Usage:
    python scripts/seed_demo_data.py
    python scripts/seed_demo_data.py --append
    python scripts/seed_demo_data.py --verbose
"""

import argparse
import sys

sys.path.insert(0, ".")

from advisory_hub import create_app
from advisory_hub.models import db
from advisory_hub.models.catalog import Activity, AdvisoryService, ServiceOffering, SubActivity
from advisory_hub.models.notification import Notification
from advisory_hub.models.request import (
    AdvisoryRequest,
    RequestHistory,
    StatusTransition,
    seed_default_status_transitions,
)
from advisory_hub.models.team import (
    TITLE_CONSULTANT,
    TITLE_SERVICE_HEAD,
    TITLE_SERVICE_LEAD,
    Consultant,
    UserProfile,
)
from advisory_hub.services.request_service import submit_new_request

SERVICE_ID = "eng-excellence"

OFFERINGS = ["Kubernetes", "Terraform", "Azure DevOps"]

# (name, hours, [(sub name, hours), ...])
CATALOG = [
    ("Current state assessment", 6, [("Stakeholder interviews", 4), ("Tooling inventory", 2)]),
    ("Target architecture", 8, [("Reference design", 5), ("Review workshop", 3)]),
    ("Pipeline hardening", 10, [("Security scanning", 4), ("Release gates", 6)]),
]

# (user_id, name, title, expertise, rate)
TEAM = [
    ("u-cara", "Cara Quinn", TITLE_CONSULTANT, ["Kubernetes", "Helm"], 95.0),
    ("u-dev", "Dev Patel", TITLE_CONSULTANT, ["Terraform"], 90.0),
    ("u-lee", "Lee Morgan", TITLE_SERVICE_LEAD, ["Kubernetes", "Terraform"], 130.0),
    ("u-hana", "Hana Sato", TITLE_SERVICE_HEAD, [], 160.0),
]

# (user_id, username, role)
PROFILES = [
    ("u-admin", "admin", "Admin"),
    ("u-req", "requestor", "Standard User"),
    ("u-hana", "hana", TITLE_SERVICE_HEAD),
]


def _p(msg, verbose):
    if verbose:
        print(msg)


def seed_all(app, append=False, verbose=False):
    """Seed catalog, team, workflow rules and demo requests."""
    with app.app_context():
        if not append:
            print("Clearing existing data...")
            for model in [Notification, RequestHistory, AdvisoryRequest, StatusTransition,
                          Consultant, UserProfile, SubActivity, Activity, ServiceOffering,
                          AdvisoryService]:
                db.session.query(model).delete()
            db.session.commit()
            print("   Done.\n")

        # ── 1. Catalog ───────────────────────────────────────────────────
        service = AdvisoryService(id=SERVICE_ID, name="Engineering Excellence",
                                  description="Platform and delivery engineering advisory")
        db.session.add(service)
        for name in OFFERINGS:
            db.session.add(ServiceOffering(advisory_service_id=SERVICE_ID, name=name))
        for order, (name, hours, subs) in enumerate(CATALOG):
            act = Activity(advisory_service_id=SERVICE_ID, name=name,
                           estimated_hours=hours, display_order=order)
            db.session.add(act)
            db.session.flush()
            for sub_order, (sub_name, sub_hours) in enumerate(subs):
                db.session.add(SubActivity(activity_id=act.id, name=sub_name,
                                           estimated_hours=sub_hours, display_order=sub_order))
            _p(f"   activity {name} ({hours} h, {len(subs)} sub-activities)", verbose)
        print(f"Catalog: {len(OFFERINGS)} offerings, {len(CATALOG)} activities")

        # ── 2. Team & profiles ───────────────────────────────────────────
        for user_id, name, title, expertise, rate in TEAM:
            db.session.add(Consultant(
                user_id=user_id, name=name, title=title,
                advisory_services=[SERVICE_ID], expertise=expertise, rate_per_hour=rate,
            ))
            _p(f"   consultant {name} ({title})", verbose)
        for user_id, username, role in PROFILES:
            db.session.add(UserProfile(user_id=user_id, username=username,
                                       email=f"{username}@example.com", role=role))
        db.session.commit()
        print(f"Team: {len(TEAM)} consultants, {len(PROFILES)} profiles")

        # ── 3. Workflow rules ────────────────────────────────────────────
        added = seed_default_status_transitions()
        db.session.commit()
        print(f"Workflow: {added} status transitions")

        # ── 4. Demo requests ─────────────────────────────────────────────
        created = submit_new_request(
            {"name": "Platform uplift", "description": "Move build and deploy to Kubernetes"},
            {SERVICE_ID: {"selected_tools": ["Kubernetes"], "requirement_details": "Cluster readiness review"}},
            "u-req",
        )
        created += submit_new_request(
            {"name": "IaC rollout"},
            [{"advisory_service_id": SERVICE_ID, "selected_tools": ["Terraform"]}],
            "u-req",
        )
        db.session.commit()
        for req in created:
            _p(f"   {req.request_id} → {req.current_assignee_name or 'unassigned'}", verbose)
        print(f"Requests: {len(created)} submitted")

        print(f"\n{'='*60}")
        print("DEMO DATA SEED COMPLETE")
        print(f"{'='*60}\n")


def main():
    parser = argparse.ArgumentParser(description="Seed demo data")
    parser.add_argument("--append", action="store_true")
    parser.add_argument("--verbose", "-v", action="store_true")
    args = parser.parse_args()

    app = create_app()
    print(f"DB: {app.config['SQLALCHEMY_DATABASE_URI']}\n")
    with app.app_context():
        db.create_all()
    seed_all(app, append=args.append, verbose=args.verbose)


if __name__ == "__main__":
    main()
