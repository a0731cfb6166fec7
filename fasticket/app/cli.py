from __future__ import annotations

from datetime import datetime, timedelta
from decimal import Decimal

import click
from flask import current_app

from . import db
from .models import Event, EventStatus, Organization, OrganizationMember, OrganizationRole, Profile
from .utils.slugs import unique_slug


@click.group("demo")
def demo_cli():
    """Demo data commands."""
    pass


@demo_cli.command("seed")
@click.option("--email", default="organizer@fasticket.test", show_default=True, help="Organizer login email.")
@click.option("--password", default="fasticket-demo", show_default=True, help="Organizer password.")
def seed(email: str, password: str):
    """Create a demo organizer, an organization and three events (free, paid, sold out)."""
    profile = Profile.query.filter_by(email=email).first()
    if profile is None:
        profile = Profile(email=email, fullname="Demo Organizer")
        profile.set_password(password)
        db.session.add(profile)
        db.session.flush()

    org = Organization(
        name="Demo Organization",
        slug=unique_slug(Organization, "Demo Organization", fallback="org"),
        description="Organization created by `flask demo seed`",
        created_by=profile.id,
    )
    db.session.add(org)
    db.session.flush()
    db.session.add(OrganizationMember(organization_id=org.id, user_id=profile.id, role=OrganizationRole.ORGANIZER.value))

    now = datetime.utcnow().replace(microsecond=0)
    demo_events = [
        # title, days ahead, hours long, capacity, available, price
        ("Tech Conference", 30, 8, 500, 500, None),
        ("Startup Meetup", 10, 3, 100, 100, Decimal("150.00")),
        ("Sold Out Concert", 5, 4, 50, 0, Decimal("300.00")),
    ]
    for title, days, hours, total, available, price in demo_events:
        start = now + timedelta(days=days)
        db.session.add(
            Event(
                organization_id=org.id,
                title=title,
                slug=unique_slug(Event, title, fallback="event"),
                description=f"{title} (demo)",
                location="Istanbul",
                start_date=start,
                end_date=start + timedelta(hours=hours),
                ticket_price=price or Decimal("0"),
                is_free=price is None,
                total_capacity=total,
                available_capacity=available,
                status=EventStatus.PUBLISHED.value,
                created_by=profile.id,
            )
        )
        # flush so the next unique_slug sees this row
        db.session.flush()
    db.session.commit()
    current_app.logger.info("Seeded demo organization %s for %s", org.slug, email)
    click.echo(f"Organization /{org.slug} ready; log in as {email}")
