#!/usr/bin/env python3
"""
Prediction Pool Management CLI

This script provides command-line management functionality for the prediction pool.
"""

import logging
from datetime import datetime

import click
from flask.cli import with_appcontext
from flask_migrate import upgrade
from sqlalchemy import text
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from app import create_app, db
from app.exceptions import ScoringError
from app.models import Fixture, Season, User
from app.services import ledger, seasons
from app.utils.scoring import FixtureResult

app = create_app()


def _fail(message, error=None):
    """Report a failed command and exit non-zero"""
    db.session.rollback()
    click.echo(f"❌ {message}")
    if error is not None:
        logging.error(f"{message}: {error}")
    raise SystemExit(1)


@click.group()
def cli():
    """Prediction Pool Management CLI"""
    pass


# Season Management Commands
@cli.group()
def season():
    """Season management commands"""
    pass


@season.command()
@click.argument("name")
@click.option(
    "--start-date",
    type=click.DateTime(formats=["%Y-%m-%d"]),
    help="Season start date (YYYY-MM-DD)",
)
@with_appcontext
def create(name, start_date):
    """Create and activate a new season"""
    try:
        new_season = seasons.create_season(name, start_date)
        click.echo(f"✅ Created season {new_season.name} (ID: {new_season.id})")
    except ScoringError as e:
        _fail(e.message)
    except IntegrityError as e:
        _fail("Another season is already active", e)


@season.command()
@click.argument("season_id", type=int)
@with_appcontext
def end(season_id):
    """End a season: snapshot rankings and reset all totals"""
    try:
        rankings = seasons.end_season(season_id)
    except ScoringError as e:
        _fail(e.message, e)

    click.echo(f"✅ Season {season_id} ended")
    for entry in rankings[:3]:
        click.echo(f"  #{entry['rank']} {entry['username']} - {entry['points']} pts")


@season.command()
@click.argument("season_id", type=int)
@with_appcontext
def delete(season_id):
    """⚠️  Delete a season with all fixtures and predictions"""
    if not click.confirm(f"This will DELETE season {season_id} and all its fixtures. Continue?"):
        click.echo("Cancelled.")
        return

    try:
        summaries = seasons.delete_season(season_id)
    except ScoringError as e:
        _fail(e.message, e)

    click.echo(f"✅ Deleted season {season_id} ({len(summaries)} fixtures)")


@season.command("list")
@with_appcontext
def list_seasons():
    """List all seasons"""
    all_seasons = Season.query.order_by(Season.start_date.desc()).all()

    if not all_seasons:
        click.echo("No seasons found.")
        return

    click.echo("Seasons:")
    for s in all_seasons:
        status = "🟢 ACTIVE" if s.is_active else "⚪ Ended"
        click.echo(f"  {s.id}: {s.name} - {status}")


# Fixture Commands
@cli.group()
def fixture():
    """Fixture result commands"""
    pass


@fixture.command("set-result")
@click.argument("fixture_id", type=int)
@click.argument("home", type=int)
@click.argument("away", type=int)
@click.option("--scorer", "scorers", multiple=True, help="Goal scorer (repeat per goal)")
@click.option("--assist", "assists", multiple=True, help="Assist provider (repeat per assist)")
@with_appcontext
def set_result(fixture_id, home, away, scorers, assists):
    """Set a fixture result and score all predictions"""
    try:
        result = FixtureResult(home=home, away=away, scorers=scorers, assists=assists)
        summary = ledger.set_result(fixture_id, result)
    except ScoringError as e:
        _fail(e.message, e)

    click.echo(
        f"✅ Scored {summary.predictions} predictions, "
        f"{summary.users_updated} users updated ({summary.points_delta:+d} points)"
    )


@fixture.command()
@click.argument("fixture_id", type=int)
@with_appcontext
def recalculate(fixture_id):
    """Recalculate points for a fixture that already has a result"""
    try:
        summary = ledger.recalculate(fixture_id)
    except ScoringError as e:
        _fail(e.message, e)

    click.echo(
        f"✅ Recalculated {summary.predictions} predictions "
        f"({summary.points_delta:+d} points)"
    )


@fixture.command("delete")
@click.argument("fixture_id", type=int)
@with_appcontext
def delete_fixture(fixture_id):
    """Delete a fixture and take back the points it awarded"""
    try:
        summary = ledger.delete_fixture(fixture_id)
    except ScoringError as e:
        _fail(e.message, e)

    click.echo(
        f"✅ Deleted fixture {fixture_id} with {summary.predictions} predictions "
        f"({summary.points_delta:+d} points)"
    )


# Scoring Commands
@cli.group()
def scoring():
    """Scoring diagnostics"""
    pass


@scoring.command()
@with_appcontext
def audit():
    """Check every user's total against their scored predictions"""
    mismatches = ledger.audit_ledger()

    if not mismatches:
        click.echo("✅ All user totals match their predictions")
        return

    click.echo(f"⚠️  {len(mismatches)} users out of sync:")
    for entry in mismatches:
        click.echo(
            f"  {entry['username']}: total {entry['total_points']}, "
            f"expected {entry['expected_points']} ({entry['difference']:+d})"
        )
    raise SystemExit(1)


# User Management Commands
@cli.group()
def user():
    """User management commands"""
    pass


@user.command("create")
@click.argument("username")
@click.argument("email")
@click.option("--display-name", help="Display name")
@click.option("--admin", is_flag=True, help="Grant admin privileges")
@with_appcontext
def create_user(username, email, display_name, admin):
    """Create a user"""
    existing = User.query.filter(
        (User.username == username) | (User.email == email)
    ).first()
    if existing:
        _fail(f"User with username '{username}' or email '{email}' already exists!")

    try:
        User.create_user(username, email, display_name=display_name, is_admin=admin)
        db.session.commit()
    except SQLAlchemyError as e:
        _fail("Database error creating user", e)

    click.echo(f"✅ Created user '{username}' ({email})")


# Database Commands
@cli.group("db")
def db_cmd():
    """Database commands"""
    pass


@db_cmd.command("init")
@with_appcontext
def init_db():
    """Initialize database tables"""
    db.create_all()
    click.echo("✅ Database tables created successfully!")


@db_cmd.command("upgrade")
@click.option("--revision", default="head", help="Revision to upgrade to")
@with_appcontext
def upgrade_db(revision):
    """Apply migrations to database"""
    upgrade(revision=revision)
    click.echo(f"✅ Migrations applied to {revision}")


@db_cmd.command()
@with_appcontext
def reset():
    """⚠️  DANGER: Drop and recreate all tables"""
    if not click.confirm("This will DELETE ALL DATA. Are you sure?"):
        click.echo("Cancelled.")
        return

    db.drop_all()
    db.create_all()
    click.echo("✅ Database reset successfully!")


# Info Commands
@cli.command()
@with_appcontext
def status():
    """Show application status"""
    click.echo("⚽ Prediction Pool Status")
    click.echo("=" * 40)

    # Database connection
    try:
        db.session.execute(text("SELECT 1"))
        click.echo("✅ Database: Connected")
    except SQLAlchemyError as e:
        _fail(f"Database: Error - {str(e)}")

    current_season = Season.get_active_season()
    if current_season:
        click.echo(f"✅ Active Season: {current_season.name}")
        fixture_count = Fixture.query.filter_by(season_id=current_season.id).count()
        finished_count = Fixture.query.filter_by(
            season_id=current_season.id, status=Fixture.STATUS_FINISHED
        ).count()
        click.echo(f"⚽ Fixtures: {finished_count}/{fixture_count} finished")
    else:
        click.echo("⚠️  Active Season: None")

    click.echo(f"👥 Users: {User.query.count()}")
    click.echo(f"🕒 Checked at {datetime.now().isoformat(timespec='seconds')}")


if __name__ == "__main__":
    with app.app_context():
        cli()
