#!/usr/bin/env python3
"""
IPL Wager Management CLI

Command-line administration for the IPL Wager application: accounts,
matches, settlement and the leaderboard.
"""

import logging

import click
from flask.cli import with_appcontext
from flask_migrate import migrate, upgrade
from sqlalchemy.exc import SQLAlchemyError

from app import create_app, db
from app.errors import WagerError
from app.models.user import ROLE_ADMIN
from app.services import (
    leaderboard_service,
    match_service,
    settlement_service,
    user_service,
)
from app.storage import get_storage
from app.utils.timezone_utils import format_match_time

app = create_app()


@click.group()
def cli():
    """IPL Wager Management CLI"""
    pass


# User Management Commands
@cli.group()
def user():
    """User management commands"""
    pass


@user.command()
@click.argument("username")
@click.argument("full_name")
@click.password_option()
@with_appcontext
def create_admin(username, full_name, password):
    """Create an admin user"""
    try:
        admin = user_service.create_user(
            username=username, password=password, full_name=full_name, role=ROLE_ADMIN
        )
        click.echo(f"✅ Created admin user '{admin.username}' ({admin.full_name})")
    except WagerError as e:
        click.echo(f"❌ {e.message}")
    except SQLAlchemyError as e:
        click.echo(f"❌ Database error creating user: {str(e)}")
        logging.error(f"Admin creation failed - SQL error: {e}")


@user.command("list")
@with_appcontext
def list_users():
    """List all users"""
    users = user_service.list_users()

    if not users:
        click.echo("No users found.")
        return

    click.echo("Users:")
    for u in users:
        status = "🟢" if u.is_active else "🔴"
        role = "👑" if u.is_admin else "  "
        click.echo(f"  {status} {role} {u.id}: {u.username} - {u.full_name}")


# Match Commands
@cli.group()
def match():
    """Match management commands"""
    pass


@match.command()
@click.argument("team1")
@click.argument("team2")
@click.argument("venue")
@click.argument(
    "match_date",
    type=click.DateTime(formats=["%Y-%m-%d %H:%M", "%Y-%m-%dT%H:%M"]),
)
@with_appcontext
def create(team1, team2, venue, match_date):
    """Create a match; MATCH_DATE is read in the application timezone"""
    try:
        new_match = match_service.create_match(team1, team2, venue, match_date)
        click.echo(
            f"✅ Created match {new_match.id}: {new_match.team1} vs {new_match.team2} "
            f"on {format_match_time(new_match.match_date)}"
        )
    except WagerError as e:
        click.echo(f"❌ {e.message}")


@match.command("list")
@click.option("--all", "include_past", is_flag=True, help="Include past matches")
@with_appcontext
def list_matches(include_past):
    """List upcoming matches"""
    matches = match_service.list_matches(include_past=include_past)

    if not matches:
        click.echo("No matches found.")
        return

    click.echo("Matches:")
    for m in matches:
        result = m.winner or ("abandoned" if m.is_abandoned else m.status)
        click.echo(
            f"  {m.id}: {m.team1} vs {m.team2} @ {m.venue}, "
            f"{format_match_time(m.match_date)} - {result}"
        )


@match.command()
@click.argument("match_id", type=int)
@click.option("--winner", help="Winning team")
@click.option("--abandoned", is_flag=True, help="Mark the match abandoned")
@click.option("--reset", is_flag=True, help="Revoke the current result")
@with_appcontext
def settle(match_id, winner, abandoned, reset):
    """Declare, change or revoke a match result"""
    if sum([bool(winner), abandoned, reset]) != 1:
        click.echo("❌ Pass exactly one of --winner, --abandoned or --reset")
        return

    try:
        settled = settlement_service.settle_match(
            match_id, winner=winner, is_abandoned=abandoned
        )
        summary = settlement_service.get_settlement_summary(match_id)
    except WagerError as e:
        click.echo(f"❌ {e.message}")
        return

    click.echo(f"✅ Match {settled.id} is now {settled.status}")
    click.echo(
        f"   {len(summary['entries'])} wagers settled, "
        f"{summary['total_awarded']:.2f} awarded, "
        f"{summary['total_forfeited']:.2f} forfeited"
    )


# Leaderboard
@cli.command()
@click.option("--limit", type=int, default=20, help="Number of rows to show")
@with_appcontext
def leaderboard(limit):
    """Show the leaderboard"""
    rows = leaderboard_service.project_leaderboard()[:limit]

    if not rows:
        click.echo("No users found.")
        return

    click.echo(f"{'#':>3}  {'User':<20} {'Points':>10} {'W':>4} {'L':>4} {'P':>4}")
    for row in rows:
        click.echo(
            f"{row['rank']:>3}  {row['username']:<20} {row['total_points']:>10.2f} "
            f"{row['winning_bets_count']:>4} {row['losing_bets_count']:>4} "
            f"{row['pending_bets_count']:>4}"
        )


# Database Commands
@cli.group()
def db_cmd():
    """Database commands"""
    pass


@db_cmd.command()
@with_appcontext
def init_db():
    """Initialize database tables"""
    try:
        db.create_all()
        click.echo("✅ Database tables created successfully!")
    except SQLAlchemyError as e:
        click.echo(f"❌ Error initializing database: {str(e)}")


@db_cmd.command()
@with_appcontext
def reset():
    """⚠️  DANGER: Drop and recreate all tables"""
    if not click.confirm("This will DELETE ALL DATA. Are you sure?"):
        click.echo("Cancelled.")
        return

    try:
        db.drop_all()
        db.create_all()
        click.echo("✅ Database reset successfully!")
    except SQLAlchemyError as e:
        click.echo(f"❌ Error resetting database: {str(e)}")


@db_cmd.command()
@click.option("-m", "--message", required=True, help="Migration message")
@with_appcontext
def create_migration(message):
    """Create a new migration"""
    migrate(message=message)
    click.echo(f"✅ Migration created: {message}")


@db_cmd.command()
@click.option("--revision", default="head", help="Revision to upgrade to")
@with_appcontext
def apply_migrations(revision):
    """Apply migrations to database"""
    upgrade(revision=revision)
    click.echo(f"✅ Migrations applied to {revision}")


@cli.command()
@with_appcontext
def status():
    """Show application status"""
    click.echo("🏏 IPL Wager Application Status")
    click.echo("=" * 40)

    storage = get_storage()
    try:
        storage.ping()
        click.echo(f"✅ Storage: {storage.name} connected")
    except WagerError as e:
        click.echo(f"❌ Storage: {storage.name} - {e.message}")
        return

    users = user_service.list_users()
    click.echo(f"👥 Active Users: {len([u for u in users if u.is_active])}")

    matches = match_service.list_matches(include_past=True)
    resolved = len([m for m in matches if m.is_resolved])
    click.echo(f"🏏 Matches: {resolved}/{len(matches)} resolved")

    wagers = storage.list_wagers()
    click.echo(f"🎲 Wagers: {len(wagers)}")


if __name__ == "__main__":
    with app.app_context():
        cli()
