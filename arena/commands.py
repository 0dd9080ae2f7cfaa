"""
Flask CLI commands.

    flask --app arena.main:create_app init-db
    flask --app arena.main:create_app create-admin --email admin@example.com
    flask --app arena.main:create_app ledger-audit --output audit.csv
"""
import csv
import sys

import click
from flask.cli import with_appcontext

from arena.extensions import db


@click.command("init-db")
@with_appcontext
def init_db():
    """Create all tables."""
    db.create_all()
    click.echo("Database tables created")


@click.command("create-admin")
@click.option("--email", required=True)
@click.option("--password", prompt=True, hide_input=True, confirmation_prompt=True)
@click.option("--display-name", default="Administrator")
@with_appcontext
def create_admin(email, password, display_name):
    """Register a user (or reuse an existing one) and grant the admin role."""
    from arena.models.user import User
    from arena.services.auth_service import register_user
    from arena.utils.permissions import ADMIN

    user = User.query.filter_by(email=email.strip().lower()).first()
    if user is None:
        user = register_user(email, password, display_name=display_name)
    user.role = ADMIN
    db.session.commit()
    click.echo(f"{user.email} ({user.id}) is now an admin")


@click.command("ledger-audit")
@click.option("--output", default=None, help="Write problems to this CSV file")
@with_appcontext
def ledger_audit(output):
    """Cross-check requests and ledger entries; exits 1 when problems are found."""
    from arena.services.ledger_service import ledger_integrity_report

    report = ledger_integrity_report()
    click.echo(f"Ledger status: {report['status']} ({report['problem_count']} problems)")

    if output:
        with open(output, "w", newline="") as f:
            writer = csv.writer(f)
            writer.writerow(["source_type", "request_id", "transaction_id", "issue"])
            for p in report["problems"]:
                writer.writerow([
                    p["source_type"], p.get("request_id", ""), p.get("transaction_id", ""), p["issue"],
                ])
    else:
        for p in report["problems"]:
            click.echo(f"  {p['source_type']} {p.get('request_id') or p.get('transaction_id')}: {p['issue']}")

    if report["problems"]:
        sys.exit(1)


def register_commands(app):
    app.cli.add_command(init_db)
    app.cli.add_command(create_admin)
    app.cli.add_command(ledger_audit)
