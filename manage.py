import os

import click
from flask import current_app
from flask.cli import FlaskGroup
from flask_migrate import Migrate

from planner.app import create_app, db
from planner.models import Enrollment
from planner.services.certificates import issue_certificate
from planner.services.progress import refresh_progress
from planner.shared.errors import PlanningError


migrate = Migrate()


def create_planner_app():
    app = create_app()
    migrate.init_app(app, db)
    return app


cli = FlaskGroup(create_app=create_planner_app)


@cli.command("gen_cert")
@click.option("--enrollment", "enrollment_id", required=True, type=int)
@click.option("--out", "out_path", default=None, help="Output file or directory")
def gen_cert(enrollment_id: int, out_path: str | None):
    """Issue a certificate for an enrollment and write the PDF."""
    try:
        doc = issue_certificate(enrollment_id)
    except PlanningError as exc:
        click.echo(f"{exc.kind}: {exc.message}", err=True)
        raise SystemExit(1)
    path = out_path or doc.filename
    if os.path.isdir(path):
        path = os.path.join(path, doc.filename)
    with open(path, "wb") as fh:
        fh.write(doc.content)
    click.echo(f"{doc.number} {path}")


@cli.command("recompute_progress")
@click.option("--training", "training_id", type=int, default=None)
def recompute_progress(training_id: int | None):
    """Recompute stored progress snapshots."""
    query = Enrollment.query
    if training_id is not None:
        query = query.filter_by(training_id=training_id)
    total = completed = 0
    for enrollment in query.order_by(Enrollment.id):
        snap = refresh_progress(enrollment)
        total += 1
        if snap.completed:
            completed += 1
    db.session.commit()
    summary = f"enrollments={total} completed={completed}"
    click.echo(summary)
    current_app.logger.info("[PROGRESS-RECOMPUTE] %s", summary)


if __name__ == "__main__":
    cli()
