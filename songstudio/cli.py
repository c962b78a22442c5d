# songstudio/cli.py
"""
Comandos `flask songs ...`:
  - create-teacher USERNAME PASSWORD
  - refresh          (una pasada de poll sobre las canciones en generating)
  - audit-ledger     (saldo vs suma del ledger por cuenta)
"""
from __future__ import annotations

import click
from flask.cli import AppGroup

from songstudio.database import db
from songstudio.errors import SongStudioError
from songstudio.models import Profile, Song, SongStatus
from songstudio.routes.songs import build_lifecycle
from songstudio.services import accounts, credits

songs_cli = AppGroup("songs", help="Herramientas de operación de SongStudio.")


@songs_cli.command("create-teacher")
@click.argument("username")
@click.argument("password")
@click.option("--email", default=None)
def create_teacher(username, password, email):
    p = accounts.create_teacher(username, password, email=email)
    click.echo(f"Profesor creado: {p.username} ({p.id})")


@songs_cli.command("refresh")
def refresh():
    lifecycle = build_lifecycle()
    rows = (
        db.session.query(Song)
        .filter(Song.status == SongStatus.generating.value, Song.task_id.isnot(None))
        .all()
    )
    for song in rows:
        try:
            result = lifecycle.poll(song.task_id, song.user_id)
        except SongStudioError as e:
            click.echo(f"{song.task_id}: ERROR {e.message}")
            continue
        click.echo(f"{song.task_id}: {result['status']}")
    click.echo(f"{len(rows)} canciones revisadas")


@songs_cli.command("audit-ledger")
def audit_ledger():
    bad = 0
    for p in db.session.query(Profile).order_by(Profile.username).all():
        total = credits.ledger_sum(p.id)
        if total != int(p.credits or 0):
            bad += 1
            click.echo(f"[X] {p.username}: saldo={p.credits} ledger={total}")
    click.echo("Ledger OK" if not bad else f"{bad} cuentas con diferencias")
