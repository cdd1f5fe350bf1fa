import click
from flask.cli import with_appcontext

from library_app.extensions import db
from library_app.models.book import Book
from library_app.models.book_copy import Copy
from library_app.models.member import Member
from library_app.services.auth_service import AuthService


@click.command("init-db")
@with_appcontext
def init_db_command():
    """Create all tables (use `flask db upgrade` once migrations exist)."""
    db.create_all()
    click.echo("Database tables created.")


@click.command("create-user")
@click.argument("username")
@click.argument("email")
@click.password_option()
@click.option("--role", type=click.Choice(["admin", "librarian", "member"]), default="librarian")
@click.option("--member-id", type=int, default=None)
@with_appcontext
def create_user_command(username, email, password, role, member_id):
    """Create a staff (or member) login."""
    try:
        user = AuthService.register(username, email, password, role=role, member_id=member_id)
    except ValueError as e:
        raise click.ClickException(str(e))
    click.echo(f"Created {user.role} '{user.username}' (id={user.id}).")


@click.command("seed-demo")
@with_appcontext
def seed_demo_command():
    """A few books, copies and members to try the lending API against."""
    books = [
        ("Clean Code", "Robert C. Martin", "9780132350884", 2),
        ("The Pragmatic Programmer", "Andrew Hunt", "9780201616224", 3),
        ("Design Patterns", "Erich Gamma", "9780201633610", 1),
    ]
    for title, author, isbn, copies in books:
        book = Book(title=title, author=author, isbn=isbn)
        db.session.add(book)
        db.session.flush()
        for n in range(1, copies + 1):
            db.session.add(Copy(book_id=book.id, copy_number=f"C{n:03d}"))

    db.session.add_all([
        Member(name="Alice Reader", email="alice@example.org"),
        Member(name="Bob Borrower", email="bob@example.org"),
        Member(name="Carol Late", email="carol@example.org", status="suspended"),
    ])
    db.session.commit()
    click.echo("Seeded demo books, copies and members.")


def register_cli(app):
    app.cli.add_command(init_db_command)
    app.cli.add_command(create_user_command)
    app.cli.add_command(seed_demo_command)
