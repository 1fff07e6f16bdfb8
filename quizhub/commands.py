"""
Maintenance commands for the quiz store.

Usage:
    flask --app quizhub.main init-db
    flask --app quizhub.main sweep-orphans [--dry-run]

Adding questions and deleting a quiz are several writes each. Without
MONGO_USE_TRANSACTIONS a crash between those writes can leave questions that
no quiz links to, or quizzes that link to deleted questions. sweep-orphans
repairs both and can be run from cron; running it twice changes nothing.
"""
import logging
import click
from flask.cli import with_appcontext

from quizhub.database import quizzes_collection, questions_collection, ensure_indexes

logger = logging.getLogger(__name__)


def sweep_orphans(dry_run=False):
    """
    Deletes questions whose quiz is gone or that their quiz does not list,
    then pulls ids of missing questions out of every quiz.
    Returns (deleted question count, repaired quiz count).
    """
    quiz_ids = set()
    linked_ids = set()
    quiz_links = {}
    for quiz in quizzes_collection().find({}, {"questions": 1}):
        quiz_ids.add(quiz["_id"])
        links = quiz.get("questions") or []
        quiz_links[quiz["_id"]] = links
        linked_ids.update(links)

    orphan_ids = []
    kept_ids = set()
    for question in questions_collection().find({}, {"quiz": 1}):
        if question.get("quiz") in quiz_ids and question["_id"] in linked_ids:
            kept_ids.add(question["_id"])
        else:
            orphan_ids.append(question["_id"])

    dangling = {
        quiz_id: [qid for qid in links if qid not in kept_ids]
        for quiz_id, links in quiz_links.items()
    }
    dangling = {quiz_id: ids for quiz_id, ids in dangling.items() if ids}

    if dry_run:
        return len(orphan_ids), len(dangling)

    if orphan_ids:
        questions_collection().delete_many({"_id": {"$in": orphan_ids}})
    for quiz_id, ids in dangling.items():
        quizzes_collection().update_one({"_id": quiz_id}, {"$pull": {"questions": {"$in": ids}}})

    logger.info("Sweep deleted %d orphaned questions, repaired %d quizzes", len(orphan_ids), len(dangling))
    return len(orphan_ids), len(dangling)


@click.command("sweep-orphans")
@click.option("--dry-run", is_flag=True, help="Report what would be repaired without writing.")
@with_appcontext
def sweep_orphans_command(dry_run):
    """Delete orphaned questions and unlink missing ones."""
    deleted, repaired = sweep_orphans(dry_run=dry_run)
    prefix = "Would delete" if dry_run else "Deleted"
    click.echo(f"{prefix} {deleted} orphaned questions; {repaired} quizzes with dangling question ids")


@click.command("init-db")
@with_appcontext
def init_db_command():
    """Create the indexes the quiz routes query by."""
    ensure_indexes()
    click.echo("Indexes created")


def register_commands(app):
    app.cli.add_command(sweep_orphans_command)
    app.cli.add_command(init_db_command)
