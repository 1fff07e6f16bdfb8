import logging
from bson import ObjectId
from flask import current_app
from pymongo import ASCENDING

from quizhub.extensions import mongo

logger = logging.getLogger(__name__)


def quizzes_collection():
    return mongo.db["quizzes"]


def questions_collection():
    return mongo.db["questions"]


def options_collection():
    return mongo.db["options"]


def to_object_id(value):
    """Returns an ObjectId for `value`, or None when it is not a valid id."""
    if isinstance(value, ObjectId):
        return value
    if isinstance(value, str) and ObjectId.is_valid(value):
        return ObjectId(value)
    return None


def find_quiz(quiz_id, session=None):
    oid = to_object_id(quiz_id)
    if oid is None:
        return None
    return quizzes_collection().find_one({"_id": oid}, session=session)


def find_question(question_id, session=None):
    oid = to_object_id(question_id)
    if oid is None:
        return None
    return questions_collection().find_one({"_id": oid}, session=session)


def populate_options(question):
    options = question.get("options")
    if not isinstance(options, list):
        return question

    refs = [to_object_id(option) for option in options]
    wanted = [ref for ref in refs if ref is not None]
    if not wanted:
        return question

    found = {doc["_id"]: doc for doc in options_collection().find({"_id": {"$in": wanted}})}
    question["options"] = [
        found.get(ref, option) if ref is not None else option
        for ref, option in zip(refs, options)
    ]
    return question


def populate_questions(quiz, with_options=False):
    """
    Replaces the quiz's question id list with the question documents, keeping the stored order.
    Ids that no longer resolve are dropped.
    """
    ids = quiz.get("questions") or []
    docs = {doc["_id"]: doc for doc in questions_collection().find({"_id": {"$in": ids}})}

    populated = []
    for question_id in ids:
        question = docs.get(question_id)
        if question is None:
            continue
        if with_options:
            question = populate_options(question)
        populated.append(question)

    quiz["questions"] = populated
    return quiz


def run_in_transaction(callback):
    """
    Calls `callback(session)`. With MONGO_USE_TRANSACTIONS the session carries a transaction
    and every write made through it commits or aborts together; otherwise session is None.
    """
    if not current_app.config.get("MONGO_USE_TRANSACTIONS"):
        return callback(None)

    with mongo.cx.start_session() as session:
        return session.with_transaction(callback)


def ensure_indexes():
    quizzes_collection().create_index([("owner", ASCENDING)])
    questions_collection().create_index([("quiz", ASCENDING)])
    logger.info("Indexes ensured on quizzes.owner and questions.quiz")
