from datetime import datetime, timezone
import logging

from flask import Blueprint, request, jsonify
from flask_jwt_extended import jwt_required, get_jwt_identity
from pydantic import ValidationError
from pymongo import ReturnDocument
from pymongo.errors import PyMongoError

from quizhub.database import (
    quizzes_collection,
    questions_collection,
    to_object_id,
    find_quiz,
    find_question,
    populate_questions,
    run_in_transaction,
)
from quizhub.models import QuizCreate, QuizUpdate, QuestionBatch
from quizhub.utils.serializers import serialize

logger = logging.getLogger(__name__)

router = Blueprint("quizzes", __name__)

# Never taken from a question update body
IMMUTABLE_QUESTION_FIELDS = ("_id", "id", "quiz")


def _not_found(what, ident):
    logger.warning("%s not found: %s", what, ident)
    return jsonify({"message": f"{what} not found"}), 404


def _invalid_input(reason):
    logger.warning("Invalid input: %s", reason)
    return jsonify({"message": "Invalid input format"}), 400


def _server_error(e):
    logger.error("Server error: %s", str(e), exc_info=True)
    return jsonify({"message": "Server error"}), 500


def _now():
    return datetime.now(timezone.utc)


class QuizGone(Exception):
    """The quiz was deleted while questions were being linked to it."""


def _bad_field_names(doc):
    # Mongo reads these as operators or nested paths, or rejects them outright
    return [key for key in doc if not key or key.startswith("$") or "." in key]


@router.route("/create", methods=["POST"])
@jwt_required()
def create_quiz():
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        return _invalid_input("quiz body is not an object")
    try:
        quiz_in = QuizCreate.model_validate(data)
    except ValidationError as e:
        return _invalid_input(e.errors())

    now = _now()
    quiz = {
        "name": quiz_in.name,
        "type": quiz_in.type,
        "owner": get_jwt_identity(),
        "questions": [],
        "views": 0,
        "created_at": now,
        "updated_at": now,
    }

    try:
        result = quizzes_collection().insert_one(quiz)
    except PyMongoError as e:
        return _server_error(e)

    quiz["_id"] = result.inserted_id
    logger.info("Quiz %s created by %s", quiz["_id"], quiz["owner"])
    return jsonify(serialize(quiz)), 201


@router.route("/<quiz_id>/questions", methods=["POST"])
@jwt_required()
def add_questions(quiz_id):
    try:
        quiz = find_quiz(quiz_id)
        if not quiz:
            return _not_found("Quiz", quiz_id)

        data = request.get_json(silent=True)
        if not isinstance(data, dict):
            return _invalid_input("questions body is not an object")
        try:
            batch = QuestionBatch.model_validate(data)
        except ValidationError as e:
            return _invalid_input(e.errors())
        for payload in batch.questions:
            if _bad_field_names(payload):
                return _invalid_input("question field names may not be empty, start with '$' or contain '.'")

        quiz_oid = quiz["_id"]

        def create_and_link(session):
            saved_questions = []
            for payload in batch.questions:
                question = {key: value for key, value in payload.items() if key != "_id"}
                question["quiz"] = quiz_oid
                result = questions_collection().insert_one(question, session=session)
                question["_id"] = result.inserted_id
                saved_questions.append(question)

            if saved_questions:
                linked = quizzes_collection().update_one(
                    {"_id": quiz_oid},
                    {
                        "$push": {"questions": {"$each": [q["_id"] for q in saved_questions]}},
                        "$set": {"updated_at": _now()},
                    },
                    session=session,
                )
                if linked.matched_count == 0:
                    # Aborts the transaction when there is one
                    raise QuizGone([q["_id"] for q in saved_questions])
            return saved_questions

        try:
            saved_questions = run_in_transaction(create_and_link)
        except QuizGone as gone:
            questions_collection().delete_many({"_id": {"$in": gone.args[0]}})
            return _not_found("Quiz", quiz_id)

        quiz = find_quiz(quiz_oid)
        if not quiz:
            return _not_found("Quiz", quiz_id)

        logger.info("Added %d questions to quiz %s", len(saved_questions), quiz_oid)
        return jsonify({"quiz": serialize(quiz), "questions": serialize(saved_questions)}), 201
    except PyMongoError as e:
        return _server_error(e)


@router.route("/myquizzes", methods=["GET"])
@jwt_required()
def get_my_quizzes():
    try:
        quizzes = [
            populate_questions(quiz)
            for quiz in quizzes_collection().find({"owner": get_jwt_identity()})
        ]
        return jsonify(serialize(quizzes)), 200
    except PyMongoError as e:
        return _server_error(e)


@router.route("/<quiz_id>", methods=["GET"])
def get_quiz_detail(quiz_id):
    try:
        quiz = find_quiz(quiz_id)
        if not quiz:
            return _not_found("Quiz", quiz_id)

        quiz = populate_questions(quiz, with_options=True)
        return jsonify(serialize(quiz)), 200
    except PyMongoError as e:
        return _server_error(e)


@router.route("/<quiz_id>/views", methods=["PUT"])
def increment_views(quiz_id):
    quiz_oid = to_object_id(quiz_id)
    if quiz_oid is None:
        return _not_found("Quiz", quiz_id)

    try:
        # Single atomic $inc, concurrent callers never read the same count
        quiz = quizzes_collection().find_one_and_update(
            {"_id": quiz_oid},
            {"$inc": {"views": 1}},
            return_document=ReturnDocument.AFTER,
        )
    except PyMongoError as e:
        return _server_error(e)

    if not quiz:
        return _not_found("Quiz", quiz_id)

    logger.info("Incrementing views for quiz %s, new count: %s", quiz_oid, quiz["views"])
    return jsonify({"message": "Views count incremented", "views": quiz["views"]}), 200


@router.route("/<quiz_id>", methods=["DELETE"])
def delete_quiz(quiz_id):
    quiz_oid = to_object_id(quiz_id)
    if quiz_oid is None:
        return _not_found("Quiz", quiz_id)

    def delete_with_questions(session):
        deleted_quiz = quizzes_collection().find_one_and_delete({"_id": quiz_oid}, session=session)
        if not deleted_quiz:
            return None
        result = questions_collection().delete_many({"quiz": quiz_oid}, session=session)
        return result.deleted_count

    try:
        deleted_count = run_in_transaction(delete_with_questions)
    except PyMongoError as e:
        return _server_error(e)

    if deleted_count is None:
        return _not_found("Quiz", quiz_id)

    logger.info("Quiz %s deleted along with %d questions", quiz_oid, deleted_count)
    return jsonify({"message": "Quiz and associated questions deleted successfully"}), 200


@router.route("/<quiz_id>", methods=["PUT"])
@jwt_required()
def update_quiz(quiz_id):
    try:
        quiz = find_quiz(quiz_id)
        if not quiz:
            return _not_found("Quiz", quiz_id)

        data = request.get_json(silent=True)
        if not isinstance(data, dict):
            return _invalid_input("quiz body is not an object")
        try:
            quiz_in = QuizUpdate.model_validate(data)
        except ValidationError as e:
            return _invalid_input(e.errors())

        # Empty strings count as "not provided"
        update_fields = {}
        if quiz_in.name:
            update_fields["name"] = quiz_in.name
        if quiz_in.type:
            update_fields["type"] = quiz_in.type

        if update_fields:
            update_fields["updated_at"] = _now()
            quiz = quizzes_collection().find_one_and_update(
                {"_id": quiz["_id"]},
                {"$set": update_fields},
                return_document=ReturnDocument.AFTER,
            )
            if not quiz:
                return _not_found("Quiz", quiz_id)

        logger.info("Quiz %s updated: %s", quiz["_id"], sorted(update_fields))
        return jsonify({"message": "Quiz updated successfully", "quiz": serialize(quiz)}), 200
    except PyMongoError as e:
        return _server_error(e)


@router.route("/<quiz_id>/questions/<question_id>", methods=["PUT"])
@jwt_required()
def update_question(quiz_id, question_id):
    try:
        quiz = find_quiz(quiz_id)
        if not quiz:
            return _not_found("Quiz", quiz_id)

        # A question from another quiz is reported exactly like a missing one
        question = find_question(question_id)
        if not question or question.get("quiz") != quiz["_id"]:
            return _not_found("Question", question_id)

        data = request.get_json(silent=True)
        if not isinstance(data, dict):
            return _invalid_input("question body is not an object")
        if _bad_field_names(data):
            return _invalid_input("question field names may not be empty, start with '$' or contain '.'")

        update_fields = {
            key: value for key, value in data.items() if key not in IMMUTABLE_QUESTION_FIELDS
        }

        if update_fields:
            question = questions_collection().find_one_and_update(
                {"_id": question["_id"], "quiz": quiz["_id"]},
                {"$set": update_fields},
                return_document=ReturnDocument.AFTER,
            )
            if not question:
                return _not_found("Question", question_id)

        logger.info("Question %s updated: %s", question["_id"], sorted(update_fields))
        return jsonify({"message": "Question updated successfully", "question": serialize(question)}), 200
    except PyMongoError as e:
        return _server_error(e)
