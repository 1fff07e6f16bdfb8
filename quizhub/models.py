from pydantic import BaseModel, ConfigDict
from typing import Any, Dict, List, Optional


class QuizCreate(BaseModel):
    model_config = ConfigDict(strict=True)

    name: Optional[str] = None
    type: Optional[str] = None


# Same fields; the update route treats empty values as "not provided"
QuizUpdate = QuizCreate


class QuestionBatch(BaseModel):
    model_config = ConfigDict(strict=True)

    questions: List[Dict[str, Any]]
