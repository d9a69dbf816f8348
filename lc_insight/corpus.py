"""
Problem corpus lookups.

The corpus itself is seeded by offline scripts; these helpers only read it.
"""

import re
from typing import Dict, Iterable, List, Optional

from sqlalchemy.orm import Session

from .models import Problem

_FRONTEND_ID_PATTERN = re.compile(r"^\s*(\d+)\.")


def parse_frontend_id(title: str) -> Optional[str]:
    """Extract the frontend id from a "<id>. Title" string."""
    if not isinstance(title, str):
        return None
    match = _FRONTEND_ID_PATTERN.match(title)
    return match.group(1) if match else None


def ratings_by_problem_id(db: Session, ids: Iterable[str]) -> Dict[str, Optional[float]]:
    """Batch-resolve ratings by frontend id; unknown ids map to None."""
    ids = [str(i) for i in ids]
    if not ids:
        return {}

    rows = db.query(Problem.id, Problem.rating).filter(Problem.id.in_(set(ids))).all()
    found = {problem_id: rating for problem_id, rating in rows}
    return {i: found.get(i) for i in ids}


def ratings_by_question_id(db: Session, question_ids: Iterable[str]) -> Dict[str, Optional[float]]:
    """Batch-resolve ratings by internal question id in one query."""
    question_ids = {str(q) for q in question_ids if q}
    if not question_ids:
        return {}

    rows = db.query(Problem.question_id, Problem.rating).filter(
        Problem.question_id.in_(question_ids)
    ).all()
    return {str(question_id): rating for question_id, rating in rows}


def problem_to_candidate(problem: Problem) -> Dict:
    """Candidate dict consumed by the recommendation scorer."""
    return {
        "id": problem.id,
        "title": problem.title,
        "slug": problem.title_slug,
        "rating": problem.rating,
        "difficulty": problem.difficulty,
        "tags": problem.tag_list,
    }


def tag_token_patterns(tag: str) -> List[str]:
    """LIKE patterns matching `tag` as a whole token of a comma-separated column."""
    return [tag, f"{tag},%", f"%,{tag}", f"%,{tag},%"]
