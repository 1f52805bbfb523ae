from __future__ import annotations

from korsify.schema.course_content import CourseStructure, LessonContent, ModuleContent, QuizContent, QuizQuestion
from korsify.services.deduplication import (
  calculate_similarity,
  clean_course_structure,
  deduplicate_questions,
  generate_unique_title,
  is_title_duplicate,
  levenshtein_distance,
  validate_course_structure,
)


def _question(text: str) -> QuizQuestion:
  return QuizQuestion(question=text, options=["a", "b"], correct_answer="a")


def test_levenshtein_distance() -> None:
  assert levenshtein_distance("kitten", "sitting") == 3
  assert levenshtein_distance("", "abc") == 3
  assert levenshtein_distance("same", "same") == 0


def test_similarity_is_case_insensitive_and_bounded() -> None:
  assert calculate_similarity("Intro to Cells", "intro to cells ") == 1.0
  assert calculate_similarity("", "") == 1.0
  assert 0.0 <= calculate_similarity("abc", "xyz") < 0.1


def test_is_title_duplicate_uses_threshold() -> None:
  assert is_title_duplicate("Cell Biology Basics", ["Cell Biology Basic"])
  assert not is_title_duplicate("Cell Biology Basics", ["Plant Respiration"])
  assert not is_title_duplicate("Cell Biology Basics", ["Cell Biology Basic"], threshold=0.99)


def test_deduplicate_questions_keeps_first_occurrence() -> None:
  questions = [_question("What is a cell?"), _question("What is a cell ?"), _question("Where does photosynthesis occur?")]
  unique = deduplicate_questions(questions)
  assert [question.question for question in unique] == ["What is a cell?", "Where does photosynthesis occur?"]


def test_generate_unique_title_appends_counter() -> None:
  assert generate_unique_title("Basics", ["Other"]) == "Basics"
  assert generate_unique_title("Basics", ["basics", "Basics (2)"]) == "Basics (3)"


def _structure() -> CourseStructure:
  lesson = LessonContent(title="Cells", content="Cells are units of life.")
  module_quiz = QuizContent(title="Quiz", questions=[_question("What is a cell?"), _question("What is a cell?")])
  return CourseStructure(
    title="Biology",
    modules=[
      ModuleContent(title="Cell Structure", lessons=[lesson, LessonContent(title="Cells", content="Again.")], quiz=module_quiz),
      ModuleContent(title="Cell Structures", lessons=[LessonContent(title="Membranes")]),
    ],
  )


def test_validate_course_structure_reports_duplicates() -> None:
  is_valid, issues = validate_course_structure(_structure())
  assert not is_valid
  assert 'Duplicate module title detected: "Cell Structures"' in issues
  assert 'Duplicate lesson title in module "Cell Structure": "Cells"' in issues
  assert any(issue.startswith("Duplicate quiz question") for issue in issues)


def test_validate_course_structure_reports_structural_problems() -> None:
  is_valid, issues = validate_course_structure(CourseStructure(title=" ", modules=[]))
  assert not is_valid
  assert issues == ["Course title is missing", "Course has no modules"]


def test_clean_course_structure_returns_deduplicated_copy() -> None:
  structure = _structure()
  cleaned = clean_course_structure(structure)

  assert [module.title for module in cleaned.modules] == ["Cell Structure"]
  assert [lesson.title for lesson in cleaned.modules[0].lessons] == ["Cells"]
  assert len(cleaned.modules[0].quiz.questions) == 1
  assert validate_course_structure(cleaned) == (True, [])
  # The original structure is untouched.
  assert len(structure.modules) == 2
