from __future__ import annotations

import itertools

import pytest

from korsify.schema.course_content import CourseStructure, GenerationOptions, LessonContent, ModuleContent, QuizContent, QuizQuestion
from korsify.services.materialization import build_result, extract_source_references, lesson_title, materialize_course, module_title, plan_course


def _ids():
  counter = itertools.count(1)
  return lambda: f"row-{next(counter)}"


def _structure() -> CourseStructure:
  quiz = QuizContent(title="Basics", questions=[QuizQuestion(question="What is a cell?", options=["Unit of life", "A rock"], correct_answer="Unit of life")])
  return CourseStructure(
    title="Biology",
    description="Intro course",
    difficulty_level="beginner",
    modules=[
      ModuleContent(
        title="Cells",
        description="All about cells",
        lessons=[
          LessonContent(title="Cell Basics", content="Cells are the smallest unit of life [1]. They divide.", estimated_duration=15),
          LessonContent(title="Lesson 1.2: Organelles", content="No citations here.", estimated_duration=0),
        ],
        quiz=quiz,
      ),
      ModuleContent(title="Module 2: Cells", lessons=[LessonContent(title="Cell Basics", content="Repeat.")]),
    ],
  )


def test_titles_are_numbered_once() -> None:
  assert module_title(1, "Cells") == "Module 1: Cells"
  assert module_title(2, "Module 2: Cells") == "Module 2: Cells"
  assert lesson_title(3, 2, "Organelles") == "Lesson 3.2: Organelles"
  assert lesson_title(1, 2, "Lesson 1.2: Organelles") == "Lesson 1.2: Organelles"


def test_extract_source_references_from_citations() -> None:
  content = "Intro sentence. Cells are the smallest unit of life [1]. Mitochondria make energy [2]."
  references = extract_source_references(content, "doc-9", "bio.pdf")

  assert [reference["id"] for reference in references] == ["ref-doc-9-1", "ref-doc-9-2"]
  first = references[0]
  assert first["documentId"] == "doc-9"
  assert first["documentName"] == "bio.pdf"
  assert first["text"] == "Cells are the smallest unit of life"
  assert first["startOffset"] == 0
  assert first["endOffset"] == len(content)
  assert references[1]["text"] == "Mitochondria make energy"


def test_extract_source_references_without_citations() -> None:
  assert extract_source_references("Plain text.", "doc-9", "bio.pdf") == []


def test_plan_course_builds_ordered_rows() -> None:
  plan = plan_course(_structure(), course_id="course-1", create_course=True, creator_id="user-1", document_id="doc-1", document_name="bio.pdf", options=GenerationOptions(), id_factory=_ids())

  assert [module.title for module in plan.modules] == ["Module 1: Cells", "Module 2: Cells"]
  assert [module.order_index for module in plan.modules] == [0, 1]
  assert [lesson.title for lesson in plan.lessons] == ["Lesson 1.1: Cell Basics", "Lesson 1.2: Organelles", "Lesson 2.1: Cell Basics"]
  assert plan.lessons[1].estimated_duration == 10
  assert plan.modules[0].estimated_duration == 25
  assert plan.lessons[0].source_references[0]["id"] == "ref-doc-1-1"

  quiz = plan.quizzes[0]
  assert quiz.title == "Module 1: Cells - Module Quiz"
  assert quiz.module_id == plan.modules[0].module_id
  assert quiz.lesson_id is None
  assert quiz.passing_score == 70
  assert quiz.max_attempts == 3
  assert quiz.questions[0]["correctAnswer"] == "Unit of life"

  assert plan.course.difficulty_level == "beginner"
  assert plan.course.language == "English"


@pytest.mark.anyio
async def test_materialize_course_saves_plan_and_builds_result(courses_repo) -> None:
  structure = _structure()
  plan = await materialize_course(structure, courses_repo=courses_repo, course_id="course-1", creator_id="user-1", document_id="doc-1", document_name="bio.pdf", options=GenerationOptions())

  assert courses_repo.plans == [plan]
  assert plan.course.create is True

  result = build_result(structure, plan)
  assert result["courseId"] == "course-1"
  assert result["moduleCount"] == 2
  assert result["lessonCount"] == 3
  assert result["quizCount"] == 1
  assert result["modules"][0]["lessons"][0]["estimatedDuration"] == 15
