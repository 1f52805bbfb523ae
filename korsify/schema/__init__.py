"""Schema package exports."""

from .course_content import CourseOutline, CourseStructure, GenerationOptions, LessonContent, ModuleContent, OutlineModule, QuizContent, QuizQuestion

__all__ = ["CourseOutline", "CourseStructure", "GenerationOptions", "LessonContent", "ModuleContent", "OutlineModule", "QuizContent", "QuizQuestion"]
