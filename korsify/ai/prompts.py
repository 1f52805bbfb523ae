"""Prompt builders for course generation."""

from __future__ import annotations

import json
from collections.abc import Sequence

from korsify.schema.course_content import CourseOutline, GenerationOptions

_PERSONA = "You are a 35+ year veteran instructor and researcher with expertise in educational content design."


def analysis_prompt(content: str, file_name: str) -> str:
  return f"""{_PERSONA}

Analyze the following document content and provide a detailed analysis including:
1. Main topics and themes
2. Learning objectives that can be derived
3. Complexity level assessment
4. Suggested course structure outline
5. Key concepts that need emphasis

Document: {file_name}
Content: {content}

Provide your analysis in a structured format.
"""


def _course_requirements(options: GenerationOptions) -> str:
  return f"""COURSE REQUIREMENTS:
- Language: {options.language}
- Target Audience: {options.target_audience} (adapt sophistication accordingly)
- Content Focus: {options.content_focus}
- Difficulty Level: {options.difficulty_level}"""


def outline_prompt(content: str, file_name: str, options: GenerationOptions) -> str:
  return f"""{_PERSONA}

Plan an online course built exclusively from the document below.

{_course_requirements(options)}
- Create exactly {options.module_count} modules, each with 3-5 lessons that build on each other.
- Module and lesson titles must be descriptive and must NOT include "Module 1:" or "Lesson 1.1:" prefixes.

Respond with JSON only:
{{"title": str, "description": str, "estimatedDuration": int (minutes), "difficultyLevel": "beginner"|"intermediate"|"advanced",
 "modules": [{{"title": str, "description": str, "lessonTitles": [str, ...]}}]}}

Document: {file_name}
Content: {content}
"""


def module_batch_prompt(content: str, outline: CourseOutline, module_indexes: Sequence[int], options: GenerationOptions) -> str:
  planned = [{"position": index + 1, **outline.modules[index].to_payload()} for index in module_indexes]
  exercises = (
    '- Include hands-on practice exercises in each lesson, formatted as <div class="bg-yellow-50 border-l-4 border-yellow-500 p-4 my-4 rounded"><h4>Practice Exercise</h4>...</div> with solutions.'
    if options.include_exercises
    else "- Do not include practice exercises."
  )
  examples = (
    '- Include real-world examples from the source, formatted as <div class="bg-green-50 border-l-4 border-green-500 p-4 my-4 rounded"><h4>Real-World Example</h4>...</div>.'
    if options.include_examples
    else "- Minimize examples; focus on core concepts only."
  )
  return f"""{_PERSONA}

You are writing part of the course "{outline.title}": {outline.description}

Write the full content for these planned modules:
{json.dumps(planned, ensure_ascii=False)}

{_course_requirements(options)}

CONTENT RULES:
- 1000-1200 words per lesson, formatted as HTML (<h2>, <h3>, <p>, <ul>, <ol>, <li>, <strong>, <em>).
- Begin each lesson with clear learning objectives and end with "Key Takeaways".
- Base ALL content exclusively on the document and add inline citations [1], [2] for every claim.
{exercises}
{examples}
- Keep the planned titles, without "Module N:" or "Lesson N.M:" prefixes.

Respond with JSON only: a list with one object per planned module, in order:
[{{"title": str, "description": str, "estimatedDuration": int, "lessons": [{{"title": str, "content": str (HTML), "estimatedDuration": int}}]}}]

Document content:
{content}
"""


def quiz_prompt(content: str, count: int, difficulty: str) -> str:
  return f"""Based on the following content, generate {count} quiz questions with these requirements:
- Difficulty: {difficulty}
- Mostly multiple choice questions with 4 options each, optionally some true/false
- Test understanding, not just memorization
- Include plausible distractors for multiple choice
- Provide explanations for correct answers

Content: {content}

Return a JSON array where every item has the structure:
{{"question": "Question text", "type": "multiple_choice" | "true_false", "options": ["option1", "option2", ...],
 "correctAnswer": "correct answer", "explanation": "Why this is correct"}}
"""
