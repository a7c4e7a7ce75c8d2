"""
Classification collaborator.

``Classifier`` is the capability the lifecycle engine depends on. The OpenAI
implementation asks a hosted model for a JSON classification; the fallback
implementation never leaves the process and is what the engine substitutes
whenever a call fails. Which one is used is decided by settings.
"""
import json
import logging
import re
from typing import Optional

import openai
from openai import OpenAI
from pydantic import ValidationError as SchemaError

from grievance.core.clock import utcnow
from grievance.core.config import settings, DEPARTMENTS
from grievance.core.errors import CollaboratorError
from grievance.schemas.classification import Classification, SUMMARY_MAX_CHARS

logger = logging.getLogger(__name__)

CLASSIFICATION_PROMPT = """You are an AI assistant for a university campus grievance system. Analyze the student's grievance and provide a structured classification.

### DEPARTMENTS:
- hostel: Hostel issues (rooms, water, electricity, food, cleanliness, laundry)
- academics: Academic matters (exams, grades, professors, courses, library)
- transport: Bus, shuttle, parking issues
- it: WiFi, computer labs, email, software
- admin: Fee payment, certificates, ID cards, general administration
- security: Safety concerns, theft, unauthorized access

### URGENCY LEVELS:
- critical: Immediate safety risk, medical emergency, security threat
- high: Affecting daily routine significantly, time-sensitive
- medium: Inconvenient but manageable, can wait 2-3 days
- low: Minor issues, suggestions, general feedback

### INPUT:
Student Grievance: "{text}"
Student Location (if provided): "{location}"
Submission Time: "{timestamp}"

### OUTPUT FORMAT (JSON only):
{{
  "category": "string",
  "subCategory": "string",
  "department": "string",
  "urgency": "string",
  "urgencyScore": number,
  "summary": "string (max 100 chars)",
  "suggestedAction": "string",
  "keywords": ["array"],
  "sentiment": "string",
  "confidence": number,
  "requiresImmediate": boolean
}}

Respond ONLY with valid JSON, no additional text."""

ACKNOWLEDGEMENT_PROMPT = """You are a polite and professional campus support assistant. Write a short acknowledgement for a student who just filed a grievance.

Ticket ID: {ticket_code}
Student Name: {student_name}
Original Grievance: "{text}"
Category: {category}
Department: {department}
Urgency: {urgency}

Be empathetic, use the student's name, reference the issue, give a clear next step, include the ticket ID and stay under 150 words. Respond with the message text only."""

JSON_OBJECT = re.compile(r"\{[\s\S]*\}")


def fallback_classification(text: str) -> Classification:
    """The manual-review classification used whenever the collaborator fails."""
    return Classification(
        category="general",
        sub_category="other",
        department="admin",
        urgency="medium",
        urgency_score=0.5,
        summary=text[:SUMMARY_MAX_CHARS],
        suggested_action="Manual review required",
        keywords=[],
        sentiment="neutral",
        confidence=0.3,
        requires_immediate=False,
    )


def parse_classification(raw: Optional[str]) -> Classification:
    """
    Pull the first JSON object out of a model reply and validate it.
    Raises CollaboratorError if there is nothing usable.
    """
    match = JSON_OBJECT.search(raw or "")
    if not match:
        raise CollaboratorError("Classifier reply contained no JSON object")
    try:
        return Classification.model_validate(json.loads(match.group(0)))
    except (json.JSONDecodeError, SchemaError) as e:
        raise CollaboratorError(f"Classifier reply could not be parsed: {e}") from e


def template_acknowledgement(ticket_code: str, student_name: str, department: str) -> str:
    team = DEPARTMENTS.get(department, "Campus Support")
    return (
        f"Dear {student_name},\n\n"
        f"Thank you for submitting your grievance. It has been registered as {ticket_code} "
        f"and routed to {team}.\n\n"
        "You will receive updates on your registered email.\n\n"
        "Best regards,\nCampus Support Team"
    )


class Classifier:
    name = "base"

    def classify(self, text: str, location: str = "", timestamp: Optional[str] = None) -> Classification:
        raise NotImplementedError

    def acknowledge(self, ticket_code: str, student_name: str, text: str, classification: Classification) -> str:
        return template_acknowledgement(ticket_code, student_name, classification.department)


class FallbackClassifier(Classifier):
    name = "fallback"

    def classify(self, text: str, location: str = "", timestamp: Optional[str] = None) -> Classification:
        return fallback_classification(text)


class OpenAIClassifier(Classifier):
    name = "openai"

    def __init__(self, api_key: str, model: str = settings.OPENAI_MODEL, timeout: float = settings.CLASSIFIER_TIMEOUT_SECONDS, client: Optional[OpenAI] = None):
        self.model = model
        # Retries would multiply the timeout; a failed call falls back instead.
        self.client = client or OpenAI(api_key=api_key, timeout=timeout, max_retries=0)

    def _complete(self, prompt: str, json_mode: bool = False) -> str:
        kwargs = {}
        if json_mode:
            kwargs["response_format"] = {"type": "json_object"}
        try:
            resp = self.client.chat.completions.create(
                model=self.model,
                messages=[{"role": "user", "content": prompt}],
                **kwargs,
            )
        except openai.OpenAIError as e:
            raise CollaboratorError(f"OpenAI request failed: {e}") from e
        content = resp.choices[0].message.content
        if not content:
            raise CollaboratorError("OpenAI returned an empty reply")
        return content.strip()

    def classify(self, text: str, location: str = "", timestamp: Optional[str] = None) -> Classification:
        prompt = CLASSIFICATION_PROMPT.format(
            text=text,
            location=location,
            timestamp=timestamp or utcnow().isoformat(),
        )
        return parse_classification(self._complete(prompt, json_mode=True))

    def acknowledge(self, ticket_code: str, student_name: str, text: str, classification: Classification) -> str:
        prompt = ACKNOWLEDGEMENT_PROMPT.format(
            ticket_code=ticket_code,
            student_name=student_name,
            text=text,
            category=classification.category,
            department=classification.department,
            urgency=classification.urgency,
        )
        try:
            return self._complete(prompt)
        except CollaboratorError as e:
            logger.warning("Acknowledgement generation failed for %s: %s", ticket_code, e)
            return super().acknowledge(ticket_code, student_name, text, classification)


def build_classifier(backend: str = None, api_key: Optional[str] = None) -> Classifier:
    backend = (backend or settings.CLASSIFIER_BACKEND).lower()
    api_key = api_key if api_key is not None else settings.OPENAI_API_KEY
    if backend == "openai":
        if api_key:
            return OpenAIClassifier(api_key=api_key)
        logger.warning("CLASSIFIER_BACKEND=openai but OPENAI_API_KEY is unset; using fallback classifier")
    elif backend != "fallback":
        logger.warning("Unknown CLASSIFIER_BACKEND %r; using fallback classifier", backend)
    return FallbackClassifier()


_classifier: Optional[Classifier] = None


def get_classifier() -> Classifier:
    global _classifier
    if _classifier is None:
        _classifier = build_classifier()
    return _classifier
