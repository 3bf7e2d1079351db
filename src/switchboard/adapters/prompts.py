"""Prompt construction shared by the LLM-backed adapters."""

from __future__ import annotations

import json

from switchboard.models.request import OperationType, ProcessingRequest

_INSTRUCTIONS: dict[OperationType, str] = {
    OperationType.CLASSIFY_MESSAGE: (
        "Classify the following customer message by category, intent, "
        "urgency, and topics. Give a confidence between 0 and 1."
    ),
    OperationType.GENERATE_RESPONSE: (
        "Generate a helpful, professional response to the customer message. "
        "Flag it for human review if you are unsure or the topic is sensitive."
    ),
    OperationType.ANALYZE_SENTIMENT: (
        "Analyze the sentiment of the following text. Score from -1 "
        "(very negative) to 1 (very positive)."
    ),
    OperationType.EXTRACT_ENTITIES: (
        "Extract named entities (people, organizations, products, locations, "
        "dates, order numbers) with character offsets into the text."
    ),
    OperationType.DETECT_LANGUAGE: (
        "Detect the language of the following text. Answer with an "
        "ISO 639-1 code."
    ),
    OperationType.SUMMARIZE_CONVERSATION: (
        "Summarize the conversation concisely and list its key points."
    ),
    OperationType.MODERATE_CONTENT: (
        "Check the following text for harassment, hate, self-harm, sexual, "
        "violent or otherwise unsafe content."
    ),
}

_ROLE_MAP = {"customer": "user", "agent": "assistant", "system": "system"}


def build_system_prompt(request: ProcessingRequest, operation: OperationType) -> str:
    parts: list[str] = []

    org = request.context.organization
    if org is not None:
        intro = f"You are an AI assistant for {org.name}"
        if org.industry:
            intro += f" in the {org.industry} industry"
        parts.append(intro + ".")
        if org.brand_voice:
            parts.append(f"Brand voice: {org.brand_voice}")
        if org.policies:
            parts.append(f"Company policies: {json.dumps(org.policies)}")
        if org.knowledge_base:
            parts.append(f"Knowledge base: {', '.join(org.knowledge_base)}")

    if operation == OperationType.TRANSLATE_TEXT:
        parts.append(
            "Translate the following text into "
            f"'{request.options.target_language}' and report the source language."
        )
    else:
        parts.append(_INSTRUCTIONS[operation])

    return "\n\n".join(parts)


def build_messages(request: ProcessingRequest, operation: OperationType) -> list[dict]:
    messages: list[dict] = [
        {"role": "system", "content": build_system_prompt(request, operation)},
    ]
    for msg in request.context.conversation_history:
        messages.append({"role": _ROLE_MAP[msg.role], "content": msg.content})
    messages.append({"role": "user", "content": request.input.text})
    return messages
