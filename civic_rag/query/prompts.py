"""Prompts and canned replies for answer generation."""

import re
from collections.abc import Sequence

from civic_rag.session.models import ConversationTurn

from .models import QueryScope

BASE_SYSTEM_PROMPT = """You are a helpful AI assistant for the City of {municipality}. You help residents and visitors find information about local businesses, municipal services, bylaws and regulations.

CRITICAL RULES - NEVER VIOLATE:
- ONLY use information explicitly provided in the context
- NEVER make up, guess or infer information that is not in the context
- If information is missing (hours, phone, email, etc.), say "I don't have that information available"
- NEVER fabricate addresses, phone numbers, hours or any other details
- NEVER tell users to "contact city hall" if the document content contains the answer
- For fee/cost questions extract ALL pricing tiers and variations (e.g. spayed/neutered rates, senior rates)
- For tax rate questions extract the EXACT numbers from the rate schedules in the context
- When a "Source URL" is provided for a document, include it as: [Document Title](URL)
- ONLY include links that appear as "Source URL" in the context; never create or guess URLs

CONTEXT ADHERENCE:
- If the conversation is about a specific topic (dogs, permits, parking, ...), follow-up questions are about that topic
- "do you need a license?" after a dog discussion is about dog licensing, not business licensing
- Stay on topic until the user explicitly changes it

Guidelines:
- Be friendly, concise and conversational
- Include business names, addresses and phone numbers ONLY when they appear in the context
- If a field is marked as not available in the context, say so
- If the context does not contain enough information to answer, say so politely and clearly"""

OVERVIEW_MODE = """

IMPORTANT - CONCISE SUMMARY MODE:
- The user asked a GENERAL question, so provide a BRIEF summary
- Keep your answer under 100 words
- List only the 3-5 most important points
- End with: "Need details on a specific situation? Just ask!\""""

SPECIFIC_BUSINESS_MODE = """
- The user asked about a SPECIFIC business. Answer about THAT business only.
- Do not recommend other businesses unless they explicitly ask for alternatives.
- If the requested information is not in the context, say "I don't have that information for [business name]\""""

GENERAL_MODE = """
- If multiple options exist, present the top 3-5 most relevant ones"""

SERVICE_INQUIRY_MODE = """
- The user is asking whether this business offers a particular service, payment option or policy.
- Answer ONLY from the business record in the context. If the record does not say, state that you don't have that information and suggest contacting the business directly using the phone number in the context."""

OVERVIEW_RE = re.compile(r"^(what are|what is|tell me about|explain|overview of)", re.IGNORECASE)

CLARIFICATION_PHRASES = (
    "what are you planning",
    "could you clarify",
    "please specify",
    "more details",
    "if you have more",
    "please let me know",
    "i can try to provide",
    "what type",
    "which type",
)

PRONOUN_CLARIFICATION = (
    "I'd be happy to help! Could you please specify which business or topic you're asking about? "
    "For example, you could say 'Safeway hours' or 'Tim Hortons wifi'."
)
STALE_BUSINESS_CLARIFICATION = (
    "I don't have a recent business to check that against. "
    "Could you let me know which business you're asking about?"
)
RESTATE_AFTER_GAP = (
    'Could you please clarify your question? For example: "What time does the pool open?" '
    'or "How much is the {topic}?" I want to make sure I give you the right information.'
)
RESTATE_GENERIC = (
    'Could you please clarify your question? For example: "What time does the pool open?" '
    'or "How much is a dog license?" I want to make sure I give you the right information.'
)
NO_CONTEXT = "No matching businesses or documents were found."


def is_overview_query(query: str) -> bool:
    return bool(OVERVIEW_RE.match(query.strip()))


def build_system_prompt(
    query_scope: QueryScope,
    user_query: str,
    municipality: str = "Terrace",
    service_inquiry: bool = False,
) -> str:
    """Select the answer-generation system prompt.

    Overview questions get the concise summary mode regardless of scope.
    """
    prompt = BASE_SYSTEM_PROMPT.format(municipality=municipality)
    if is_overview_query(user_query):
        return prompt + OVERVIEW_MODE
    if service_inquiry:
        return prompt + SPECIFIC_BUSINESS_MODE + SERVICE_INQUIRY_MODE
    if query_scope == QueryScope.SPECIFIC_BUSINESS:
        return prompt + SPECIFIC_BUSINESS_MODE
    return prompt + GENERAL_MODE


def build_conversation_context(history: Sequence[ConversationTurn], user_query: str) -> str:
    """Summarize the last 2 turns for the generation prompt."""
    if not history:
        return ""

    lines = ["", "", "CONVERSATION HISTORY (Recent turns):"]
    for idx, turn in enumerate(list(history)[-2:], 1):
        lines.append(f"Turn {idx}:")
        lines.append(f'  User asked: "{turn.query}"')
        lines.append(f"  AI responded about: {', '.join(turn.retrieved_entity_names[:2])}")
        lines.append(f"  Key concepts: {turn.response[:150].strip()}...")
        lines.append("")
    lines.append(f'CURRENT QUERY: "{user_query}"')
    lines.append("")
    lines.append("CRITICAL CONTEXT RULES:")
    lines.append('- If the current query uses pronouns ("it", "they") or is vague ("how much?"), it refers to the PREVIOUS TOPIC')
    lines.append("- Stay on topic from the conversation history")
    lines.append("- Extract specific answers from the context documents instead of asking for clarification")
    return "\n".join(lines) + "\n"


def build_user_content(user_query: str, context_text: str) -> str:
    return f"CONTEXT:\n{context_text or NO_CONTEXT}\n\nUSER QUESTION: {user_query}"


def asked_question(answer: str) -> bool:
    """Whether an answer ends by asking the user something."""
    if answer.strip().endswith("?"):
        return True
    lowered = answer.lower()
    return any(phrase in lowered for phrase in CLARIFICATION_PHRASES)
