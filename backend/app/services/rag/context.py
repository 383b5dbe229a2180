"""
Context Assembler

Builds the chat-completion message list for one student question:

1. A system prompt describing the exam-prep assistant and answer format
2. The most recent conversation turns, oldest first
3. A final user turn holding the retrieved syllabus chunks and the question

When retrieval found nothing the final turn says so explicitly, so the
model flags general-knowledge answers instead of presenting them as
syllabus content.
"""

from app.services.rag.models import MessageSource, SearchResult

SYSTEM_PROMPT = """You are KTU Exam Prep AI, an intelligent assistant specifically designed for APJ Abdul Kalam Technological University (KTU) students.

Your role:
- Answer questions based on the KTU syllabus content provided to you
- Help students understand concepts, solve problems, and prepare for exams
- Provide structured answers with clear explanations
- Reference specific modules and topics when relevant
- Use examples and analogies to make complex topics easier to understand
- Format answers using markdown for readability (headers, bullet points, code blocks, etc.)

Guidelines:
- Always be accurate and cite the syllabus content when possible
- If the context doesn't contain enough information, say so honestly
- Prioritize exam-relevant explanations
- For numerical problems, show step-by-step solutions
- For theory questions, provide structured answers suitable for university exams"""

NO_CONTEXT_NOTE = (
    "(No specific syllabus context found. Please answer based on general knowledge "
    "and indicate that the answer is not from the specific KTU syllabus.)"
)

SOURCE_SEPARATOR = "\n\n---\n\n"

DEFAULT_COURSE_CODE = "KTU"
DEFAULT_MODULE = "General"
DEFAULT_TOPIC = "Syllabus Content"

MAX_REPLAYED_TURNS = 6


def format_context(results: list[SearchResult]) -> str:
    """Label each chunk with its index and similarity percentage."""
    return SOURCE_SEPARATOR.join(
        f"[Source {i}] (Similarity: {r.similarity * 100:.1f}%)\n{r.content}"
        for i, r in enumerate(results, start=1)
    )


def build_user_turn(question: str, results: list[SearchResult]) -> str:
    if not results:
        return f"Student's question: {question}\n\n{NO_CONTEXT_NOTE}"

    context = format_context(results)
    return (
        f"Context from KTU syllabus:\n\n{context}"
        f"{SOURCE_SEPARATOR}Student's question: {question}"
    )


def build_messages(
    question: str,
    results: list[SearchResult],
    history: list[dict] | None = None,
    max_turns: int = MAX_REPLAYED_TURNS,
) -> list[dict]:
    """
    Assemble the prompt for the answer synthesizer.

    Args:
        question: The student's question (already trimmed)
        results: Retrieved syllabus chunks, best first (may be empty)
        history: Prior turns as {"role", "content"} dicts, oldest first
        max_turns: How many of the latest history turns to replay

    Returns:
        Message dicts ready for a chat completion call
    """
    messages = [{"role": "system", "content": SYSTEM_PROMPT}]

    recent = (history or [])[-max_turns:] if max_turns > 0 else []
    for turn in recent:
        messages.append({"role": turn["role"], "content": turn["content"]})

    messages.append({"role": "user", "content": build_user_turn(question, results)})
    return messages


def to_sources(results: list[SearchResult]) -> list[MessageSource]:
    """Project search results into the citations shown under an answer."""
    return [
        MessageSource(
            course_code=r.metadata.source or DEFAULT_COURSE_CODE,
            module=(
                f"Module {r.metadata.module_number}"
                if r.metadata.module_number
                else DEFAULT_MODULE
            ),
            topic=r.metadata.topic or DEFAULT_TOPIC,
            similarity=r.similarity,
        )
        for r in results
    ]
