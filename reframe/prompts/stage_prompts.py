"""
Stage Prompt Templates

System prompts for the three stages of a reflection session, and the
message assembly that turns a ChatRequest into the model conversation.
Every prompt asks the model to put structured results in the tagged
blocks that reframe.model_output understands.
"""

from __future__ import annotations

from ..llm.base import Message
from ..schemas.chat import ChatMode, ChatRequest

DEFINE_EXPERIENCE_SYSTEM_PROMPT = """
ROLE: Reflective coach
OBJECTIVE: Help the user describe one personal experience clearly and completely

The user has named an experience they want to reflect on. Through a short
conversation, find out what happened, how they felt, what they did, and what
they would like to change.

CONVERSATION STYLE:
- Ask ONE focused question at a time
- Keep replies short and warm; never lecture
- Reflect back what you heard before asking the next question
- Do not offer advice or solutions at this stage

COMPLETION:
When you have enough to describe the experience (usually after 4-6 answers),
thank the user and include the summary in a block:

<summary>
A concise third-person description of the experience, the user's feelings
and the outcome they hope for.
</summary>

Only write the summary block once you are done asking questions.
"""

FORCE_SUMMARY_INSTRUCTION = """
Stop asking questions now. Based on the conversation so far, write the
summary of the experience inside <summary>...</summary> tags.
"""

GENERATE_IDEAS_SYSTEM_PROMPT = """
ROLE: Creative thinking partner
OBJECTIVE: Suggest fresh, concrete ideas for handling the user's experience

You will receive the summary of the experience, the ideas the user has
already chosen, every idea suggested so far, and the user's comments on
ideas. Suggest 5 NEW ideas:
- Each idea is one short actionable sentence
- Do not repeat or rephrase an idea already listed
- Use the comments to learn what the user likes and dislikes
- Mix small first steps with bolder options

OUTPUT FORMAT:
One or two sentences of encouragement, then the ideas as a JSON array of
strings in an ideas block:

<ideas>
["First idea", "Second idea"]
</ideas>
"""

CHALLENGE_BIASES_SYSTEM_PROMPT = """
ROLE: Cognitive bias coach
OBJECTIVE: Show the user which thinking biases may be shaping their view of the experience

You will receive the summary of the experience, the user's chosen ideas, the
biases identified in the previous analysis, and the user's comments on those
biases and their challenging ideas. Identify 3 to 5 cognitive biases:
- Explain in plain language how each bias shows up in this experience
- Give 2-3 challenging ideas per bias: concrete thoughts or actions that
  counter the bias
- Build on the user's comments; do not repeat a bias they rejected unless
  you can explain it better

OUTPUT FORMAT:
A short introduction, then the biases as a JSON array in a biases block:

<biases>
[
  {"id": "confirmation_bias", "title": "Confirmation bias",
   "explanation": "...", "challengingIdeas": ["...", "..."]}
]
</biases>
"""

SYSTEM_PROMPTS = {
    ChatMode.DEFINE_EXPERIENCE: DEFINE_EXPERIENCE_SYSTEM_PROMPT,
    ChatMode.GENERATE_IDEAS: GENERATE_IDEAS_SYSTEM_PROMPT,
    ChatMode.CHALLENGE_BIASES: CHALLENGE_BIASES_SYSTEM_PROMPT,
}


def _bullet_list(items: list[str] | None, empty: str) -> str:
    if not items:
        return empty
    return "\n".join(f"- {item}" for item in items)


def _comment_list(comments: dict[str, str] | None) -> str:
    if not comments:
        return "No comments yet."
    return "\n".join(f'- "{key}": {text}' for key, text in comments.items())


def _transcript(history: list[dict]) -> str:
    if not history:
        return "No conversation recorded."
    return "\n".join(f"{m['role'].upper()}: {m['content']}" for m in history)


def create_ideas_context(request: ChatRequest) -> str:
    """
    Create the context message for idea generation.

    Args:
        request: A generate-ideas request

    Returns:
        Prompt string describing the session so far
    """
    return f"""
EXPERIENCE: {request.experience}

SUMMARY:
{request.summary or "No summary available."}

CONVERSATION:
{_transcript(request.history)}

IDEAS THE USER HAS CHOSEN:
{_bullet_list(request.my_ideas, "None yet.")}

ALL IDEAS SUGGESTED SO FAR:
{_bullet_list(request.all_suggested_ideas, "None yet.")}

USER COMMENTS ON IDEAS:
{_comment_list(request.idea_comments)}
"""


def create_biases_context(request: ChatRequest) -> str:
    """
    Create the context message for a bias analysis.

    Args:
        request: A challenge-biases request

    Returns:
        Prompt string describing the session and earlier feedback
    """
    previous = request.previous_biases or []
    idea_comments = request.bias_idea_comments or {}

    lines = []
    for bias in previous:
        bias_id = bias.get("id", "")
        lines.append(f"- [{bias_id}] {bias.get('title', '')}: {bias.get('explanation', '')}")
        comment = (request.bias_comments or {}).get(bias_id)
        if comment:
            lines.append(f"  User comment: {comment}")
        for idea, text in idea_comments.get(bias_id, {}).items():
            lines.append(f'  On "{idea}": {text}')

    return f"""
EXPERIENCE: {request.experience}

SUMMARY:
{request.summary or "No summary available."}

IDEAS THE USER HAS CHOSEN:
{_bullet_list(request.my_ideas, "None yet.")}

PREVIOUS ANALYSIS:
{chr(10).join(lines) if lines else "This is the first analysis."}
"""


def build_messages(request: ChatRequest) -> list[Message]:
    """Assemble the model conversation for a chat request."""
    messages = [Message(role="system", content=SYSTEM_PROMPTS[request.mode].strip())]

    if request.mode == ChatMode.DEFINE_EXPERIENCE:
        messages.append(Message(
            role="user",
            content=f"The experience I want to reflect on: {request.experience}",
        ))
        messages.extend(Message(role=m["role"], content=m["content"]) for m in request.history)
        if request.force_summary:
            messages.append(Message(role="user", content=FORCE_SUMMARY_INSTRUCTION.strip()))
        return messages

    if request.mode == ChatMode.GENERATE_IDEAS:
        context = create_ideas_context(request)
    else:
        context = create_biases_context(request)
    messages.append(Message(role="user", content=context.strip()))
    return messages

