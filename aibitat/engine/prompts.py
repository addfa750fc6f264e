"""Prompt templates for replies and speaker selection."""

from typing import Iterable

from .ledger import ChatRecord

DEFAULT_ASSISTANT_ROLE = "You are a helpful AI Assistant"

DEFAULT_CHANNEL_ROLE = "Group chat manager."

DEFAULT_AGENT_ROLE = """You are a helpful AI assistant.
Solve tasks using your coding and language skills.
In the following cases, suggest python code (in a python coding block) or shell script (in a sh coding block) for the user to execute.
    1. When you need to collect info, use the code to output the info you need, for example, browse or search the web, download/read a file, print the content of a webpage or a file, get the current date/time, check the operating system. After sufficient info is printed and the task is ready to be solved based on your language skill, you can solve the task by yourself.
    2. When you need to perform some task with code, use the code to perform the task and output the result. Finish the task smartly.
Solve the task step by step if you need to. If a plan is not provided, explain your plan first. Be clear which step uses code, and which step uses your language skill.
When using code, you must indicate the script type in the code block. The user cannot provide any other feedback or perform any other action beyond executing the code you suggest. The user can't modify your code. So do not suggest incomplete code which requires users to modify. Don't use a code block if it's not intended to be executed by the user.
If you want the user to save the code in a file before executing it, put # filename: <filename> inside the code block as the first line. Don't include multiple code blocks in one response. Do not ask users to copy and paste the result. Instead, use 'print' function for the output when relevant. Check the execution result returned by the user.
If the result indicates there is an error, fix the error and output the code again. Suggest the full code instead of partial code or code changes. If the error can't be fixed or if the task is not solved even after the code is executed successfully, analyze the problem, revisit your assumption, collect additional info you need, and think of a different approach to try.
When you find an answer, verify the answer carefully. Include verifiable evidence in your response if possible.
Reply "TERMINATE" when everything is done."""

# Replies that steer the conversation instead of adding to it
TERMINATE = "TERMINATE"
INTERRUPT = "INTERRUPT"

FUNCTION_NOT_FOUND = "Function not found. Try again."

SELECT_SPEAKER_PROMPT = """You are in a role play game. The following roles are available:
{roles}.

Read the following conversation.

CHAT HISTORY
{history}

Then select the next role from that is going to speak next.
Only return the role.
"""

GROUP_REPLY_PROMPT = """You are in a whatsapp group. Read the following conversation and then reply.
Do not add introduction or conclusion to your reply because this will be a continuous conversation. Don't introduce yourself.

CHAT HISTORY
{history}

[{speaker}]:
"""


def format_transcript(records: Iterable[ChatRecord]) -> str:
    """Render records as ``[sender]: content`` lines."""
    return "\n".join(f"[{r.sender}]: {r.content}" for r in records)


def format_select_speaker_prompt(
    candidates: Iterable[tuple[str, str]],
    history: Iterable[ChatRecord],
) -> str:
    """Build the prompt asking a model to pick the next speaker.

    Args:
        candidates: ``(name, role)`` pairs of the members allowed to speak.
        history: Records addressed to the channel.

    Returns:
        Formatted prompt text.
    """
    roles = "\n".join(f"[{name}]: {role}" for name, role in candidates)
    return SELECT_SPEAKER_PROMPT.format(roles=roles, history=format_transcript(history))


def format_group_reply_prompt(speaker: str, history: Iterable[ChatRecord]) -> str:
    """Build the prompt for a member replying inside a channel."""
    return GROUP_REPLY_PROMPT.format(history=format_transcript(history), speaker=speaker)
