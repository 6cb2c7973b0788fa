from __future__ import annotations


def fold_system_messages(system_prompt: str, messages: list[dict]) -> tuple[str, list[dict]]:
    """Move inline system messages into the system prompt, keeping their order."""
    extra: list[str] = []
    chat: list[dict] = []
    for msg in messages:
        role = msg.get("role")
        content = str(msg.get("content", ""))
        if role == "system":
            if content.strip():
                extra.append(content.strip())
            continue
        chat.append({"role": role, "content": content})

    if extra:
        system_prompt = "\n\n".join([system_prompt, *extra]) if system_prompt else "\n\n".join(extra)
    return system_prompt, chat


def merge_consecutive_roles(messages: list[dict]) -> list[dict]:
    """Collapse runs of same-role messages and drop leading assistant turns.

    Providers that require strict user/assistant alternation starting with a
    user turn reject seeded greetings otherwise.
    """
    out: list[dict] = []
    for msg in messages:
        if not out and msg["role"] != "user":
            continue
        if out and out[-1]["role"] == msg["role"]:
            out[-1] = {"role": msg["role"], "content": out[-1]["content"] + "\n\n" + msg["content"]}
        else:
            out.append(dict(msg))
    return out
