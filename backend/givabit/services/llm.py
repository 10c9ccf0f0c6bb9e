import json
from dataclasses import dataclass
from typing import List, Optional, Protocol

from openai import AsyncOpenAI

from givabit.core.errors import ProducerFailure

X_MAX_CHARS = 280

_SYSTEM = (
    "You write short promotional social media posts that sell access to a piece of gated content. "
    "Posts are engaging, create urgency or exclusivity, use relevant hashtags and always include the buy link. "
    "Reply with a raw JSON array of strings only, no markdown."
)


@dataclass
class SocialContent:
    title: str
    description: str
    buy_link: str
    author_name: Optional[str] = None


class CopyGenerator(Protocol):
    model: str

    async def generate(self, platform: str, content: SocialContent, variations: int = 1) -> List[str]: ...


def build_prompt(platform: str, content: SocialContent, variations: int = 1) -> str:
    if platform == "X":
        instruction = (
            f"Generate {variations} catchy tweet(s) for X (Twitter) to promote the following content with the "
            f"intent to sell access. Each tweet, *including the buy link* (which is {len(content.buy_link)} "
            f"characters long), must NOT exceed {X_MAX_CHARS} characters in total."
        )
    else:
        instruction = (
            f"Generate {variations} catchy social media post(s) for {platform} to promote the following "
            "content with the intent to sell access."
        )

    lines = [
        instruction,
        "",
        "The goal is to maximize clicks on the buy link.",
        "",
        f'Content Title: "{content.title}"',
        f'Content Description: "{content.description}"',
        f"Buy Link: {content.buy_link}",
    ]
    if content.author_name:
        lines.append(f'Author Name (e.g., Channel, Site): "{content.author_name}"')
    lines += [
        "",
        "Rules:",
        f"- Ensure the buy link ({content.buy_link}) is clearly presented.",
        "- If an Author Name is provided, work it in naturally when it helps.",
        "- If generating multiple variations, make them distinct from each other.",
    ]
    if platform == "Instagram":
        lines.append("- Suggest relevant emojis and a strong call to action; 'Link in bio!' is fine but keep the link in the text.")
    if platform == "X":
        lines.append(f"- Strictly respect the {X_MAX_CHARS} character limit *inclusive of the buy link*.")
    lines += [
        "",
        f"Return exactly {variations} post(s) as a JSON array of strings, e.g. [\"Post 1 text...\"].",
        "Escape quotes and newlines so the whole response is one valid JSON array.",
        "If you cannot generate posts, return [].",
    ]
    return "\n".join(lines)


def parse_posts(text: str) -> List[str]:
    """Extract a JSON array of strings from a model reply, tolerating fences and chatter."""
    text = (text or "").strip()
    if "[" in text:
        text = text[text.find("[") : text.rfind("]") + 1]
    try:
        data = json.loads(text)
    except json.JSONDecodeError as exc:
        raise ProducerFailure(f"reply is not JSON: {exc}") from exc
    if not isinstance(data, list) or not all(isinstance(p, str) for p in data):
        raise ProducerFailure("reply is not a JSON array of strings")
    return [p.strip() for p in data if p.strip()]


class OpenAICopyGenerator:
    def __init__(self, api_key: str, model: str = "gpt-4.1-mini", *, temperature: float = 0.8) -> None:
        self.model = model
        self.temperature = temperature
        self._client = AsyncOpenAI(api_key=api_key)

    async def generate(self, platform: str, content: SocialContent, variations: int = 1) -> List[str]:
        resp = await self._client.chat.completions.create(
            model=self.model,
            messages=[
                {"role": "system", "content": _SYSTEM},
                {"role": "user", "content": build_prompt(platform, content, variations)},
            ],
            temperature=self.temperature,
        )
        return parse_posts(resp.choices[0].message.content or "")


def build_copy_generator(api_key: str, model: str) -> Optional[OpenAICopyGenerator]:
    """None when no key is configured (social copy then reports ProducerNotConfigured)."""
    if not api_key:
        return None
    return OpenAICopyGenerator(api_key=api_key, model=model)
