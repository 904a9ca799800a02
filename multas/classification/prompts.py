"""Prompt templates for classification and decomposition."""

from .categories import CATEGORIES

CLASSIFICATION_SYSTEM_PROMPT = (
    "あなたは医学教育の専門家です。"
    "体験内容を12時計分類で分類し、該当する数字（1-12）のみを回答してください。"
)


def _clock_list() -> str:
    return "\n".join(f"{c.id}時: {c.clock_label}" for c in CATEGORIES)


def _category_list() -> str:
    return "\n".join(f"{c.id}: {c.name}（{c.description}）" for c in CATEGORIES)


def classification_prompt(text: str) -> str:
    """Ask for a category number and a one-line reason."""
    return f"""あなたは地域医療実習の体験を分類する専門家です。
以下の学生の体験を、12時計のカテゴリのいずれかに分類してください。

カテゴリ:
{_clock_list()}

体験内容:
{text}

以下の形式で回答してください:
カテゴリ: [1-12の数字]
理由: [分類の理由を簡潔に]"""


def decomposition_prompt(text: str, max_elements: int = 5) -> str:
    """Ask for up to ``max_elements`` independently classifiable elements."""
    return f"""あなたは地域医療実習の体験を分析する専門家です。
以下の長文の体験記録を読み、含まれている複数の学習要素を抽出してください。
それぞれの要素について、独立した学習項目として分類可能な単位で分割してください。

重要な指示:
- 各要素は自然な日本語で簡潔にまとめてください
- 「〜体験」「〜経験」という語尾を避け、多様な表現を使ってください
- 動詞の終止形（〜した、〜学んだ、〜気づいた等）や体言止めを活用してください
- 元の文章の重要なポイントを保持しつつ、読みやすく整理してください

体験内容:
{text}

以下の形式で、含まれている要素を列挙してください（最大{max_elements}つまで）:
要素1: [抽出した内容を自然な日本語で]
要素2: [抽出した内容を自然な日本語で]
..."""


def quick_classification_prompt(text: str) -> str:
    """Number-only prompt used by the lightweight classifier."""
    return f"""以下の医学部実習での体験を、12時計分類のいずれかに分類してください。

12時計分類:
{_category_list()}

体験内容: {text}

数字のみで回答してください（1-12）:"""
