"""Reflective writing generated from stored experiences.

Two texts are produced with the configured model: a first-person essay on
one category's experiences, and a feedback report over a student's whole
practice period. Neither raises on provider failures; both fall back to a
fixed template built from the records themselves.
"""

import logging
from typing import Dict, List, Optional, Sequence

from multas.logging_config import log_timing
from multas.protocols import ModelMessage, ModelProtocol
from multas.types import Record

from .categories import category_name

logger = logging.getLogger(__name__)

MIN_REPORT_POSTS = 10
REPORT_EXCERPT_POSTS = 20

SUMMARY_SYSTEM_PROMPT = "あなたは医学教育と臨床経験に精通した専門家です。"
REPORT_SYSTEM_PROMPT = (
    "あなたは医学教育の専門家です。学生の成長を支援する建設的なフィードバックを提供してください。"
)


def category_summary_prompt(category: str, posts: str) -> str:
    return f"""あなたは、文章のトレーニングを十分に経験し、医学的にも医師に近いレベルで語ることができる医学教育の専門家です。
以下は医学部生が「{category}」カテゴリで記録した実習体験です。

体験記録:
{posts}

上記の体験記録から、特に重要または興味深い1-2つの要素をピックアップし、それらを深く分析・考察してください。
全てを網羅する必要はありません。選んだ要素について、医学的な観点から掘り下げた文章を作成してください。

以下の形式で、300-400文字程度の洗練された文章を作成してください：
- 「私は」で始める一人称の文章
- 選んだ体験の具体的な描写
- その体験から得られた医学的洞察や学び
- 将来の医療実践への示唆や展望

高品質で読み応えのある文章:"""


def report_prompt(records: Sequence[Record], counts: Dict[int, int]) -> str:
    tally = "\n".join(f"{category_name(c)}: {n}件" for c, n in counts.items())
    excerpt = "\n".join(
        f"- {r.text} ({category_name(r.category)})" for r in records[:REPORT_EXCERPT_POSTS]
    )
    return f"""医学部実習の振り返りレポートを作成してください。

【投稿数】{len(records)}件

【カテゴリ別集計】
{tally}

【最近の投稿内容（抜粋）】
{excerpt}

以下の観点でレポートを作成してください：
1. 実習での学びの傾向分析
2. 特に多く経験したカテゴリとその意義
3. 今後伸ばすべき領域
4. 総合的な成長の評価

300-400文字程度でまとめてください。"""


def _count_categories(records: Sequence[Record]) -> Dict[int, int]:
    """Counts per category present in ``records``, by category id."""
    counts: Dict[int, int] = {}
    for record in records:
        counts[record.category] = counts.get(record.category, 0) + 1
    return dict(sorted(counts.items()))


class ReflectionWriter:
    """Generate category summaries and practice reports.

    Args:
        model: Any ModelProtocol. ``None`` always uses the templates.
    """

    def __init__(self, model: Optional[ModelProtocol] = None):
        self.model = model

    def _generate(self, prompt: str, system: str, temperature: float, max_tokens: int) -> str:
        response = self.model.generate(
            [ModelMessage(role="user", content=prompt)],
            system=system,
            temperature=temperature,
            max_tokens=max_tokens,
        )
        content = response.content.strip()
        if not content:
            raise ValueError("Model returned an empty reply")
        return content

    def category_summary(self, category: int, texts: Sequence[str]) -> str:
        """First-person essay on the experiences recorded under ``category``.

        Raises:
            ValueError: If ``texts`` is empty.
        """
        texts = [t.strip() for t in texts if t and t.strip()]
        if not texts:
            raise ValueError("At least one experience is required for a summary")

        name = category_name(category)
        posts = "\n".join(texts)
        if self.model is not None:
            try:
                with log_timing(logger, "category_summary"):
                    return self._generate(
                        category_summary_prompt(name, posts),
                        SUMMARY_SYSTEM_PROMPT,
                        temperature=0.8,
                        max_tokens=600,
                    )
            except Exception as e:
                logger.error(f"Summary generation failed, using template: {e}")

        return (
            f"私は{name}に関する実習を通じて、{texts[0].splitlines()[0]}という貴重な経験をしました。"
            "この体験は、医学生として成長する上で重要な学びとなりました。"
        )

    def report(self, records: Sequence[Record]) -> str:
        """Feedback report over a practice period.

        Raises:
            ValueError: With fewer than ``MIN_REPORT_POSTS`` records.
        """
        if len(records) < MIN_REPORT_POSTS:
            raise ValueError(f"{MIN_REPORT_POSTS}件以上の投稿が必要です")

        counts = _count_categories(records)
        if self.model is not None:
            try:
                with log_timing(logger, "report"):
                    return self._generate(
                        report_prompt(records, counts),
                        REPORT_SYSTEM_PROMPT,
                        temperature=0.7,
                        max_tokens=800,
                    )
            except Exception as e:
                logger.error(f"Report generation failed, using template: {e}")

        # Ties go to the lower category id
        top, top_count = min(counts.items(), key=lambda item: (-item[1], item[0]))
        return (
            f"実習期間中に{len(records)}件の記録を残し、特に{category_name(top)}に関する体験が"
            f"{top_count}件と最も多くなりました。"
            "これは地域医療の現場でこの分野の重要性を実感したことを示しています。"
            "今後は、よりバランスよく各カテゴリを意識して学習を進めることが大切です。\n\n"
            "（AIによる生成ができなかったため、簡易版のレポートとなっています）"
        )


def summarize_by_category(writer: ReflectionWriter, records: Sequence[Record]) -> List[dict]:
    """One summary per category present in ``records``, in category order."""
    grouped: Dict[int, List[str]] = {}
    for record in records:
        grouped.setdefault(record.category, []).append(record.text)
    return [
        {
            "category": category,
            "name": category_name(category),
            "summary": writer.category_summary(category, texts),
        }
        for category, texts in sorted(grouped.items())
    ]
