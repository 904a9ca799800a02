"""The 12-category clock taxonomy.

Category ids run 1-12 like the hours of a clock face; 0 marks an
unclassified record. The keyword lists drive the keyword fallback
classifier and are matched in category order.
"""

from dataclasses import dataclass
from typing import Optional, Tuple

UNCLASSIFIED = 0
DEFAULT_CATEGORY = 8  # コミュニケーション


@dataclass(frozen=True)
class Category:
    id: int
    name: str
    description: str
    keywords: Tuple[str, ...]
    # Label used in the detailed classification prompt
    clock_label: str


CATEGORIES: Tuple[Category, ...] = (
    Category(
        1, "医療倫理", "インフォームドコンセント、患者の権利、守秘義務",
        ("倫理", "インフォームドコンセント", "患者の権利", "守秘義務", "同意"),
        "医療倫理",
    ),
    Category(
        2, "地域医療", "地域包括ケア、在宅医療、地域連携",
        ("地域", "在宅", "地域包括", "地域連携", "訪問"),
        "地域医療",
    ),
    Category(
        3, "医学知識", "病態生理、薬理、診断基準",
        ("病態", "薬理", "診断", "疾患", "症状", "治療"),
        "医学的知識",
    ),
    Category(
        4, "診察・手技", "身体診察、医療手技、検査手法",
        ("診察", "手技", "検査", "聴診", "触診", "測定", "バイタル"),
        "診察・手技",
    ),
    Category(
        5, "問題解決能力", "分析力、思考力、判断力",
        ("分析", "思考", "判断", "問題解決", "考察"),
        "問題解決能力",
    ),
    Category(
        6, "統合的臨床", "複数要素を含む臨床対応",
        ("統合", "複合", "総合的", "包括"),
        "統合的な臨床能力",
    ),
    Category(
        7, "多職種連携", "チーム医療、院内連携",
        ("チーム", "多職種", "連携", "協働", "カンファレンス"),
        "多職種連携",
    ),
    Category(
        8, "コミュニケーション", "傾聴、共感、説明、信頼関係",
        ("コミュニケーション", "傾聴", "共感", "説明", "会話", "寄り添"),
        "コミュニケーションスキル",
    ),
    Category(
        9, "一般教養", "医学以外の知識",
        ("教養", "一般", "文化", "歴史"),
        "社会常識・一般教養",
    ),
    Category(
        10, "保健・福祉", "社会的サポート、福祉制度、介護",
        ("福祉", "介護", "ソーシャル", "支援", "制度"),
        "保健・福祉",
    ),
    Category(
        11, "行政", "病院間連携、紹介",
        ("行政", "紹介", "病院間", "転院"),
        "行政",
    ),
    Category(
        12, "社会医学/公衆衛生", "地域保健、予防医学",
        ("公衆衛生", "予防", "地域保健", "感染対策"),
        "社会医学/公衆衛生",
    ),
)

_BY_ID = {category.id: category for category in CATEGORIES}


def is_valid_category(category_id) -> bool:
    """True for a classified category (1-12)."""
    return isinstance(category_id, int) and not isinstance(category_id, bool) and 1 <= category_id <= 12


def get_category(category_id: int) -> Optional[Category]:
    return _BY_ID.get(category_id)


def category_name(category_id: int) -> str:
    category = _BY_ID.get(category_id)
    return category.name if category else "未分類"
