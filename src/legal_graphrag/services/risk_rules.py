"""Rule-based legal risk assessment.

Used when the LLM is not configured, fails, or returns something that does
not parse. Each rule inspects the diagnosis input and yields at most one
risk item; the result is deterministic for a given input.
"""

from typing import Callable

from legal_graphrag.models.diagnosis import DiagnosisInput, DiagnosisResult, RiskItem, RiskLevel


COMMERCIAL_USE_MARKERS = ("顧客向け", "製品", "マーケティング", "広告")
CONTENT_GENERATION_TECH = {"llm", "image_generation", "video_generation", "code_generation"}
VISUAL_GENERATION_TECH = {"image_generation", "video_generation"}

DEFAULT_PRIORITY_ACTIONS = [
    "AI利用に関する免責事項を利用規約に追加",
    "ユーザーへのAI利用開示を実施",
]
MAX_PRIORITY_ACTIONS = 5

FALLBACK_DISCLAIMER = (
    "この診断は情報提供を目的としており、法的アドバイスではありません。"
    "具体的な対応については、弁護士等の専門家にご相談ください。"
)


def _mentions_commercial_use(use_cases: list[str]) -> bool:
    return any(marker in u for u in use_cases for marker in COMMERCIAL_USE_MARKERS)


# =============================================================================
# Rules
# =============================================================================


def privacy_risk(data: DiagnosisInput) -> RiskItem | None:
    types = set(data.input_data_types)
    if not types & {"personal_info", "sensitive_personal"}:
        return None
    return RiskItem(
        category="プライバシー・個人情報保護",
        level=RiskLevel.HIGH if "sensitive_personal" in types else RiskLevel.MEDIUM,
        summary="個人情報または要配慮個人情報を取り扱うため、データ保護法への対応が必要です。",
        details=(
            "個人情報保護法に基づく適切な取得・管理・第三者提供の手続きが必要です。"
            "外部APIへのデータ送信がある場合は、越境移転規制にも注意が必要です。"
        ),
        legal_basis=["個人情報保護法", "GDPR（EU域内ユーザーがいる場合）"],
        recommendations=[
            "利用目的の明示と同意取得の仕組みを構築",
            "プライバシーポリシーの作成・更新",
            "データの暗号化と安全管理措置の実施",
        ],
    )


def api_terms_risk(data: DiagnosisInput) -> RiskItem | None:
    if data.data_transmission not in ("external_api", "both"):
        return None

    commercial = bool(set(data.target_users) & {"general_public", "business"}) and _mentions_commercial_use(
        data.use_cases
    )
    if commercial:
        details = (
            "商用サービスでの外部API利用には、ユーザーデータの送信、学習利用の可否、サービス品質保証など、"
            "高度なリスク管理が必要です。利用規約違反や予期せぬサービス停止のリスクがあります。"
        )
    else:
        details = (
            "各AIプロバイダーの利用規約、特にデータの取り扱い、学習への利用可否、"
            "禁止用途を確認し遵守する必要があります。"
        )

    recommendations = [
        "プロバイダー利用規約の詳細確認",
        "オプトアウト設定の確認・適用",
        "データ処理契約（DPA）の締結検討",
    ]
    if commercial:
        recommendations.append("ユーザーへの外部API利用の明示的な説明と同意取得")

    return RiskItem(
        category="API利用規約・データ送信",
        level=RiskLevel.HIGH if commercial else RiskLevel.MEDIUM,
        summary="外部AIサービスへのデータ送信に関する規約遵守とリスク管理が必要です。",
        details=details,
        legal_basis=["各プロバイダー利用規約", "クラウドサービス契約", "個人情報保護法（データ送信）"],
        recommendations=recommendations,
    )


def copyright_risk(data: DiagnosisInput) -> RiskItem | None:
    tech = set(data.ai_technologies)
    if not tech & CONTENT_GENERATION_TECH:
        return None

    high = bool(tech & VISUAL_GENERATION_TECH) and _mentions_commercial_use(data.use_cases)
    if high:
        details = (
            "動画・画像などの視覚的コンテンツを顧客向けサービスで使用する場合、著作権侵害、肖像権侵害、"
            "商標権侵害などの高いリスクがあります。生成物が既存作品に類似する可能性や、"
            "学習データの権利処理が不十分な場合の法的リスクを慎重に評価する必要があります。"
        )
    else:
        details = (
            "AI生成物の著作権帰属、学習データに含まれる著作物の権利処理、"
            "生成物が既存著作物に類似するリスクを検討する必要があります。"
        )

    recommendations = [
        "AI生成コンテンツの権利帰属を利用規約で明確化",
        "専門家による事前の権利クリアランス実施" if high else "商用利用時の権利確認フロー策定",
        "類似性チェックの仕組み検討",
    ]
    if high:
        recommendations.append("ユーザーへの生成物利用リスクの説明と免責事項の明示")

    return RiskItem(
        category="著作権・知的財産",
        level=RiskLevel.HIGH if high else RiskLevel.MEDIUM,
        summary="AI生成コンテンツの著作権と既存著作物の利用に関する検討が必要です。",
        details=details,
        legal_basis=["著作権法", "AI生成物に関するガイドライン", "商標法", "不正競争防止法"],
        recommendations=recommendations,
    )


def eu_ai_act_risk(data: DiagnosisInput) -> RiskItem | None:
    if "eu" not in data.target_users:
        return None
    return RiskItem(
        category="EU AI規制法対応",
        level=RiskLevel.HIGH,
        summary="EU AI規制法（AI Act）への対応が必要です。",
        details=(
            "EU域内でAIシステムを提供する場合、リスクカテゴリに応じた要件への対応が必要です。"
            "特に高リスクAIシステムに該当する場合は、技術文書作成、品質管理システム構築等の義務があります。"
        ),
        legal_basis=["EU AI Act", "GDPR"],
        recommendations=[
            "AIシステムのリスク分類を実施",
            "AI利用の開示義務への対応",
            "適合性評価の要否を確認",
        ],
    )


def child_protection_risk(data: DiagnosisInput) -> RiskItem | None:
    if "children" not in data.target_users:
        return None
    return RiskItem(
        category="児童保護",
        level=RiskLevel.HIGH,
        summary="13歳未満の子どもを対象とする場合、特別な保護措置が必要です。",
        details=(
            "米国COPPA、各国の児童オンラインプライバシー保護法への対応が必要です。"
            "保護者同意の取得、データ収集の最小化、適切な年齢確認が求められます。"
        ),
        legal_basis=["COPPA（米国）", "児童のオンラインプライバシー保護法"],
        recommendations=[
            "保護者同意取得の仕組み構築",
            "年齢確認機能の実装",
            "子ども向けコンテンツモデレーション強化",
        ],
    )


def general_ai_risk() -> RiskItem:
    return RiskItem(
        category="AI利用に関する一般的リスク",
        level=RiskLevel.LOW,
        summary="AIサービス利用に伴う基本的な法的考慮事項があります。",
        details="AI出力の正確性、ユーザーへの適切な情報提供、継続的なモニタリングを検討してください。",
        legal_basis=["消費者契約法", "AI事業者ガイドライン"],
        recommendations=[
            "AI利用の開示と免責事項の明記",
            "ユーザーフィードバック収集体制の構築",
            "定期的なリスク評価の実施",
        ],
    )


RISK_RULES: list[Callable[[DiagnosisInput], RiskItem | None]] = [
    privacy_risk,
    api_terms_risk,
    copyright_risk,
    eu_ai_act_risk,
    child_protection_risk,
]


# =============================================================================
# Aggregation
# =============================================================================


def evaluate_risks(data: DiagnosisInput) -> list[RiskItem]:
    """Apply every rule; fall back to the general AI risk when none fires."""
    risks = [item for rule in RISK_RULES if (item := rule(data)) is not None]
    return risks or [general_ai_risk()]


def overall_level(risks: list[RiskItem]) -> RiskLevel:
    """Highest level among the items."""
    levels = {r.level for r in risks}
    if RiskLevel.HIGH in levels:
        return RiskLevel.HIGH
    if RiskLevel.MEDIUM in levels:
        return RiskLevel.MEDIUM
    return RiskLevel.LOW


def priority_actions(risks: list[RiskItem]) -> list[str]:
    """First recommendation of each high or medium item, at most five."""
    actions = [
        r.recommendations[0]
        for r in risks
        if r.level in (RiskLevel.HIGH, RiskLevel.MEDIUM) and r.recommendations
    ][:MAX_PRIORITY_ACTIONS]
    return actions or list(DEFAULT_PRIORITY_ACTIONS)


def normalize_priority_actions(actions: list[str]) -> list[str]:
    """Clamp a list of actions to between one and five entries."""
    cleaned = [a for a in actions if a][:MAX_PRIORITY_ACTIONS]
    return cleaned or list(DEFAULT_PRIORITY_ACTIONS)


def executive_summary(app_name: str | None, risk_count: int, level: RiskLevel) -> str:
    name = app_name or "このAIアプリケーション"
    closing = (
        "高リスク項目について早急な対応を推奨します。"
        if level is RiskLevel.HIGH
        else "適切な対策を講じることでリスクを管理可能です。"
    )
    return (
        f"{name}について診断を行いました。{risk_count}件のリスク領域が特定され、"
        f"総合リスクレベルは「{level.label}」と判定されました。{closing}"
    )


def fallback_diagnosis(data: DiagnosisInput) -> DiagnosisResult:
    """Deterministic diagnosis built from the rules alone."""
    risks = evaluate_risks(data)
    level = overall_level(risks)
    return DiagnosisResult(
        overall_risk_level=level,
        executive_summary=executive_summary(data.app_name, len(risks), level),
        risks=risks,
        priority_actions=priority_actions(risks),
        related_cases=[],
        disclaimer=FALLBACK_DISCLAIMER,
        app_name=data.app_name,
    )
