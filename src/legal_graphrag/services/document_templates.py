"""Instruction blocks and fallback templates for generated legal documents.

Both tables are keyed by audience and document type. Templates are
``str.format`` strings; the fields they may use are produced by
``template_fields``.
"""

from datetime import date

from legal_graphrag.models.diagnosis import DiagnosisResult
from legal_graphrag.models.document import Audience, DocumentGeneratorInput, DocumentType, governing_law_name


# =============================================================================
# Instruction blocks
# =============================================================================

INTERNAL_INSTRUCTIONS: dict[DocumentType, str] = {
    DocumentType.TERMS_OF_SERVICE: """
【社内AI利用規程の構成（参照用雛形・簡潔版）】
以下の6項目に絞って記載すること:
1. 目的と適用範囲（従業員への適用）
2. 遵守事項（情報セキュリティ・機密情報・個人情報保護）
3. 禁止事項（機密情報の無断入力・著作権侵害・不適切利用）
4. 利用者の責任（AI出力の確認義務・報告義務）
5. 違反時の対応（懲戒処分の可能性・損害賠償）
6. 問い合わせ先

**重要**: 「利用者は～」という表現を使用し、「当社は～」は使わないこと
例:「利用者は社内外に損害を与えないよう注意し、問題が生じた場合は速やかに報告すること」
""",
    DocumentType.PRIVACY_POLICY: """
【社内データ取り扱い規程の構成（参照用雛形・簡潔版）】
以下の4項目に絞って記載すること:
1. AIツールへの入力禁止情報（個人情報・機密情報・営業秘密）
2. 入力可能な情報の範囲
3. 外部サービスへのデータ送信の制限
4. 違反時の対応

箇条書きで簡潔に記載すること。
""",
    DocumentType.AI_DISCLAIMER: """
【社内AI利用における注意事項（参照用雛形・簡潔版）】
以下の4項目に絞って記載すること:
1. AI出力の性質（自動生成・正確性の非保証）
2. 利用者の確認義務（盲信禁止・検証必須）
3. 重要判断時の専門家相談
4. 問題発生時の報告義務

箇条書きで簡潔に記載すること。
""",
    DocumentType.INTERNAL_RISK_REPORT: """
【社内リスクレポート】
経営層・管理職向けのリスク評価レポートを作成します。

**文字数制限**: 全体で3000文字以内に収めること（厳守）

**記載形式**:
- 各セクションは箇条書き中心で簡潔に記載
- 長文の説明は避け、要点のみを記載
- 1つのリスク項目は150文字以内で記載
- エグゼクティブサマリーは200文字以内
- 各セクションの見出しと箇条書きのみで構成

**重要な制約事項（厳守）**:
- 対応ロードマップでは、**リスクレベル**と**優先度**のみを記載すること
- 具体的な対応人員数（例: 「法務担当者2名」など）は記載しないこと
- 対応コスト金額（例: 「年間500万円」など）は記載しないこと
- 対応期間や時間（例: 「3ヶ月」「半年」など）は記載しないこと
- 訴訟リスクや違反時の損害額の提示は可能（例: 「個人情報保護法違反による最大1億円の罰金リスク」など）
- 説明文は最小限にし、リスト形式を最大限活用すること
- 対応方法は「何をすべきか」のみを記載し、「いつまでに」「いくらで」「誰が」は記載しない
""",
    DocumentType.USER_GUIDELINES: """
【従業員向けAI利用ガイドライン（参照用雛形・簡潔版）】
以下の4項目に絞って記載すること:
1. 推奨される使い方（3〜4項目の箇条書き）
2. 避けるべき使い方（3〜4項目の箇条書き）
3. トラブル時の対応（報告先・手順）
4. 問い合わせ先

箇条書きで簡潔に記載し、実務的な内容にすること。
""",
}

EXTERNAL_INSTRUCTIONS: dict[DocumentType, str] = {
    DocumentType.TERMS_OF_SERVICE: """
【利用規約の構成（参照用雛形・簡潔版）】
以下の7項目に絞って記載すること:
1. 適用範囲と定義
2. サービス内容と利用条件
3. 禁止事項（AI利用に関する禁止用途を含む）
4. 知的財産権
5. 免責事項（「当社の故意または重過失による場合を除き、一切の責任を負いません」を含む）
6. 規約の変更・準拠法・管轄裁判所
7. 問い合わせ先

各項目は簡潔な箇条書きで記載し、1項目5行以内を目安にすること。
""",
    DocumentType.PRIVACY_POLICY: """
【プライバシーポリシーの構成（参照用雛形・簡潔版）】
以下の6項目に絞って記載すること:
1. 収集する個人情報と利用目的
2. 第三者への提供（AI APIへのデータ送信を含む）
3. 安全管理措置
4. 利用者の権利（開示・訂正・削除請求）
5. 改定について
6. お問い合わせ窓口

各項目は簡潔な箇条書きで記載し、個人情報保護法の要点のみを記載すること。
""",
    DocumentType.AI_DISCLAIMER: """
【AI免責事項の構成（参照用雛形・簡潔版）】
以下の5項目に絞って記載すること:
1. AI出力の性質（自動生成であること・正確性の非保証・ハルシネーションの可能性）
2. 利用者の責任（出力内容の検証・自己判断）
3. 専門家への相談推奨（法律・医療・金融等）
4. 禁止される利用方法
5. 責任の制限（「当社は責任を負いません」形式で記載）

各項目は箇条書きで簡潔に記載すること。
""",
    DocumentType.INTERNAL_RISK_REPORT: """
【社内リスクレポートの構成】

**文字数制限**: 全体で3000文字以内に収めること（厳守）

1. エグゼクティブサマリー（200文字以内）
   - 総合リスクレベルと最優先対応事項のみ
2. 対象サービス概要（150文字以内）
   - サービス名、利用技術、想定ユーザーのみ
3. リスク評価方法（100文字以内）
   - 評価基準を1行で記載
4. 特定されたリスク一覧（1200文字以内）
   - 各リスク：リスク名、レベル、影響度（1行）
   - 詳細：2〜3行の箇条書きのみ
   - リスクは最大5項目まで
5. 優先度別対応ロードマップ（800文字以内）
   - **リスクレベル**と**優先度**のみを箇条書きで記載
   - **重要（厳守）**: 対応人員数、対応コスト金額、対応期間（3ヶ月等）は一切記載しないこと
   - 訴訟リスク金額や損害額の提示は可
   - 対応方法は「何をすべきか」のみを記載し、「いつまでに」「いくらで」「誰が」は記載しない
6. モニタリング計画（150文字以内）
   - 監視指標を箇条書きで2〜3項目
7. 次回レビュー（100文字以内）

**記載形式の重要な指示**:
- 箇条書きを最大限活用し、文章は最小限に
- 各リスク項目は150文字以内
- 法的根拠は法令名のみ（条文の引用は不要）
- 具体的な対応人員数、対応コスト金額、対応期間は一切記載しないこと
- 対応方法の「リスクレベル」と「優先度」のみを記載すること
- 訴訟リスクや損害額の提示は可能

簡潔かつ要点を絞った内容にすること。
""",
    DocumentType.USER_GUIDELINES: """
【ユーザーガイドラインの構成（参照用雛形・簡潔版）】
以下の5項目に絞って記載すること:
1. 推奨される利用方法（3〜4項目の箇条書き）
2. 注意事項（AI出力の確認・信頼性評価）
3. 禁止事項（3〜5項目の箇条書き）
4. トラブル時の対応
5. サポートへの問い合わせ

各項目は箇条書きで簡潔に記載し、ユーザーフレンドリーな文章にすること。
""",
}

INSTRUCTIONS: dict[Audience, dict[DocumentType, str]] = {
    Audience.INTERNAL: INTERNAL_INSTRUCTIONS,
    Audience.EXTERNAL: EXTERNAL_INSTRUCTIONS,
}


# =============================================================================
# Fallback templates
# =============================================================================

INTERNAL_TEMPLATES: dict[DocumentType, str] = {
    DocumentType.TERMS_OF_SERVICE: """# AI利用規程（社内向け）

## 第1条（目的）
この規程は、{company}（以下「会社」）の従業員等が業務においてAIツールを利用する際の適切な運用を確保し、情報セキュリティ、法令遵守、および業務品質の維持を目的として定めるものです。

## 第2条（適用範囲）
本規程は、会社の従業員、契約社員、派遣社員等、会社の業務に従事するすべての者（以下「利用者」）に適用されます。

## 第3条（定義）
本規程において使用する用語の定義は、以下の通りとします。
1. 「AIツール」とは、生成AI、機械学習、自然言語処理等の人工知能技術を用いたツールおよびサービスをいいます。
2. 「機密情報」とは、会社の営業秘密、顧客情報、個人情報、開発中のプロジェクト情報等をいいます。

## 第4条（遵守事項）
利用者は、AIツールを利用する際、以下の事項を遵守しなければなりません。
1. 会社が指定または許可したAIツールのみを使用すること
2. 業務目的の範囲内でのみ利用すること
3. 情報セキュリティポリシーを遵守すること
4. AI出力の内容を必ず確認・検証すること
5. 重要な判断にはAI出力のみに依存せず、必要に応じて専門家の意見を求めること

## 第5条（禁止事項）
利用者は、以下の行為を行ってはなりません。
1. 機密情報、個人情報、営業秘密を無断でAIツールに入力すること
2. 第三者の知的財産権を侵害する行為
3. 法令または会社の規程に違反する行為
4. AIツールを利用して生成した情報を無断で社外に公開すること
5. 不正確な情報や誤解を招く情報を故意に生成・利用すること

## 第6条（利用者の責任）
1. 利用者は、AIツールの利用において、社内外に損害を与えないよう充分な注意を払い使用しなければなりません。
2. 利用者は、AIツールの利用により問題が発生する可能性がある場合、または実際に問題が発生した場合には、速やかに上司および情報システム部門に報告しなければなりません。
3. 利用者は、AI出力の正確性、適法性、妥当性について自ら確認・検証する責任を負います。

## 第7条（懲戒処分）
利用者が本規程に違反し、故意または過失により会社に重大な損害を与えた場合、または損害を与える恐れのある行為を行った場合には、就業規則に基づき懲戒処分の対象となることがあります。

## 第8条（教育・研修）
会社は、利用者に対して、AIツールの適切な利用方法、リスク、本規程の内容等に関する教育・研修を実施します。

## 第9条（規程の改定）
本規程は、法令の改正、技術の進展、社会情勢の変化等に応じて、適宜見直し・改定を行います。

## 第10条（お問い合わせ）
本規程に関するお問い合わせは、以下までお願いいたします。
{company}
メールアドレス: {email}

制定日: {today}
""",
    DocumentType.PRIVACY_POLICY: """# 個人情報・機密情報の取り扱いに関する規程（社内向け）

{company}の従業員等がAIツールを利用する際の、個人情報および機密情報の取り扱いについて定めます。

## 1. 適用範囲
本規程は、会社の従業員等がAIツールに情報を入力する際に適用されます。

## 2. 禁止事項
以下の情報をAIツールに入力してはなりません。
- 顧客の個人情報（氏名、住所、電話番号、メールアドレス等）
- 社内の機密情報、営業秘密
- 開発中のプロジェクト情報
- 契約書や秘密保持契約の対象となる情報
- 未公開の財務情報

## 3. 許可される情報
以下の情報は、業務上必要な範囲で入力が許可されます。
- 公開情報
- 匿名化・仮名化された情報
- 一般的な知識や技術に関する質問

## 4. 違反時の対応
本規程に違反した場合、懲戒処分の対象となるほか、情報漏洩による損害について賠償責任を負う場合があります。

## 5. お問い合わせ
{company}
メールアドレス: {email}

制定日: {today}
""",
    DocumentType.AI_DISCLAIMER: """# AI利用における注意事項（社内向け）

## 1. AI出力の性質
AIツールの出力は自動生成されたものであり、必ずしも正確ではありません。

## 2. 利用者の責任
- AI出力を盲信せず、必ず内容を確認・検証してください
- 重要な判断や意思決定には、AI出力のみに依存しないでください
- 法律、財務、医療等の専門的事項については、専門家に相談してください

## 3. 問題発生時の対応
AIツールの利用により問題が発生した場合、または発生する可能性がある場合は、速やかに上司および関係部門に報告してください。

## 4. リスク
- ハルシネーション（誤った情報の生成）
- 著作権侵害のリスク
- 情報漏洩のリスク

制定日: {today}
""",
    DocumentType.INTERNAL_RISK_REPORT: """# 法的リスク評価レポート（社内向け）

## エグゼクティブサマリー
本レポートは、当社のAI利用に関する法的リスクの評価と対策を取りまとめたものです。

## 1. 評価対象
- 提供元: {company}
- 評価日: {today}

## 2. 主なリスク
- 情報漏洩リスク
- 著作権侵害リスク
- 個人情報保護法違反リスク
- AI出力の誤用によるリスク

## 3. 推奨対策
1. 社内規程の整備と周知徹底
2. 従業員教育の実施
3. 利用ログの監視体制構築
4. 定期的なリスク評価の実施

制定日: {today}
""",
    DocumentType.USER_GUIDELINES: """# AI利用ガイドライン（従業員向け）

## はじめに
このガイドラインは、従業員がAIツールを安全かつ効果的に利用するための実務的な指針です。

## 推奨される使い方
- 業務効率化のための補助ツールとして活用
- アイデアの壁打ち相手として利用
- 文書の下書き作成に利用（ただし必ず確認・修正すること）

## 避けるべき使い方
- 機密情報の入力
- 最終成果物としてそのまま使用
- 専門的判断の代替として使用

## トラブル時の対応
問題が発生した場合は、直ちに上司に報告し、指示を仰いでください。

## お問い合わせ
{company}
メールアドレス: {email}

制定日: {today}
""",
}

EXTERNAL_TEMPLATES: dict[DocumentType, str] = {
    DocumentType.TERMS_OF_SERVICE: """# 利用規約

## 第1条（適用）
この利用規約（以下「本規約」）は、{company}（以下「当社」）が提供するサービス（以下「本サービス」）の利用条件を定めるものです。

## 第2条（定義）
本規約において使用する用語の定義は、以下の通りとします。
1. 「利用者」とは、本規約に同意の上、本サービスを利用する者をいいます。
2. 「AI機能」とは、本サービスにおいて人工知能技術を用いて提供される機能をいいます。

## 第3条（AI機能に関する注意事項）
1. 本サービスのAI機能による出力は、自動生成されたものであり、その正確性、完全性、有用性について当社は保証しません。
2. 利用者は、AI機能の出力を参考情報として利用し、最終的な判断は自己の責任において行うものとします。
3. AI機能の出力を法律、医療、金融等の専門的判断の代替として使用することは推奨されません。

## 第4条（禁止事項）
利用者は、以下の行為を行ってはなりません。
1. 法令または公序良俗に違反する行為
2. 犯罪行為に関連する行為
3. 当社または第三者の知的財産権を侵害する行為
4. 本サービスの運営を妨害する行為
5. 虚偽の情報を入力する行為

## 第5条（免責事項）
1. 当社は、本サービスの内容について、その正確性、完全性、有用性等について何ら保証するものではありません。
2. 当社は、本サービスの利用に起因して利用者に生じた損害について、当社の故意または重過失による場合を除き、一切の責任を負いません。

## 第6条（準拠法・管轄裁判所）
本規約の解釈にあたっては、{law}を準拠法とします。

## 第7条（お問い合わせ）
本規約に関するお問い合わせは、以下までお願いいたします。
{company}
メールアドレス: {email}
{url_line}

制定日: {today}
""",
    DocumentType.PRIVACY_POLICY: """# プライバシーポリシー

{company}（以下「当社」）は、本サービスにおける利用者の個人情報の取り扱いについて、以下のとおりプライバシーポリシーを定めます。

## 1. 収集する個人情報
当社は、以下の個人情報を収集する場合があります。
- メールアドレス
- 利用履歴
- 入力されたテキストデータ
- その他サービス利用に関する情報

## 2. 利用目的
収集した個人情報は、以下の目的で利用します。
1. 本サービスの提供・運営
2. 利用者からのお問い合わせへの対応
3. サービスの改善・新機能の開発
4. 利用規約違反への対応

## 3. 第三者への提供
当社は、以下の場合を除き、個人情報を第三者に提供しません。
1. 利用者の同意がある場合
2. 法令に基づく場合
3. AI機能提供のため外部APIサービスへ送信する場合（匿名化された形式で送信）

## 4. AI機能とデータの取り扱い
本サービスのAI機能では、利用者の入力データを外部のAIサービスプロバイダーに送信する場合があります。送信されるデータは、サービス提供に必要な範囲に限定されます。

## 5. 安全管理措置
当社は、個人情報の漏洩、滅失、毀損の防止のため、適切な安全管理措置を講じます。

## 6. 開示・訂正・削除の請求
利用者は、当社が保有する自己の個人情報について、開示、訂正、削除を請求することができます。

## 7. お問い合わせ
個人情報の取り扱いに関するお問い合わせは、以下までお願いいたします。
{company}
メールアドレス: {email}

制定日: {today}
""",
    DocumentType.AI_DISCLAIMER: """# AI機能に関する免責事項

## 1. AI技術の利用について
本サービスでは、人工知能（AI）技術を活用した機能を提供しています。利用者は、本免責事項に同意の上、AI機能をご利用ください。

## 2. AI出力の性質と限界

### 2.1 自動生成
AI機能による出力は、機械学習モデルによって自動的に生成されたものです。

### 2.2 正確性の非保証
AI出力の正確性、完全性、最新性、有用性について、当社は一切の保証をいたしません。

### 2.3 ハルシネーション
AIは、事実に基づかない情報（ハルシネーション）を生成する可能性があります。

## 3. 利用者の責任
- AI出力は参考情報としてのみ利用してください
- 出力内容の正確性は、必ず利用者自身で検証してください
- 重要な判断にはAI出力のみに依存しないでください

## 4. 専門家への相談
法律、医療、金融、税務等の専門的な事項については、AI出力を利用する前に、必ず各分野の専門家にご相談ください。

## 5. 責任の制限
当社は、AI機能の利用により生じたいかなる損害についても、当社の故意または重過失による場合を除き、一切の責任を負いません。

{company}
連絡先: {email}
制定日: {today}
""",
    DocumentType.INTERNAL_RISK_REPORT: """# 法的リスク評価レポート

## エグゼクティブサマリー
{executive_summary}

## 1. 対象サービス概要
- 提供元: {company}
- 評価日: {today}

## 2. リスク評価結果
{risk_sections}

## 3. 優先対応事項
{priority_actions}

## 4. 推奨アクション
1. 法務部門との協議
2. 外部専門家へのレビュー依頼
3. 継続的なモニタリング体制の構築

## 5. 次回レビュー
定期的なリスク評価の実施を推奨します。

---
本レポートは情報提供を目的としており、法的アドバイスではありません。
""",
    DocumentType.USER_GUIDELINES: """# ユーザーガイドライン

## はじめに
このガイドラインは、{company}が提供するAIサービスを安全かつ効果的にご利用いただくための指針です。

## 推奨される利用方法

### 効果的な使い方
1. 明確で具体的な質問や指示を入力してください
2. 必要に応じて背景情報を追加してください
3. 出力結果は参考情報として活用してください

### ベストプラクティス
- 複雑な質問は段階的に分けて入力する
- 出力結果を必ず確認・検証する
- 専門的な判断が必要な場合は専門家に相談する

## 注意事項

### AI出力について
- AI出力は100%正確ではありません
- 重要な判断の前には、必ず情報の確認を行ってください
- 専門的な事項（法律、医療等）については専門家に相談してください

### プライバシー保護
- 個人情報や機密情報の入力は避けてください
- 必要最小限の情報のみを入力してください

## 禁止事項
以下の目的での利用は禁止されています：
- 違法行為に関する情報の取得
- 他者を害する目的での利用
- サービスへの攻撃や不正アクセス

## サポート
ご不明点やお問い合わせは、以下までご連絡ください。
メールアドレス: {email}
{service_url_line}

{company}
""",
}

TEMPLATES: dict[Audience, dict[DocumentType, str]] = {
    Audience.INTERNAL: INTERNAL_TEMPLATES,
    Audience.EXTERNAL: EXTERNAL_TEMPLATES,
}

NO_DIAGNOSIS = "（診断結果がありません）"
DEFAULT_REPORT_SUMMARY = "本レポートは、当社AIサービスに関する法的リスクの評価と対策を取りまとめたものです。"


def format_japanese_date(day: date | None = None) -> str:
    """``YYYY/M/D`` without zero padding."""
    day = day or date.today()
    return f"{day.year}/{day.month}/{day.day}"


def _risk_sections(result: DiagnosisResult | None) -> str:
    if not result:
        return NO_DIAGNOSIS
    sections = []
    for risk in result.risks:
        recommendations = "\n".join(f"  - {rec}" for rec in risk.recommendations)
        sections.append(
            f"\n### {risk.category}\n"
            f"- **リスクレベル**: {risk.level.label}\n"
            f"- **概要**: {risk.summary}\n"
            f"- **詳細**: {risk.details}\n"
            f"- **法的根拠**: {', '.join(risk.legal_basis)}\n"
            f"- **推奨対策**:\n{recommendations}\n"
        )
    return "\n".join(sections)


def _priority_actions(result: DiagnosisResult | None) -> str:
    if not result:
        return NO_DIAGNOSIS
    return "\n".join(f"{i}. {action}" for i, action in enumerate(result.priority_actions, 1))


def template_fields(data: DocumentGeneratorInput, today: date | None = None) -> dict[str, str]:
    """Values interpolated into the fallback templates."""
    result = data.diagnosis_result
    return {
        "company": data.company_name,
        "email": data.contact_email,
        "law": governing_law_name(data.governing_law),
        "today": format_japanese_date(today),
        "url_line": f"URL: {data.service_url}" if data.service_url else "",
        "service_url_line": f"サービスURL: {data.service_url}" if data.service_url else "",
        "executive_summary": (result.executive_summary if result else "") or DEFAULT_REPORT_SUMMARY,
        "risk_sections": _risk_sections(result),
        "priority_actions": _priority_actions(result),
    }


def render_template(
    doc_type: DocumentType,
    audience: Audience,
    data: DocumentGeneratorInput,
    today: date | None = None,
) -> str:
    return TEMPLATES[audience][doc_type].format(**template_fields(data, today))
