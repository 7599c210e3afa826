"""AI 提示词模板"""

# 默认分类（与默认种子分类保持一致）
DEFAULT_CATEGORIES = ["技术", "设计", "产品", "工具", "其他"]

# 兜底分类
FALLBACK_CATEGORY = "其他"

# 默认分析提示词
# 占位符使用字符串替换而不是 str.format，模板里的 JSON 花括号不需要转义
DEFAULT_PROMPT_TEMPLATE = """请分析以下网页内容，并以JSON格式提供结构化摘要。

内容信息：
- URL: {url}
- 标题: {title}
- 内容类型: {content_type}
- 原始描述: {description}
- 主要内容: {content}

请按以下JSON格式提供分析结果：
{
  "summary": "简洁明了的2-3句话摘要，使用与原内容相同的语言",
  "category": "从以下分类中选择最合适的一个：{categories}",
  "tags": ["3-5个相关标签的字符串数组"],
  "language": "检测到的语言代码(zh, en, ja等)",
  "sentiment": "positive, neutral, 或 negative",
  "readingTime": "预估阅读时间(分钟数，整数)"
}

分析要求：
- 摘要要简洁且信息丰富，突出核心观点
- 严格从给定的分类列表中选择最合适的一个分类
- 标签应该具体且相关，有助于内容检索
- 根据内容长度提供合理的阅读时间估算(按每分钟200-300字计算)
- 仅返回有效的JSON格式，不要添加其他文本"""

# 用户补充说明（追加在模板之后）
USER_INSTRUCTIONS_TEMPLATE = """

额外要求（来自站点管理员）：
{instructions}"""

# 连接测试
CONNECTION_TEST_PROMPT = 'Reply with "OK"'
