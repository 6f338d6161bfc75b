"""Prompt templates for outline generation."""

SYSTEM_PROMPT = """你是一名经验丰富的网络小说策划编辑，擅长为长篇小说设计结构清晰、冲突鲜明的大纲。
请严格使用 Markdown 标题层级输出大纲，不要输出与大纲无关的解释或寒暄。"""

USER_PROMPT = """请根据以下信息创作一份小说大纲。

小说名称：{name}
小说类型：{type}
时代背景：{era}
核心冲突：{conflict}
标签：{tags}
补充说明：{remark}

结构要求：
- 共 {volumes} 卷，每卷约 {chapters_per_volume} 章，每章 {scenes_per_chapter} 个场景
- 卷标题使用三级标题，格式：### 第一卷 卷名
- 章标题使用四级标题，格式：#### 第一章 章名
- 场景使用五级标题，格式：##### 场景1 场景描述
- 卷名后可以用一句话概括本卷主线，章节与场景描述简洁具体

只输出 Markdown 大纲。"""
