"""Tests for the Markdown document tree."""

from moge.outline.tree import Node, find_first, iter_nodes, parse_markdown_to_tree, text_content


def types(node: Node) -> list[str]:
    return [child.type for child in node.children]


class TestParseMarkdownToTree:
    """Tests for Markdown to Node conversion."""

    def test_empty_text(self) -> None:
        root = parse_markdown_to_tree("")
        assert root.type == "root"
        assert root.children == []

    def test_heading_depths(self) -> None:
        root = parse_markdown_to_tree("### 卷\n#### 章\n##### 场景")

        assert types(root) == ["heading", "heading", "heading"]
        assert [h.depth for h in root.children] == [3, 4, 5]
        assert [text_content(h) for h in root.children] == ["卷", "章", "场景"]

    def test_paragraph(self) -> None:
        root = parse_markdown_to_tree("第一段\n\n第二段")

        assert types(root) == ["paragraph", "paragraph"]
        assert text_content(root.children[1]) == "第二段"

    def test_tight_list_item_wrapped_in_paragraph(self) -> None:
        root = parse_markdown_to_tree("- **场景1**：夜色")
        item = find_first(root, "list_item")

        assert item is not None
        assert types(item) == ["paragraph"]
        assert types(item.children[0]) == ["strong", "text"]
        assert text_content(item) == "场景1：夜色"

    def test_loose_list_items(self) -> None:
        root = parse_markdown_to_tree("- 甲\n\n- 乙\n")
        items = [n for n in iter_nodes(root) if n.type == "list_item"]

        assert len(items) == 2
        assert all(types(item) == ["paragraph"] for item in items)

    def test_nested_list(self) -> None:
        root = parse_markdown_to_tree("- 外层\n    - 内层\n")
        outer = find_first(root, "list_item")

        assert outer is not None
        assert types(outer) == ["paragraph", "list"]
        assert text_content(outer.children[0]) == "外层"
        assert text_content(outer.children[1]) == "内层"

    def test_inline_html_kept_in_text(self) -> None:
        root = parse_markdown_to_tree("### 第一卷 黄金时代<AI注释：这是测试>")
        assert text_content(root.children[0]) == "第一卷 黄金时代<AI注释：这是测试>"

    def test_ampersand_restored(self) -> None:
        root = parse_markdown_to_tree("#### 第一章 刀 &amp; 剑")
        assert "&" in text_content(root.children[0])

    def test_code_block_is_leaf(self) -> None:
        root = parse_markdown_to_tree("    ### 第一卷 代码\n")
        code = find_first(root, "code")

        assert code is not None
        assert code.children == []
        assert "### 第一卷 代码" in (code.value or "")
        assert find_first(root, "heading") is None

    def test_fenced_code_is_leaf(self) -> None:
        root = parse_markdown_to_tree("```\n#### 第一章 代码里\n```\n")

        assert types(root) == ["code"]
        assert root.children[0].value == "#### 第一章 代码里\n"
        assert find_first(root, "heading") is None

    def test_list_interrupts_paragraph(self) -> None:
        root = parse_markdown_to_tree("本章概要\n- **场景1**：夜色")

        assert types(root) == ["paragraph", "list"]
        assert text_content(root.children[0]) == "本章概要"


class TestTreeHelpers:
    """Tests for tree helper functions."""

    def test_text_content_concatenates_leaves(self) -> None:
        node = Node(
            type="paragraph",
            children=[
                Node(type="text", value="甲"),
                Node(type="strong", children=[Node(type="text", value="乙")]),
                Node(type="text", value="丙"),
            ],
        )
        assert text_content(node) == "甲乙丙"

    def test_find_first_preorder(self) -> None:
        first = Node(type="strong", children=[Node(type="text", value="一")])
        second = Node(type="strong", children=[Node(type="text", value="二")])
        root = Node(type="root", children=[Node(type="paragraph", children=[first]), second])

        assert find_first(root, "strong") is first
        assert find_first(root, "heading") is None
