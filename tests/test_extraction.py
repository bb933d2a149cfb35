"""
Tests for silicon_chat.extraction — marker and fenced-block extraction.

Covers:
  - Custom marker precedence and trimming
  - Reversed / missing / adjacent markers
  - Tagged-block catalog order, tag case preservation, empty content
  - Fallback allow-list (case-insensitive), untagged fences, unknown tags
  - Purity (same input, equal result) and the nested-fence limitation
"""

import pytest

from silicon_chat.extraction import (
    END_MARKER,
    FALLBACK_LANGUAGES,
    START_MARKER,
    CodeBlock,
    ExtractionOrigin,
    ExtractionResult,
    extract,
    extract_code_blocks,
    extract_custom_markers,
    extract_fallback_block,
)

# ========================================================================
# Custom markers
# ========================================================================


class TestCustomMarkers:
    def test_marker_scenario(self):
        result = extract("@@>>>@@@\nhello\n@@@<<<@@@")
        assert result.primary_content == "hello"
        assert result.has_structured_content is True
        assert result.origin is ExtractionOrigin.CUSTOM_MARKERS

    def test_markers_win_over_fenced_content(self):
        text = f"```json\n{{\"a\": 1}}\n```\n{START_MARKER}  payload \n{END_MARKER}"
        result = extract(text)
        assert result.primary_content == "payload"
        assert result.origin is ExtractionOrigin.CUSTOM_MARKERS
        # the catalog is still populated
        assert result.code_blocks == (CodeBlock("json", '{"a": 1}'),)

    def test_exact_substring_between_markers_is_trimmed(self):
        inner = "\n\t  line one\n  line two  \n\n"
        result = extract(f"prefix {START_MARKER}{inner}{END_MARKER} suffix")
        assert result.primary_content == inner.strip()

    def test_reversed_markers_fall_through_to_fences(self):
        text = f"{END_MARKER} nope {START_MARKER}\n```python\nprint(1)\n```"
        result = extract(text)
        assert result.primary_content == "print(1)"
        assert result.origin is ExtractionOrigin.FENCED_FALLBACK

    def test_reversed_markers_without_fences_yield_nothing(self):
        result = extract(f"{END_MARKER} nope {START_MARKER}")
        assert result.primary_content is None
        assert result.has_structured_content is False

    def test_only_start_marker(self):
        assert extract_custom_markers(f"{START_MARKER} dangling") is None

    def test_only_end_marker(self):
        assert extract_custom_markers(f"dangling {END_MARKER}") is None

    def test_adjacent_markers_are_treated_as_absent(self):
        assert extract_custom_markers(START_MARKER + END_MARKER) is None

    def test_only_first_occurrence_of_each_marker_is_used(self):
        text = f"{START_MARKER}a{END_MARKER}{START_MARKER}b{END_MARKER}"
        assert extract_custom_markers(text) == "a"

    def test_whitespace_only_between_markers_is_empty_string(self):
        result = extract(f"{START_MARKER}   \n  {END_MARKER}")
        assert result.primary_content == ""
        assert result.has_structured_content is True

    def test_marker_tokens_are_bit_exact(self):
        assert START_MARKER == "@@>>>@@@"
        assert END_MARKER == "@@@<<<@@@"


# ========================================================================
# Tagged-block catalog
# ========================================================================


class TestCodeBlockCatalog:
    def test_javascript_scenario(self):
        result = extract("```javascript\nconsole.log(1)\n```")
        assert result.code_blocks == (CodeBlock("javascript", "console.log(1)"),)
        assert result.primary_content == "console.log(1)"
        assert result.origin is ExtractionOrigin.FENCED_FALLBACK

    def test_unknown_tag_is_catalogued_but_not_primary(self):
        result = extract("```weirdtag\nfoo\n```")
        assert result.code_blocks == (CodeBlock("weirdtag", "foo"),)
        assert result.primary_content is None
        assert result.has_structured_content is False

    def test_order_matches_appearance(self):
        text = (
            "First:\n```json\n{}\n```\nThen:\n```javascript\nlet x = 1;\n```\n"
        )
        blocks = extract(text).code_blocks
        assert [block.language for block in blocks] == ["json", "javascript"]
        assert blocks[1].content == "let x = 1;"

    def test_tag_case_is_preserved(self):
        blocks = extract_code_blocks("```JavaScript\nx\n```")
        assert blocks == [CodeBlock("JavaScript", "x")]

    def test_untagged_fence_is_not_catalogued(self):
        result = extract("```\nplain\n```")
        assert result.code_blocks == ()
        assert result.primary_content == "plain"

    def test_empty_block_content(self):
        blocks = extract_code_blocks("```css\n\n```")
        assert blocks == [CodeBlock("css", "")]

    def test_content_is_trimmed(self):
        blocks = extract_code_blocks("```html\n   <p>hi</p>   \n\n```")
        assert blocks[0].content == "<p>hi</p>"

    def test_multiline_content(self):
        text = "```python\ndef f():\n    return 1\n```"
        assert extract_code_blocks(text)[0].content == "def f():\n    return 1"

    def test_catalog_populated_regardless_of_markers(self):
        text = f"{START_MARKER}x{END_MARKER}\n```sql\nSELECT 1\n```"
        result = extract(text)
        assert result.code_blocks == (CodeBlock("sql", "SELECT 1"),)


# ========================================================================
# Fallback allow-list
# ========================================================================


class TestFallbackBlock:
    @pytest.mark.parametrize("tag", FALLBACK_LANGUAGES)
    def test_every_allow_listed_tag_is_accepted(self, tag):
        assert extract_fallback_block(f"```{tag}\ncontent\n```") == "content"

    def test_allow_list_is_case_insensitive(self):
        result = extract("```JSON\n{}\n```")
        assert result.primary_content == "{}"
        assert result.code_blocks == (CodeBlock("JSON", "{}"),)

    def test_first_match_wins(self):
        text = "```yaml\na: 1\n```\n```json\n{}\n```"
        assert extract(text).primary_content == "a: 1"

    def test_skips_unknown_tag_for_later_allow_listed_block(self):
        text = "```jsx\n<A/>\n```\n\ntext\n\n```css\nh1 {}\n```"
        result = extract(text)
        assert [block.language for block in result.code_blocks] == ["jsx", "css"]
        assert result.primary_content is not None

    def test_js_shorthand_is_not_allow_listed(self):
        assert extract_fallback_block("```js\nx()\n```") is None

    def test_allow_list_contents(self):
        assert set(FALLBACK_LANGUAGES) == {
            "json", "xml", "csv", "swift", "javascript", "python", "html", "css",
            "yaml", "toml", "ini", "sql", "bash", "shell", "markdown", "text",
        }


# ========================================================================
# No structure / purity / limitations
# ========================================================================


class TestNoStructure:
    @pytest.mark.parametrize(
        "text",
        ["", "just words", "a ` single ` tick", "``two ticks``", "unterminated ```python\nx"],
    )
    def test_plain_text_yields_empty_result(self, text):
        result = extract(text)
        assert result.primary_content is None
        assert result.has_structured_content is False
        assert result.code_blocks == ()
        assert result.origin is ExtractionOrigin.NONE

    def test_extract_is_pure(self):
        text = "```json\n{}\n```\n```weird\nw\n```"
        assert extract(text) == extract(text)

    def test_result_keeps_raw_response(self):
        assert extract("raw").raw_response == "raw"

    def test_to_dict(self):
        data = extract("```json\n{}\n```").to_dict()
        assert data == {
            "primary_content": "{}",
            "has_structured_content": True,
            "origin": "fenced_fallback",
            "code_blocks": [{"language": "json", "content": "{}"}],
        }

    def test_default_result_is_empty(self):
        result = ExtractionResult(raw_response="x")
        assert result.code_blocks == ()
        assert result.has_structured_content is False


class TestNestedFenceLimitation:
    def test_nested_fence_truncates_outer_block(self):
        """Matching is textual and non-greedy: the inner fence closes the outer one."""
        text = "```markdown\nIntro\n```python\nprint(1)\n```\nOutro\n```"
        blocks = extract(text).code_blocks
        # the inner python block and the outer tail are both lost
        assert blocks == (CodeBlock("markdown", "Intro"),)
