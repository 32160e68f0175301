import pytest

from services.blueprint.app.domain.errors import SectionNotFoundError
from services.blueprint.app.domain.sections import find_section, join, replace_section, split

DOC = "\n".join(
    [
        "Preamble line",
        "",
        "# Vision",
        "Be the default marina tool.",
        "### Detail",
        "Still part of vision.",
        "## Goals",
        "- Grow",
        "",
    ]
)


def test_split_keeps_headings_and_introduction():
    sections = split(DOC)
    assert [s.title for s in sections] == ["Introduction", "Vision", "Goals"]
    assert [s.id for s in sections] == ["sec-0", "sec-1", "sec-2"]
    assert [s.order for s in sections] == [0, 1, 2]
    assert sections[1].content.startswith("# Vision\n")
    assert "### Detail" in sections[1].content
    assert join(sections) == DOC


def test_document_starting_with_heading_has_no_introduction():
    sections = split("## One\nbody\n## Two\nmore")
    assert [s.title for s in sections] == ["One", "Two"]


def test_headerless_document_is_single_section():
    sections = split("just text\nno headings")
    assert len(sections) == 1
    assert sections[0].title == "Full Document"
    assert sections[0].content == "just text\nno headings"


def test_empty_document_has_no_sections():
    assert split("") == []
    assert join([]) == ""


@pytest.mark.parametrize(
    "markdown",
    [
        "# A",
        "# A\n",
        "\n\n# A\n\n## B\n\n",
        "intro\n#not-a-heading\n## Real\ntext",
        "## ⚠️ Rate Limit\n\nbusy\n\n## Placeholder\n- Section 1",
    ],
)
def test_split_join_reproduces_input(markdown):
    assert join(split(markdown)) == markdown


def test_replace_section_leaves_others_untouched():
    sections = split(DOC)
    updated = replace_section(sections, "sec-2", "## Goals\n- Grow faster")
    assert updated[0] == sections[0]
    assert updated[1] == sections[1]
    assert updated[2].id == "sec-2" and updated[2].title == "Goals"
    assert join(updated) == DOC.replace("- Grow\n", "- Grow faster")


def test_unknown_section_raises():
    with pytest.raises(SectionNotFoundError):
        find_section(split(DOC), "sec-9")
    with pytest.raises(LookupError):
        replace_section(split(DOC), "sec-9", "x")
